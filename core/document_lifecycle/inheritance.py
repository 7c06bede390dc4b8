"""
Salesdocs Document Lifecycle - Line-Item Inheritance
====================================================
Seeds a new stage with the line items of the stage before it.

Rules:
- The source is the closest earlier stage in STAGE_CHAIN that can supply
  the target's shape: any stage for an unpriced target, the closest
  priced stage for a priced target (an invoice inherits from the order
  confirmation, since delivery notes carry no prices).
- Only the source's current version is read. A missing source yields ().
- Every inherited line gets a fresh item_id.
- Unpriced targets receive number/description/quantity/unit only. Price
  fields are dropped, not zeroed.
- Sources are never mutated.
"""

from __future__ import annotations

from typing import Iterable, Optional

from core.documents.models import (
    STAGE_CHAIN,
    LineItem,
    PricedLineItem,
    Project,
    UnpricedLineItem,
    is_priced_type,
    new_line_item_id,
    preceding_stage,
    validate_document_type,
)
from core.document_lifecycle.repository import DocumentRepository


def inheritance_source(target_type: str) -> Optional[str]:
    """Return the stage target_type inherits from, or None."""
    validate_document_type(target_type)
    if target_type not in STAGE_CHAIN:
        return None
    source = preceding_stage(target_type)
    if is_priced_type(target_type):
        while source is not None and not is_priced_type(source):
            source = preceding_stage(source)
    return source


def project_line_item(item: LineItem, target_type: str) -> LineItem:
    """Reshape one line item into target_type's shape under a fresh id."""
    if is_priced_type(target_type):
        if not isinstance(item, PricedLineItem):
            raise ValueError(f"cannot derive a priced {target_type} line from an unpriced line.")
        return PricedLineItem(
            item_id=new_line_item_id(),
            number=item.number,
            description=item.description,
            quantity=item.quantity,
            unit=item.unit,
            unit_price=item.unit_price,
            reference_price=item.reference_price,
            reason_code=item.reason_code,
            optional=item.optional,
        )
    return UnpricedLineItem(
        item_id=new_line_item_id(),
        number=item.number,
        description=item.description,
        quantity=item.quantity,
        unit=item.unit,
    )


def project_line_items(items: Iterable[LineItem], target_type: str) -> tuple[LineItem, ...]:
    return tuple(project_line_item(item, target_type) for item in items)


def default_line_items(project: Optional[Project], target_type: str) -> tuple[LineItem, ...]:
    """
    One line item from the project's article, quantity and price fields.

    Returns () when the project lacks an article number or quantity, or a
    priced target lacks a unit price.
    """
    if project is None or not project.article_number or project.quantity is None:
        return ()
    if is_priced_type(target_type):
        if project.unit_price is None:
            return ()
        return (
            PricedLineItem(
                item_id=new_line_item_id(),
                number=project.article_number,
                description=project.article_description,
                quantity=project.quantity,
                unit=project.unit,
                unit_price=project.unit_price,
            ),
        )
    return (
        UnpricedLineItem(
            item_id=new_line_item_id(),
            number=project.article_number,
            description=project.article_description,
            quantity=project.quantity,
            unit=project.unit,
        ),
    )


class LineItemInheritanceResolver:
    def __init__(self, repository: DocumentRepository):
        self._repository = repository

    def inherit(self, project_id: str, target_type: str) -> tuple[LineItem, ...]:
        source_type = inheritance_source(target_type)
        if source_type is None:
            return ()
        source = self._repository.get_current(project_id, source_type)
        if source is None:
            return ()
        return project_line_items(source.data_snapshot.line_items, target_type)
