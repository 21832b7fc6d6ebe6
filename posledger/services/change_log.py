"""Field-level audit trail for product mutations."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from posledger.models.inventory import ChangeAction, Product, ProductChangeLog

logger = logging.getLogger(__name__)

TRACKED_FIELDS = (
    "sku",
    "name",
    "description",
    "input_cost",
    "stock",
    "vendors",
    "images",
    "need_to_order",
    "billing",
    "deleted_at",
)


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    return value


def snapshot(product: Product) -> dict[str, Any]:
    return {field: _json_safe(getattr(product, field)) for field in TRACKED_FIELDS}


def diff_snapshots(before: dict[str, Any], after: dict[str, Any]) -> dict[str, dict[str, Any]]:
    changes: dict[str, dict[str, Any]] = {}
    for field in sorted(set(before) | set(after)):
        old = before.get(field)
        new = after.get(field)
        if old != new:
            changes[field] = {"old": old, "new": new}
    return changes


class ChangeLogRecorder:
    """Writes one change-log row per product mutation.

    ``record`` runs after the parent mutation has committed and uses its own
    commit, so a failure here is rolled back and logged without touching
    the mutation itself.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        product_id: int,
        action: ChangeAction,
        changes: dict[str, Any],
    ) -> ProductChangeLog | None:
        entry = ProductChangeLog(product_id=product_id, action=action, changes=changes)
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to record %s change log for product %s", action.value, product_id)
            return None
        return entry

    def record_diff(
        self,
        product_id: int,
        action: ChangeAction,
        before: dict[str, Any],
        after: dict[str, Any],
    ) -> ProductChangeLog | None:
        return self.record(product_id, action, diff_snapshots(before, after))
