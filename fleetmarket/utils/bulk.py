"""Apply one mutation across a selection of records.

Each id runs inside its own SAVEPOINT: a failing item is rolled back on
its own while the items before and after it still commit with the
request. There is no retry and no global rollback; the caller gets a
per-item report instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session


logger = logging.getLogger("fleetmarket.bulk")


class BulkItemError(Exception):
    """Raised by an action to skip one item with a reason."""


@dataclass
class BulkResult:
    requested: int = 0
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def as_dict(self) -> dict[str, Any]:
        return {
            "requested": self.requested,
            "updated": len(self.succeeded),
            "succeeded": list(self.succeeded),
            "failed": dict(self.failed),
        }


def unique_ids(ids: Iterable[Hashable]) -> list:
    seen: set = set()
    out = []
    for i in ids:
        if i in seen:
            continue
        seen.add(i)
        out.append(i)
    return out


def run_bulk(db: Session, ids: Iterable[Hashable], action: Callable[[Session, Any], None], *, label: str = "bulk") -> BulkResult:
    selection = unique_ids(ids)
    if not selection:
        raise ValueError("No records selected")
    result = BulkResult(requested=len(selection))
    for item_id in selection:
        key = str(item_id)
        try:
            with db.begin_nested():
                action(db, item_id)
        except (BulkItemError, LookupError, ValueError) as e:
            result.failed[key] = str(e) or e.__class__.__name__
            logger.warning("%s: skipped %s: %s", label, key, e)
            continue
        except SQLAlchemyError as e:
            result.failed[key] = "database_error"
            logger.exception("%s: database error on %s: %s", label, key, e)
            continue
        result.succeeded.append(key)
    logger.info("%s: %d of %d updated", label, len(result.succeeded), result.requested)
    return result
