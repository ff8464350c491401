from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Query


@dataclass(frozen=True)
class Page:
    page: int = 1
    page_size: int = 10

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


def total_pages(total: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return math.ceil(total / page_size)


def paginate(query: Query, page: Page) -> tuple[list[Any], int, int]:
    """Count and slice the same filtered query."""
    total = query.order_by(None).count()
    rows = query.offset(page.offset).limit(page.limit).all()
    return rows, total, total_pages(total, page.page_size)


def clean_search_term(q: str | None) -> str:
    if not q:
        return ""
    return q.replace("%", "").strip()


def apply_search(query: Query, columns: Sequence[Any], q: str | None) -> Query:
    term = clean_search_term(q)
    if not term:
        return query
    like = f"%{term}%"
    return query.filter(or_(*[c.ilike(like) for c in columns]))


def apply_sort(
    query: Query,
    model: Any,
    sort_by: str | None,
    order: str | None,
    allowed: Iterable[str],
    default: str,
    aliases: dict[str, str] | None = None,
) -> Query:
    key = sort_by if sort_by in set(allowed) else default
    key = (aliases or {}).get(key, key)
    column = getattr(model, key)
    if (order or "desc").lower() == "asc":
        return query.order_by(column.asc(), model.id.asc())
    return query.order_by(column.desc(), model.id.desc())
