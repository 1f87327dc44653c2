# app/utils/pagination.py
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Tuple, Type, TypedDict

from dateutil.parser import isoparse
from sqlalchemy import Select, and_, or_
from werkzeug.exceptions import BadRequest

from app.extensions import db


class CursorMeta(TypedDict):
    """
    Strongly-typed cursor pagination metadata.

    Explicit keys prevent contract drift across list_* endpoints.
    """
    has_more: bool
    next_cursor: Optional[str]


def encode_cursor(created_at: datetime, row_id: Any) -> str:
    """
    Format: ISO8601|<id>
    """
    if not isinstance(created_at, datetime) or row_id is None:
        raise ValueError("created_at and row_id are required to encode cursor")

    return f"{created_at.isoformat()}|{row_id}"


def decode_cursor(cursor: str) -> Tuple[datetime, str]:
    if not cursor or "|" not in cursor:
        raise BadRequest("Invalid cursor format")

    try:
        ts_str, row_id = cursor.split("|", 1)
        return isoparse(ts_str), row_id
    except ValueError as exc:
        raise BadRequest("Invalid cursor format") from exc


def paginate_cursor(
    stmt: Select,
    *,
    model: Type[Any],
    limit: int,
    cursor: Optional[str] = None,
) -> tuple[List[Any], CursorMeta]:
    """
    Execute a cursor-paginated select, newest first.

    Ordering contract: ORDER BY created_at DESC, id DESC.
    Fetches limit + 1 rows to detect continuation.
    """
    if limit <= 0:
        raise BadRequest("Limit must be greater than zero")

    if cursor:
        cursor_ts, cursor_id = decode_cursor(cursor)
        stmt = stmt.where(
            or_(
                model.created_at < cursor_ts,
                and_(model.created_at == cursor_ts, model.id < cursor_id),
            )
        )

    rows = list(
        db.session.execute(
            stmt.order_by(model.created_at.desc(), model.id.desc()).limit(limit + 1)
        ).scalars()
    )

    has_more = len(rows) > limit
    items = rows[:limit]

    next_cursor = None
    if has_more and items:
        last = items[-1]
        next_cursor = encode_cursor(last.created_at, last.id)

    return items, {"has_more": has_more, "next_cursor": next_cursor}
