import json
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import TypeAdapter, ValidationError

from src.auth import Principal, get_current_user
from src.base.context import AppContext, get_context
from src.base.models import BaseDbModel
from src.realtime.feed import ChangeKind, Subscription

router = APIRouter(prefix="/realtime")

WATCHED_TABLES = frozenset(
    {
        "inspection_jobs",
        "inspection_faults",
        "inspection_media",
        "negotiation_offers",
    }
)

# Always taken from the caller, never from the query.
SCOPE_COLUMN = "business_id"


def filter_value(table: str, column: str, value: str) -> Any:
    """Parse a query-string filter value into the column's Python type."""
    columns = BaseDbModel.metadata.tables[table].columns
    if column not in columns:
        raise HTTPException(status_code=400, detail=f"Unknown column {column}")
    try:
        python_type = columns[column].type.python_type
    except NotImplementedError:
        python_type = str
    if python_type in (dict, list):
        raise HTTPException(status_code=400, detail=f"Cannot filter on {column}")
    try:
        return TypeAdapter(python_type).validate_strings(value)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail=f"Invalid value for {column}"
        ) from exc


async def _stream(subscription: Subscription) -> AsyncGenerator[str]:
    try:
        async for event in subscription:
            yield json.dumps(event.as_json()) + "\n"
    finally:
        subscription.close()


@router.get("/{table}")
async def stream_changes(
    table: str,
    event: ChangeKind | None = None,
    column: str | None = None,
    value: str | None = None,
    principal: Principal = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
) -> StreamingResponse:
    """Newline-delimited JSON change events for one table of the caller's business."""
    if table not in WATCHED_TABLES:
        raise HTTPException(status_code=404, detail="Unknown table")
    if (column is None) != (value is None):
        raise HTTPException(status_code=400, detail="column and value go together")

    where: dict[str, object] = {}
    if column is not None and value is not None:
        if column == SCOPE_COLUMN:
            raise HTTPException(status_code=400, detail=f"Cannot filter on {column}")
        where[column] = filter_value(table, column, value)
    where[SCOPE_COLUMN] = principal.business_id

    subscription = ctx.feed.subscribe(table, event, where)
    return StreamingResponse(_stream(subscription), media_type="application/x-ndjson")
