from fastapi import Query

from app.config import settings
from app.utils.query_parser import (
    ListQuery,
    Projection,
    decode_json_param,
    parse_list_query,
    parse_projection,
)

WHERE_DESCRIPTION = 'JSON filter, e.g. {"completed": true}'
SORT_DESCRIPTION = 'JSON sort keys, e.g. {"name": 1}'
SELECT_DESCRIPTION = 'JSON projection, e.g. {"_id": 0}'


async def get_task_list_query(
    where: str | None = Query(None, description=WHERE_DESCRIPTION),
    sort: str | None = Query(None, description=SORT_DESCRIPTION),
    select: str | None = Query(None, description=SELECT_DESCRIPTION),
    skip: int | None = Query(None, description="Number of tasks to skip"),
    limit: int | None = Query(None, description="Maximum number of tasks to return"),
    count: str | None = Query(None, description="'true' to return only the count"),
) -> ListQuery:
    """List query for tasks; capped at ``settings.task_default_limit`` by default."""
    return parse_list_query(
        where,
        sort,
        select,
        skip,
        limit,
        count,
        default_limit=settings.task_default_limit,
    )


async def get_user_list_query(
    where: str | None = Query(None, description=WHERE_DESCRIPTION),
    sort: str | None = Query(None, description=SORT_DESCRIPTION),
    select: str | None = Query(None, description=SELECT_DESCRIPTION),
    skip: int | None = Query(None, description="Number of users to skip"),
    limit: int | None = Query(None, description="Maximum number of users to return"),
    count: str | None = Query(None, description="'true' to return only the count"),
) -> ListQuery:
    """List query for users; no limit unless one is given."""
    return parse_list_query(where, sort, select, skip, limit, count)


async def get_item_projection(
    select: str | None = Query(None, description=SELECT_DESCRIPTION),
) -> Projection | None:
    raw = decode_json_param(select, "select")
    return parse_projection(raw) if raw is not None else None
