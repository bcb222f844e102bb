"""
Decoding of the list-endpoint query parameters into a ``ListQuery``.

``where``, ``sort`` and ``select`` arrive as JSON text. They are decoded into a
small predicate tree, a list of sort keys and a projection before any store
access, so malformed input is rejected up front with ``ValidationError``.

Filter grammar::

    filter     := { entry, ... }                 implicit AND of entries
    entry      := field: scalar                  equality
                | field: { "$op": value, ... }   $eq $ne $gt $gte $lt $lte $in $nin
                | "$and" | "$or" | "$nor": [filter, ...]
"""

import json
from dataclasses import dataclass
from typing import Any, Union

from app.exceptions import ValidationError

ID_FIELD = "_id"

COMPARISON_OPERATORS = frozenset(
    {"$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin"}
)
LIST_OPERATORS = frozenset({"$in", "$nin"})
LOGICAL_OPERATORS = frozenset({"$and", "$or", "$nor"})

_ASCENDING = {1, "1", "asc", "ascending"}
_DESCENDING = {-1, "-1", "desc", "descending"}
_SCALAR_TYPES = (str, int, float, bool, type(None))
# Largest OFFSET/LIMIT the database drivers accept (signed 64-bit)
MAX_PAGE_VALUE = 2**63 - 1


@dataclass(frozen=True)
class FilterCondition:
    field: str
    operator: str
    value: Any


@dataclass(frozen=True)
class FilterGroup:
    operator: str
    children: tuple["FilterNode", ...]


FilterNode = Union[FilterCondition, FilterGroup]


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class Projection:
    """Field inclusion or exclusion applied to serialized documents."""

    fields: frozenset[str]
    include: bool
    include_id: bool = True

    def apply(self, document: dict[str, Any]) -> dict[str, Any]:
        if self.include:
            return {
                key: value
                for key, value in document.items()
                if key in self.fields or (key == ID_FIELD and self.include_id)
            }
        return {
            key: value
            for key, value in document.items()
            if key not in self.fields and not (key == ID_FIELD and not self.include_id)
        }


@dataclass
class ListQuery:
    filter: FilterNode | None = None
    sort: tuple[SortKey, ...] = ()
    projection: Projection | None = None
    skip: int = 0
    limit: int | None = None
    count_only: bool = False


def decode_json_param(raw: str | None, name: str) -> Any:
    """Decode one JSON-valued query parameter; ``None`` when absent."""
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise ValidationError(
            f"Invalid query parameters: '{name}' is not valid JSON"
        ) from e


def parse_filter(raw: Any) -> FilterNode | None:
    if not isinstance(raw, dict):
        raise ValidationError("Invalid query parameters: 'where' must be an object")

    nodes: list[FilterNode] = []
    for key, value in raw.items():
        if key in LOGICAL_OPERATORS:
            nodes.append(_parse_logical(key, value))
        elif key.startswith("$"):
            raise ValidationError(f"Invalid query parameters: unknown operator '{key}'")
        else:
            nodes.extend(_parse_field(key, value))

    if not nodes:
        return None
    if len(nodes) == 1:
        return nodes[0]
    return FilterGroup("$and", tuple(nodes))


def _parse_logical(operator: str, value: Any) -> FilterGroup:
    if not isinstance(value, list) or not value:
        raise ValidationError(
            f"Invalid query parameters: '{operator}' requires a non-empty array"
        )
    children = []
    for item in value:
        child = parse_filter(item)
        # An empty object matches every document
        children.append(child if child is not None else FilterGroup("$and", ()))
    return FilterGroup(operator, tuple(children))


def _parse_field(field_name: str, value: Any) -> list[FilterCondition]:
    if isinstance(value, dict):
        if not value or not all(key.startswith("$") for key in value):
            raise ValidationError(
                f"Invalid query parameters: unsupported match on '{field_name}'"
            )
        conditions = []
        for operator, operand in value.items():
            if operator not in COMPARISON_OPERATORS:
                raise ValidationError(
                    f"Invalid query parameters: unknown operator '{operator}'"
                )
            if operator in LIST_OPERATORS:
                if not isinstance(operand, list) or not all(
                    isinstance(item, _SCALAR_TYPES) for item in operand
                ):
                    raise ValidationError(
                        f"Invalid query parameters: '{operator}' requires an array of values"
                    )
                operand = tuple(operand)
            elif not isinstance(operand, _SCALAR_TYPES):
                raise ValidationError(
                    f"Invalid query parameters: '{operator}' requires a scalar value"
                )
            conditions.append(FilterCondition(field_name, operator, operand))
        return conditions

    if not isinstance(value, _SCALAR_TYPES):
        raise ValidationError(
            f"Invalid query parameters: unsupported match on '{field_name}'"
        )
    return [FilterCondition(field_name, "$eq", value)]


def parse_sort(raw: Any) -> tuple[SortKey, ...]:
    if not isinstance(raw, dict):
        raise ValidationError("Invalid query parameters: 'sort' must be an object")
    keys = []
    for field_name, direction in raw.items():
        if isinstance(direction, str):
            direction = direction.lower()
        if isinstance(direction, bool) or not isinstance(direction, int | str):
            raise ValidationError(
                f"Invalid query parameters: bad sort direction for '{field_name}'"
            )
        if direction in _ASCENDING:
            keys.append(SortKey(field_name, descending=False))
        elif direction in _DESCENDING:
            keys.append(SortKey(field_name, descending=True))
        else:
            raise ValidationError(
                f"Invalid query parameters: bad sort direction for '{field_name}'"
            )
    return tuple(keys)


def parse_projection(raw: Any) -> Projection | None:
    if not isinstance(raw, dict):
        raise ValidationError("Invalid query parameters: 'select' must be an object")

    flags: dict[str, bool] = {}
    for field_name, flag in raw.items():
        if flag in (1, True):
            flags[field_name] = True
        elif flag in (0, False):
            flags[field_name] = False
        else:
            raise ValidationError(
                f"Invalid query parameters: bad select value for '{field_name}'"
            )

    id_flag = flags.pop(ID_FIELD, None)
    if not flags:
        if id_flag is None:
            return None
        # {"_id": 1} keeps only the id, {"_id": 0} drops only the id
        return Projection(frozenset(), include=id_flag, include_id=id_flag)

    modes = set(flags.values())
    if len(modes) > 1:
        raise ValidationError(
            "Invalid query parameters: 'select' cannot mix inclusion and exclusion"
        )
    return Projection(
        frozenset(flags),
        include=modes.pop(),
        include_id=True if id_flag is None else id_flag,
    )


def parse_list_query(
    where: str | None = None,
    sort: str | None = None,
    select: str | None = None,
    skip: int | None = None,
    limit: int | None = None,
    count: str | None = None,
    default_limit: int | None = None,
) -> ListQuery:
    """Build a ``ListQuery`` from raw query parameters.

    ``limit`` of 0 means no limit. ``default_limit`` applies only when
    ``limit`` is absent.
    """
    for name, value in (("skip", skip), ("limit", limit)):
        if value is not None and not 0 <= value <= MAX_PAGE_VALUE:
            raise ValidationError(
                f"Invalid query parameters: '{name}' is out of range"
            )

    where_raw = decode_json_param(where, "where")
    sort_raw = decode_json_param(sort, "sort")
    select_raw = decode_json_param(select, "select")

    if limit is None:
        final_limit = default_limit or None
    else:
        final_limit = limit or None

    return ListQuery(
        filter=parse_filter(where_raw) if where_raw is not None else None,
        sort=parse_sort(sort_raw) if sort_raw is not None else (),
        projection=parse_projection(select_raw) if select_raw is not None else None,
        skip=skip or 0,
        limit=final_limit,
        count_only=count == "true",
    )
