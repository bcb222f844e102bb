from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, DateTime, and_, false, not_, or_, true
from sqlalchemy.sql.elements import ColumnElement

from app.exceptions import ValidationError
from app.utils.query_parser import FilterCondition, FilterGroup, FilterNode, SortKey
from app.utils.timestamps import parse_timestamp

# Maps an external field name (``_id``, ``assignedUser``...) to a model column
FieldMap = dict[str, Any]


def resolve_column(field_map: FieldMap, field_name: str):
    column = field_map.get(field_name)
    if column is None:
        raise ValidationError(
            f"Invalid query parameters: unknown field '{field_name}'"
        )
    return column


def coerce_value(column, value: Any) -> Any:
    """Convert a JSON value to the Python type the column stores."""
    if value is None:
        return None
    column_type = column.type
    try:
        if isinstance(column_type, DateTime):
            return parse_timestamp(value)
        if isinstance(column_type, Boolean):
            if isinstance(value, bool):
                return value
            raise ValueError(f"Not a boolean: {value!r}")
    except ValueError as e:
        raise ValidationError(
            f"Invalid query parameters: bad value for '{column.key}'"
        ) from e
    if isinstance(value, bool):
        raise ValidationError(
            f"Invalid query parameters: bad value for '{column.key}'"
        )
    if isinstance(value, int | float):
        return str(value)
    return value


def _compile_condition(
    condition: FilterCondition, field_map: FieldMap
) -> ColumnElement:
    column = resolve_column(field_map, condition.field)
    operator = condition.operator

    if operator in ("$in", "$nin"):
        values = [coerce_value(column, item) for item in condition.value]
        if operator == "$in":
            return column.in_(values)
        return column.not_in(values)

    value = coerce_value(column, condition.value)
    if operator == "$eq":
        return column.is_(None) if value is None else column == value
    if operator == "$ne":
        return column.is_not(None) if value is None else column != value
    if value is None:
        raise ValidationError(
            f"Invalid query parameters: '{operator}' cannot compare with null"
        )
    if operator == "$gt":
        return column > value
    if operator == "$gte":
        return column >= value
    if operator == "$lt":
        return column < value
    if operator == "$lte":
        return column <= value
    raise ValidationError(f"Invalid query parameters: unknown operator '{operator}'")


def compile_filter(node: FilterNode | None, field_map: FieldMap) -> ColumnElement:
    """Translate a filter tree into a SQLAlchemy boolean expression."""
    if node is None:
        return true()
    if isinstance(node, FilterCondition):
        return _compile_condition(node, field_map)

    clauses = [compile_filter(child, field_map) for child in node.children]
    if node.operator == "$and":
        return and_(*clauses) if clauses else true()
    if node.operator == "$or":
        return or_(*clauses) if clauses else false()
    if node.operator == "$nor":
        return not_(or_(*clauses)) if clauses else true()
    raise ValidationError(
        f"Invalid query parameters: unknown operator '{node.operator}'"
    )


def compile_sort(keys: tuple[SortKey, ...], field_map: FieldMap) -> list:
    clauses = []
    for key in keys:
        column = resolve_column(field_map, key.field)
        clauses.append(column.desc() if key.descending else column.asc())
    return clauses
