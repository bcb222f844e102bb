from app.dependencies.query import (
    get_item_projection,
    get_task_list_query,
    get_user_list_query,
)
from app.dependencies.sync import get_reference_synchronizer

__all__ = [
    "get_item_projection",
    "get_reference_synchronizer",
    "get_task_list_query",
    "get_user_list_query",
]
