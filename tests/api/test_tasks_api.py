"""
API tests for the /api/tasks endpoints.
"""

import json

from app.db_handlers import UserDBHandler
from app.dependencies import get_reference_synchronizer
from app.services.reference_sync import ReferenceSynchronizer

FUTURE_DEADLINE = "2030-01-01T12:00:00Z"


class UnreachableUserDBHandler(UserDBHandler):
    async def add_pending_task(self, user_id, task_id, *, db=None):
        raise ConnectionRefusedError("connection refused")

    async def remove_pending_task(self, user_id, task_id, *, db=None):
        raise ConnectionRefusedError("connection refused")


def test_health_endpoint(client):
    response = client.get("/api/")
    assert response.status_code == 200
    assert response.json() == {"message": "Task API is running!", "data": None}


def test_create_task_applies_defaults(client):
    response = client.post(
        "/api/tasks", json={"name": "  Write report ", "deadline": FUTURE_DEADLINE}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Task created successfully"
    task = body["data"]
    assert task["name"] == "Write report"
    assert task["description"] == ""
    assert task["completed"] is False
    assert task["assignedUser"] == ""
    assert task["assignedUserName"] == "unassigned"
    assert task["deadline"] == "2030-01-01T12:00:00.000Z"
    assert task["_id"] and task["dateCreated"]


def test_create_task_accepts_millisecond_deadline(client):
    response = client.post("/api/tasks", json={"name": "Epoch", "deadline": 0})
    assert response.status_code == 201
    assert response.json()["data"]["deadline"] == "1970-01-01T00:00:00.000Z"


def test_create_task_requires_name_and_deadline(client):
    for payload in ({"name": "No deadline"}, {"deadline": FUTURE_DEADLINE}, {}):
        response = client.post("/api/tasks", json=payload)
        assert response.status_code == 400
        assert response.json() == {
            "message": "Name and deadline are required",
            "data": None,
        }


def test_create_assigned_task_adds_pending_entry(create_user, create_task, get_user):
    user = create_user()
    task = create_task(assignedUser=user["_id"], assignedUserName=user["name"])

    assert get_user(user["_id"])["pendingTasks"] == [task["_id"]]


def test_get_task_not_found(client):
    response = client.get("/api/tasks/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"message": "Task not found", "data": None}


def test_get_task_with_select(client, create_task):
    task = create_task()
    response = client.get(
        f"/api/tasks/{task['_id']}", params={"select": json.dumps({"name": 1})}
    )
    assert response.json()["data"] == {"_id": task["_id"], "name": task["name"]}


def test_list_tasks_filter_sort_and_pagination(client, create_task):
    create_task("b")
    create_task("a", completed=True)
    create_task("c")

    response = client.get(
        "/api/tasks",
        params={
            "where": json.dumps({"completed": False}),
            "sort": json.dumps({"name": -1}),
        },
    )
    assert [t["name"] for t in response.json()["data"]] == ["c", "b"]

    response = client.get(
        "/api/tasks",
        params={"sort": json.dumps({"name": 1}), "skip": 1, "limit": 1},
    )
    assert [t["name"] for t in response.json()["data"]] == ["b"]


def test_list_tasks_default_limit(client, create_task):
    for i in range(101):
        create_task(f"task {i:03d}")

    assert len(client.get("/api/tasks").json()["data"]) == 100
    assert len(client.get("/api/tasks", params={"limit": 0}).json()["data"]) == 101


def test_count_honours_where_and_ignores_pagination(client, create_task):
    create_task(completed=True)
    create_task(completed=True)
    create_task()

    response = client.get(
        "/api/tasks",
        params={
            "where": json.dumps({"completed": True}),
            "count": "true",
            "limit": 1,
        },
    )
    assert response.status_code == 200
    assert response.json() == {"message": "OK", "data": 2}


def test_list_select_excludes_id(client, create_task):
    create_task()
    response = client.get("/api/tasks", params={"select": json.dumps({"_id": 0})})
    task = response.json()["data"][0]
    assert "_id" not in task
    assert "name" in task


def test_list_where_by_id_list(client, create_task):
    first = create_task()
    create_task()
    response = client.get(
        "/api/tasks", params={"where": json.dumps({"_id": {"$in": [first["_id"]]}})}
    )
    assert [t["_id"] for t in response.json()["data"]] == [first["_id"]]


def test_list_rejects_bad_query_parameters(client):
    bad_params = [
        {"where": "{broken"},
        {"where": json.dumps({"name": {"$regex": "a"}})},
        {"where": json.dumps({"owner": "x"})},
        {"sort": json.dumps({"pendingTasks": 1})},
        {"limit": "many"},
        {"skip": -1},
    ]
    for params in bad_params:
        response = client.get("/api/tasks", params=params)
        assert response.status_code == 400, params
        assert response.json()["data"] is None


def test_update_task_reassigns_between_users(
    client, create_user, create_task, get_user
):
    alice = create_user("Alice")
    bob = create_user("Bob")
    task = create_task(assignedUser=alice["_id"], assignedUserName="Alice")

    response = client.put(
        f"/api/tasks/{task['_id']}",
        json={
            "name": task["name"],
            "deadline": FUTURE_DEADLINE,
            "assignedUser": bob["_id"],
            "assignedUserName": "Bob",
        },
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Task updated successfully"
    assert get_user(alice["_id"])["pendingTasks"] == []
    assert get_user(bob["_id"])["pendingTasks"] == [task["_id"]]


def test_update_without_assignee_unassigns(client, create_user, create_task, get_user):
    alice = create_user("Alice")
    task = create_task(assignedUser=alice["_id"], assignedUserName="Alice")

    response = client.put(
        f"/api/tasks/{task['_id']}",
        json={"name": "Renamed", "deadline": FUTURE_DEADLINE},
    )

    data = response.json()["data"]
    assert data["assignedUser"] == ""
    assert data["assignedUserName"] == "unassigned"
    assert get_user(alice["_id"])["pendingTasks"] == []


def test_update_keeps_completed_when_omitted(client, create_task):
    task = create_task(completed=True)
    response = client.put(
        f"/api/tasks/{task['_id']}",
        json={"name": "Still done", "deadline": FUTURE_DEADLINE},
    )
    assert response.json()["data"]["completed"] is True


def test_update_task_validation_and_not_found(client, create_task):
    task = create_task()
    response = client.put(f"/api/tasks/{task['_id']}", json={"name": "x"})
    assert response.status_code == 400

    response = client.put(
        "/api/tasks/missing", json={"name": "x", "deadline": FUTURE_DEADLINE}
    )
    assert response.status_code == 404


def test_task_with_dangling_assignee_is_accepted(client, get_task):
    response = client.post(
        "/api/tasks",
        json={
            "name": "Orphan",
            "deadline": FUTURE_DEADLINE,
            "assignedUser": "no-such-user",
            "assignedUserName": "Ghost",
        },
    )
    assert response.status_code == 201
    task = get_task(response.json()["data"]["_id"])
    assert task["assignedUser"] == "no-such-user"


def test_delete_task_removes_pending_entry(client, create_user, create_task, get_user):
    alice = create_user()
    task = create_task(assignedUser=alice["_id"], assignedUserName=alice["name"])

    response = client.delete(f"/api/tasks/{task['_id']}")

    assert response.status_code == 204
    assert response.content == b""
    assert get_user(alice["_id"])["pendingTasks"] == []
    assert client.get(f"/api/tasks/{task['_id']}").status_code == 404


def test_delete_missing_task(client):
    response = client.delete("/api/tasks/missing")
    assert response.status_code == 404
    assert response.json()["message"] == "Task not found"


def test_out_of_range_deadline_is_rejected(client, create_task):
    create_task()
    for deadline in (10**22, "9" * 30, 1e300):
        response = client.post(
            "/api/tasks", json={"name": "Far future", "deadline": deadline}
        )
        assert response.status_code == 400, deadline
        assert response.json()["data"] is None

    response = client.get(
        "/api/tasks", params={"where": json.dumps({"deadline": {"$gt": 10**22}})}
    )
    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid query parameters")


def test_oversized_skip_is_rejected(client):
    response = client.get("/api/tasks", params={"skip": 10**20})
    assert response.status_code == 400
    assert response.json()["data"] is None


def test_empty_filter_inside_logical_operator_matches_all(client, create_task):
    create_task()
    create_task()

    response = client.get("/api/tasks", params={"where": json.dumps({"$or": [{}]})})
    assert len(response.json()["data"]) == 2

    response = client.get("/api/tasks", params={"where": json.dumps({"$nor": [{}]})})
    assert response.json()["data"] == []


def test_update_succeeds_when_pending_tasks_write_fails(
    app, client, create_user, create_task, get_user
):
    alice = create_user("Alice")
    bob = create_user("Bob")
    task = create_task(assignedUser=alice["_id"], assignedUserName="Alice")
    app.dependency_overrides[get_reference_synchronizer] = lambda: (
        ReferenceSynchronizer(user_db_handler=UnreachableUserDBHandler())
    )

    response = client.put(
        f"/api/tasks/{task['_id']}",
        json={
            "name": task["name"],
            "deadline": FUTURE_DEADLINE,
            "assignedUser": bob["_id"],
            "assignedUserName": "Bob",
        },
    )

    assert response.status_code == 200
    assert response.json()["data"]["assignedUser"] == bob["_id"]
    # The derived index drifts: neither user's pendingTasks was rewritten
    assert get_user(alice["_id"])["pendingTasks"] == [task["_id"]]
    assert get_user(bob["_id"])["pendingTasks"] == []
