import inspect
import uuid
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from tasksim.main import create_app
from tasksim.storage.schema import ERROR_DELETED, ERROR_FAILED, RESULT_COMPLETED

TERMINAL = {"completed", "failed"}


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _poll(client, wait_until, task_id, statuses, timeout=2.0) -> dict:
    seen = {}

    def reached():
        seen.clear()
        seen.update(client.get(f"/{task_id}").json())
        return seen["status"] in statuses

    wait_until(reached, timeout=timeout)
    return seen


def test_post_creates_pending_task(client):
    r = client.post("/")
    assert r.status_code == 201, r.text

    body = r.json()
    assert set(body) == {"id", "status", "creationTime"}
    assert body["status"] == "pending"
    uuid.UUID(body["id"])
    assert r.headers.get("x-request-id")


def test_get_right_after_create(client):
    task_id = client.post("/").json()["id"]

    r = client.get(f"/{task_id}")
    assert r.status_code == 200, r.text
    assert r.json()["id"] == task_id
    assert r.json()["status"] in {"pending", "in_progress"}


def test_task_runs_to_completion(client, wait_until):
    task_id = client.post("/").json()["id"]

    body = _poll(client, wait_until, task_id, TERMINAL)

    assert body["status"] == "completed"
    assert body["result"] == RESULT_COMPLETED
    assert "error" not in body
    elapsed = (_ts(body["completionTime"]) - _ts(body["startTime"])).total_seconds()
    assert body["processingDuration"] == pytest.approx(elapsed, abs=0.002)


def test_task_failure_is_reported_as_status(fast_settings, wait_until):
    failing = fast_settings.model_copy(update={"task_failure_rate": 1.0})
    with TestClient(create_app(failing)) as client:
        task_id = client.post("/").json()["id"]
        body = _poll(client, wait_until, task_id, TERMINAL)

    assert body["status"] == "failed"
    assert body["error"] == ERROR_FAILED
    assert "result" not in body


@pytest.mark.parametrize(
    "bad_id",
    [
        "not-a-uuid",
        "123",
        "zzzzzzzz-zzzz-zzzz-zzzz-zzzzzzzzzzzz",
        "%20",
        "{{12345678-1234-5678-1234-567812345678}}",
        "----12345678-1234-5678-1234-567812345678",
        "+1234567812345678123456781234567",
        "12345678-1234-5678-1234-56781234567g",
        "{12345678-1234-5678-1234-567812345678",
        "urn:uuid:12345678123456781234567812345678",
        "12345678-1234-5678-1234-567812345678 ",
    ],
)
@pytest.mark.parametrize("method", ["get", "delete"])
def test_malformed_id_is_rejected(client, method, bad_id):
    r = getattr(client, method)(f"/{bad_id}")
    assert r.status_code == 400, r.text
    assert r.json()["error"] == "Invalid task ID format"
    assert r.text.startswith("{\n  ")


@pytest.mark.parametrize("method", ["get", "delete"])
def test_unknown_id_is_not_found(client, method):
    r = getattr(client, method)(f"/{uuid.uuid4()}")
    assert r.status_code == 404, r.text
    body = r.json()
    assert body["message"] == "Task not found"
    assert body["request_id"] == r.headers["x-request-id"]


def test_delete_right_after_create(client, wait_until):
    task_id = client.post("/").json()["id"]

    r = client.delete(f"/{task_id}")
    assert r.status_code == 200, r.text
    assert task_id in r.json()["message"]

    body = _poll(client, wait_until, task_id, {"deleted_by_user"}, timeout=1.0)
    assert body["status"] in {"deleted", "deleted_by_user"}
    assert body["error"] == ERROR_DELETED


def test_delete_after_completion_keeps_status(client, wait_until):
    task_id = client.post("/").json()["id"]
    done = _poll(client, wait_until, task_id, TERMINAL)

    r = client.delete(f"/{task_id}")
    assert r.status_code == 200, r.text
    assert client.get(f"/{task_id}").json() == done


def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert r.status_code == 200
    assert r.headers["x-request-id"] == "abc-123"
    assert r.json()["status"] == "ok"


@pytest.mark.parametrize(
    "spelling",
    [
        lambda tid: tid.upper(),
        lambda tid: "{" + tid + "}",
        lambda tid: "urn:uuid:" + tid,
        lambda tid: "URN:UUID:" + tid,
        lambda tid: tid.replace("-", ""),
    ],
)
def test_accepted_id_spellings_resolve_to_the_same_task(client, spelling):
    task_id = client.post("/").json()["id"]

    r = client.get(f"/{spelling(task_id)}")
    assert r.status_code == 200, r.text
    assert r.json()["id"] == task_id


def test_unknown_route_uses_message_key(client):
    r = client.get("/health/extra")
    assert r.status_code == 404
    assert r.json()["message"] == "Not Found"
    assert r.json()["request_id"] == r.headers["x-request-id"]


def test_task_handlers_run_off_the_event_loop():
    # registry calls block on a threading lock, so handlers must be sync
    # functions that FastAPI dispatches to its threadpool
    from tasksim.routers.tasks import router

    assert router.routes
    for route in router.routes:
        assert not inspect.iscoroutinefunction(route.endpoint), route.path
