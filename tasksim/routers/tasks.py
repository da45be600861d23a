import logging
import re
import uuid
from fastapi import APIRouter, Depends, HTTPException, Request
from ..models import DeleteResponse, ErrorResponse
from ..responses import IndentedORJSONResponse
from ..storage.repo import TaskRegistry
from worker.runner import TaskRunner

logger = logging.getLogger(__name__)

router = APIRouter(default_response_class=IndentedORJSONResponse)

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}

_HEX_UUID = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
# canonical, {canonical}, urn:uuid:canonical, or 32 bare hex digits
TASK_ID_RE = re.compile(rf"(?:urn:uuid:)?{_HEX_UUID}|\{{{_HEX_UUID}\}}|[0-9a-f]{{32}}", re.IGNORECASE)


def get_registry(request: Request) -> TaskRegistry:
    return request.app.state.registry


def get_runner(request: Request) -> TaskRunner:
    return request.app.state.runner


def parse_task_id(task_id: str, method: str) -> uuid.UUID:
    if not TASK_ID_RE.fullmatch(task_id):
        logger.warning("%s /{task_id}: invalid task id id=%r", method, task_id)
        raise HTTPException(status_code=400, detail="Invalid task ID format")
    return uuid.UUID(task_id.lower())


@router.post("/", status_code=201)
def create_task(registry: TaskRegistry = Depends(get_registry), runner: TaskRunner = Depends(get_runner)):
    rec = registry.create()
    runner.submit(rec.id)
    logger.info("POST /: new task created task_id=%s", rec.id)
    return IndentedORJSONResponse(status_code=201, content=rec.to_json_dict())


@router.get("/{task_id}", responses=ERROR_RESPONSES)
def get_task(task_id: str, registry: TaskRegistry = Depends(get_registry)):
    tid = parse_task_id(task_id, "GET")
    rec = registry.get(tid)
    if not rec:
        logger.info("GET /{task_id}: task not found task_id=%s", tid)
        raise HTTPException(status_code=404, detail="Task not found")
    logger.info("GET /{task_id}: task retrieved task_id=%s status=%s", tid, rec.status.value)
    return IndentedORJSONResponse(content=rec.to_json_dict())


@router.delete("/{task_id}", response_model=DeleteResponse, responses=ERROR_RESPONSES)
def delete_task(task_id: str, registry: TaskRegistry = Depends(get_registry)):
    tid = parse_task_id(task_id, "DELETE")
    if not registry.mark_deleted(tid):
        logger.info("DELETE /{task_id}: task not found for deletion task_id=%s", tid)
        raise HTTPException(status_code=404, detail="Task not found")
    return DeleteResponse(message=f"Task '{task_id}' marked for deletion. It will cease processing shortly.")
