"""Test run endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, status

from devicelab.schemas.run import RunAccepted, RunCreate
from devicelab.schemas.test_result import parse_test_result
from devicelab.services.storage_service import storage_service
from devicelab.services.test_runner import result_json_path
from devicelab.tasks.test_run_tasks import run_device_tests_task

router = APIRouter()
logger = structlog.get_logger()


@router.post("", response_model=RunAccepted, status_code=status.HTTP_202_ACCEPTED)
async def create_run(run: RunCreate) -> RunAccepted:
    """
    Enqueue device tests for the artifacts of a CI run.

    The run happens on a worker; poll the result endpoint for the outcome.
    """
    task = run_device_tests_task.delay(run.target_run_id)
    logger.info("Enqueued device test run", target_run_id=run.target_run_id, task_id=task.id)
    return RunAccepted(target_run_id=run.target_run_id, task_id=task.id)


@router.get("/{target_run_id}/result", status_code=status.HTTP_200_OK)
async def get_run_result(target_run_id: str) -> dict[str, Any]:
    """Get the stored result of a finished test run."""
    try:
        data = await storage_service.download(result_json_path(target_run_id))
    except FileNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No result for run {target_run_id}",
        )

    result = parse_test_result(data)
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)
