"""Test run request/response schemas."""

from pydantic import BaseModel, Field


class RunCreate(BaseModel):
    """Schema for requesting a test run of a CI run's artifacts."""

    target_run_id: str = Field(
        ...,
        min_length=1,
        pattern=r"^[A-Za-z0-9_-]+$",
        description="Workflow run id whose artifacts are tested",
    )


class RunAccepted(BaseModel):
    """Schema for an enqueued test run."""

    target_run_id: str
    task_id: str
