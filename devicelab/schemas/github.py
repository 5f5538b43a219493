"""GitHub Actions artifact schemas."""

from pydantic import BaseModel, Field


class Artifact(BaseModel):
    """A build artifact uploaded by a workflow run."""

    id: int
    name: str
    url: str | None = None
    archive_download_url: str
    size_in_bytes: int | None = None
    expired: bool = False


class ArtifactsResponse(BaseModel):
    """Response of the list-artifacts endpoint."""

    total_count: int = 0
    artifacts: list[Artifact] = Field(default_factory=list)
