"""HTTP client for GitHub Actions artifacts."""

import logging
import tempfile
from typing import IO

import httpx

from devicelab.config import settings
from devicelab.core.retry import RetryPolicy
from devicelab.schemas.github import ArtifactsResponse
from devicelab.services.api_client import BaseApiClient

logger = logging.getLogger(__name__)

# Archives larger than this are spooled to disk while downloading
ARCHIVE_SPOOL_MAX_SIZE = 32 * 1024 * 1024

ARTIFACTS_PAGE_SIZE = 100


class GithubClient(BaseApiClient):
    """HTTP client for listing and downloading workflow run artifacts."""

    service_name = "GitHub"

    def __init__(
        self,
        owner: str | None = None,
        repo: str | None = None,
        token: str | None = None,
        base_url: str | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        owner = owner or settings.GITHUB_OWNER
        repo = repo or settings.GITHUB_REPO
        token = token if token is not None else settings.GITHUB_TOKEN
        headers = {"Accept": "application/vnd.github.v3+json"}
        if token:
            headers["Authorization"] = f"token {token}"
        super().__init__(
            base_url=f"{(base_url or settings.GITHUB_API_URL).rstrip('/')}/repos/{owner}/{repo}",
            headers=headers,
            retry_policy=retry_policy,
            transport=transport,
        )

    async def list_artifacts(self, run_id: str) -> ArtifactsResponse:
        """List every artifact of a workflow run, following the ``Link: rel="next"`` pages."""
        response = await self._request(
            "GET", f"actions/runs/{run_id}/artifacts", params={"per_page": ARTIFACTS_PAGE_SIZE}
        )
        result = ArtifactsResponse.model_validate(response.json())
        next_url = response.links.get("next", {}).get("url")
        while next_url:
            # the next link already carries the paging parameters
            response = await self._request("GET", next_url)
            result.artifacts.extend(ArtifactsResponse.model_validate(response.json()).artifacts)
            next_url = response.links.get("next", {}).get("url")
        logger.info(f"Run {run_id} has {len(result.artifacts)} artifacts")
        return result

    async def download_archive(self, url: str) -> IO[bytes]:
        """
        Download an artifact archive without holding it fully in memory.

        Args:
            url: The artifact's archive_download_url

        Returns:
            A seekable temporary file positioned at the start. The caller closes it.
        """

        async def send() -> IO[bytes]:
            buffer = tempfile.SpooledTemporaryFile(max_size=ARCHIVE_SPOOL_MAX_SIZE)
            try:
                async with self.client.stream("GET", self._url(url), follow_redirects=True) as response:
                    response.raise_for_status()
                    async for chunk in response.aiter_bytes():
                        buffer.write(chunk)
            except BaseException:
                buffer.close()
                raise
            buffer.seek(0)
            return buffer

        logger.info(f"Downloading artifact archive {url}")
        return await self.retry_policy.call(send)
