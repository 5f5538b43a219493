"""HTTP client for the tool results (history) API."""

import httpx

from devicelab.config import settings
from devicelab.core.retry import RetryPolicy
from devicelab.schemas.test_matrix import History, ListHistoriesResponse
from devicelab.services.api_client import BaseApiClient, google_api_headers


class ToolResultsClient(BaseApiClient):
    """HTTP client for tool results histories."""

    service_name = "Tool results"

    def __init__(
        self,
        project_id: str,
        base_url: str | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            base_url=base_url or settings.TOOL_RESULTS_API_URL,
            headers=google_api_headers(),
            retry_policy=retry_policy,
            transport=transport,
        )
        self.project_id = project_id

    async def list_histories(self, name: str | None = None, page_size: int = 100) -> ListHistoriesResponse:
        params: dict[str, str | int] = {"pageSize": page_size}
        if name is not None:
            params["filterByName"] = name
        response = await self._request(
            "GET", f"projects/{self.project_id}/histories", params=params
        )
        return ListHistoriesResponse.model_validate(response.json())

    async def create_history(self, history: History, request_id: str | None = None) -> History:
        params = {"requestId": request_id} if request_id else None
        response = await self._request(
            "POST",
            f"projects/{self.project_id}/histories",
            params=params,
            json=history.to_api(),
        )
        return History.model_validate(response.json())
