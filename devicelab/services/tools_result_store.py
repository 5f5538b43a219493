"""Lookup of tool results history ids per package name."""

import logging
import uuid

from devicelab.core.lazy import KeyedLazyCache
from devicelab.schemas.test_matrix import History
from devicelab.services.tool_results_client import ToolResultsClient

logger = logging.getLogger(__name__)


class ToolsResultStore:
    """Finds or creates the history of a package, once per package and store."""

    def __init__(self, client: ToolResultsClient):
        self.client = client
        self._history_ids: KeyedLazyCache[str, str] = KeyedLazyCache(self._get_or_create_history)

    async def get_history_id(self, name: str) -> str:
        logger.info(f"Finding history id for {name}")
        return await self._history_ids.get(name)

    async def _get_or_create_history(self, name: str) -> str:
        # there might be many, choose the first one
        existing = await self.client.list_histories(name=name)
        if existing.histories:
            history_id = existing.histories[0].history_id
            if history_id is None:
                raise ValueError(f"History for {name} has no id")
            logger.info(f"Found history id {history_id} for {name}")
            return history_id

        created = await self.client.create_history(
            History(name=name, display_name=name, test_platform="android"),
            request_id=str(uuid.uuid4()),
        )
        if created.history_id is None:
            raise ValueError(f"Created history for {name} has no id")
        logger.info(f"Created history {created.history_id} for {name}")
        return created.history_id
