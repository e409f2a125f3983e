"""
Client for the metadata manager that refreshes derived policy metadata.
"""

import logging
from typing import Optional

import httpx

from policyledger.config import MetadataConfig


logger = logging.getLogger(__name__)


class MetadataUpdateError(Exception):
    """The metadata manager could not refresh the given policies."""


class MetadataManager:
    """Service for triggering metadata refreshes after policy writes."""

    def __init__(self, config: MetadataConfig):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def perform_metadata_update(self, project_id: str, policy_ids: list[str]) -> None:
        """
        Refresh the metadata derived from the given policies.

        Args:
            project_id: Warehouse project the policies live in.
            policy_ids: Policies whose metadata must be recomputed.

        Raises:
            MetadataUpdateError: On transport errors or a non-2xx response.
        """
        if not self.enabled:
            logger.debug(f"Metadata manager not configured, skipping refresh of {policy_ids}")
            return

        client = await self.get_client()
        try:
            response = await client.post(
                f"/projects/{project_id}/metadata:refresh",
                json={"policyIds": list(policy_ids)},
            )
        except httpx.HTTPError as e:
            raise MetadataUpdateError(f"Metadata update failed: {e}") from e

        if response.status_code >= 400:
            raise MetadataUpdateError(
                f"Metadata update failed with status {response.status_code}: {response.text}"
            )

        logger.info(f"Refreshed metadata for project {project_id}, policies {policy_ids}")
