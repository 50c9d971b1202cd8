"""HTTP client for the trainee profile service."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from recordsync.adapters.http_resilience import ResilientClient
from recordsync.domain.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from recordsync.config.http_resilience import ResilienceConfig
    from recordsync.config.profile import ProfileServiceConfig

log = getLogger(__name__)


class ProfileServiceClient:
    """Idempotent upserts and deletes against ``/api/{path}/{personId}[/{memberId}]``."""

    def __init__(
        self,
        config: ProfileServiceConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] = ResilientClient,
    ) -> None:
        self._config = config
        self._client = client_factory(config.resilience)

    def close(self) -> None:
        self._client.close()

    def patch(self, api_path: str, person_id: str, payload: Mapping[str, object]) -> None:
        url = f"/api/{api_path}/{person_id}"
        response = self._send("PATCH", url, json=dict(payload))
        self._raise_for_status(response, url)

    def delete(self, api_path: str, person_id: str, member_id: str | None = None) -> bool:
        """Delete one entry, or all of a person's entries when ``member_id`` is omitted.

        Returns ``False`` when the service did not know the resource.
        """

        url = f"/api/{api_path}/{person_id}"
        if member_id is not None:
            url = f"{url}/{member_id}"
        response = self._send("DELETE", url)
        if response.status_code == httpx.codes.NOT_FOUND:
            log.info("Nothing to delete at %s", url)
            return False
        self._raise_for_status(response, url)
        return True

    def _send(self, method: str, url: str, *, json: object = None) -> httpx.Response:
        try:
            if json is None:
                return self._client.request(method, url)
            return self._client.request(method, url, json=json)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, url: str) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"Profile service rejected {url} with {response.status_code}"
            ) from exc
