"""Fetch image references from the upstream API and filter recent repeats."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import httpx

from models.image_reference import ImageReference
from services.errors import SourceMalformed, SourceUnavailable
from services.source.recent_set import RecentSet
from services.source.response_parser import DEFAULT_URL_TEMPLATE, parse_image_payload

LOGGER = logging.getLogger(__name__)


class ImageSourceClient:
    """Poll the upstream image API and yield only images not shown recently."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        endpoint: str,
        recent: RecentSet,
        url_template: str = DEFAULT_URL_TEMPLATE,
        auth_header: Optional[str] = None,
    ) -> None:
        """Initialize the client.

        Args:
            http_client: Shared async HTTP client; its lifetime belongs to the caller.
            endpoint: Upstream URL returning a list of image descriptors.
            recent: Dedup window, owned exclusively by this client.
            url_template: Fallback URL pattern for descriptors without a link.
            auth_header: Optional ``Authorization`` header value (e.g. ``Client-ID abc``).
        """
        self.http_client = http_client
        self.endpoint = endpoint
        self.recent = recent
        self.url_template = url_template
        self.auth_header = auth_header
        self.polls = 0
        self.failures = 0
        self.accepted = 0
        self.duplicates = 0

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.auth_header:
            headers["Authorization"] = self.auth_header
        return headers

    async def _fetch(self) -> List[ImageReference]:
        try:
            response = await self.http_client.get(self.endpoint, headers=self._headers())
        except httpx.HTTPError as exc:
            raise SourceUnavailable(f"Upstream request failed: {exc!r}") from exc

        if not response.is_success:
            raise SourceUnavailable(f"Upstream returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise SourceMalformed("Upstream body is not valid JSON") from exc
        return parse_image_payload(payload, self.url_template)

    async def poll(self) -> List[ImageReference]:
        """Fetch one batch and return the images not present in the recent set.

        Accepted images are recorded in the recent set, evicting the oldest
        entries once it is full.

        Raises:
            SourceUnavailable: On transport errors or non-2xx responses.
            SourceMalformed: When the response cannot be parsed.
        """
        self.polls += 1
        try:
            candidates = await self._fetch()
        except (SourceUnavailable, SourceMalformed):
            self.failures += 1
            raise

        fresh: List[ImageReference] = []
        for candidate in candidates:
            if self.recent.add(candidate.id):
                fresh.append(candidate)
            else:
                self.duplicates += 1
        self.accepted += len(fresh)
        LOGGER.debug("Poll returned %d candidate(s), %d new", len(candidates), len(fresh))
        return fresh

    def stats(self) -> Dict[str, int]:
        """Return counters for the stats endpoint."""
        return {
            "polls": self.polls,
            "failures": self.failures,
            "accepted": self.accepted,
            "duplicates": self.duplicates,
            "recent_size": len(self.recent),
        }
