from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ImageReference:
    """One displayable image as reported by the upstream API.

    Attributes:
        id: Stable upstream identifier, used for deduplication.
        url: Direct URL the browser loads.
    """

    id: str
    url: str
