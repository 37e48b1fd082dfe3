"""Map upstream image API payloads onto ImageReference values."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from models.image_reference import ImageReference
from services.errors import SourceMalformed

LOGGER = logging.getLogger(__name__)
DEFAULT_URL_TEMPLATE = "https://i.imgur.com/{id}.png"


def _descriptor_list(payload: Any) -> List[Any]:
    """Return the descriptor list from a bare list or a ``{"data": [...]}`` envelope."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    raise SourceMalformed("Upstream payload is neither a list nor a data envelope.")


def _identifier(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    text = str(value).strip()
    return text or None


def parse_descriptor(descriptor: Any, url_template: str = DEFAULT_URL_TEMPLATE) -> Optional[ImageReference]:
    """Map one upstream descriptor, or return None when it has no usable image.

    Albums are represented by their cover image. Explicit ``link``/``url``
    fields win over the template, except for albums whose link points at the
    album page rather than an image.
    """
    if not isinstance(descriptor, dict):
        return None

    if descriptor.get("is_album"):
        cover = _identifier(descriptor.get("cover"))
        if cover is None:
            return None
        return ImageReference(id=cover, url=url_template.format(id=cover))

    image_id = _identifier(descriptor.get("id"))
    if image_id is None:
        return None

    url = descriptor.get("link") or descriptor.get("url")
    if not isinstance(url, str) or not url.strip():
        url = url_template.format(id=image_id)
    return ImageReference(id=image_id, url=url.strip())


def parse_image_payload(payload: Any, url_template: str = DEFAULT_URL_TEMPLATE) -> List[ImageReference]:
    """Return every mappable image in ``payload``, in upstream order.

    Raises:
        SourceMalformed: If the payload has the wrong shape, or it lists
            descriptors and none of them can be mapped.
    """
    descriptors = _descriptor_list(payload)
    references: List[ImageReference] = []
    skipped = 0
    for descriptor in descriptors:
        reference = parse_descriptor(descriptor, url_template)
        if reference is None:
            skipped += 1
            continue
        references.append(reference)

    if skipped:
        LOGGER.warning("Skipped %d unmappable upstream descriptor(s)", skipped)
    if descriptors and not references:
        raise SourceMalformed("No upstream descriptor could be mapped to an image.")
    return references
