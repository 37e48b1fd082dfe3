"""Server-to-viewer websocket message schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from models.image_reference import ImageReference


class ImageMessage(BaseModel):
	"""One new image for the wall."""

	type: Literal["image"] = "image"
	id: str
	url: str

	@classmethod
	def from_reference(cls, reference: ImageReference) -> "ImageMessage":
		return cls(id=reference.id, url=reference.url)


class ViewerCountMessage(BaseModel):
	"""How many viewers are currently watching the wall."""

	type: Literal["viewers"] = "viewers"
	count: int
