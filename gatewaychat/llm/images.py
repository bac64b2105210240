"""
Reconstruction of streamed image URLs.

Gateways deliver generated images as ``images[].image_url.url`` chunks keyed
by index.  A chunk is either a self-contained URL (attachment path or
absolute URL), the start of a base64 ``data:`` URI, or a continuation of one.
Each index owns an ``ImageSlot`` that classifies incoming chunks in that
order; a slot holding a complete URL never accepts further data.
"""

from __future__ import annotations

import logging
from enum import Enum

from gatewaychat.types import ImageRef

logger = logging.getLogger(__name__)

COMPLETE_URL_PREFIXES = ("/api/v1/attachments/", "/v1/attachments/", "http")
DATA_URI_PREFIX = "data:"
DATA_IMAGE_MARKER = "data:image/"


class SlotState(str, Enum):
    FRESH = "fresh"
    CONTINUING = "continuing"
    COMPLETE = "complete"


def is_complete_url(chunk: str) -> bool:
    return chunk.lstrip().startswith(COMPLETE_URL_PREFIXES)


def is_data_uri_start(chunk: str) -> bool:
    return chunk.lstrip().startswith(DATA_URI_PREFIX) or DATA_IMAGE_MARKER in chunk


class ImageSlot:
    """Owns one ``ImageRef`` and the state of its reconstruction."""

    def __init__(self) -> None:
        self.ref = ImageRef()
        self.state = SlotState.FRESH

    def feed(self, chunk: str) -> None:
        trimmed = chunk.lstrip()

        if is_complete_url(chunk):
            self.ref.url = trimmed
            self.state = SlotState.COMPLETE
            return

        if is_data_uri_start(chunk) and self.ref.url:
            marker = chunk.find(DATA_IMAGE_MARKER)
            self.ref.url = chunk[marker:] if marker != -1 else trimmed
            self.state = SlotState.CONTINUING
            return

        if self.state is SlotState.COMPLETE:
            logger.debug("Ignoring image chunk for completed URL (%d chars)", len(chunk))
            return

        self.ref.url += chunk
        self.state = SlotState.CONTINUING


class ImageFragmentReconstructor:
    """Routes image deltas to per-index slots for one iteration."""

    def __init__(self) -> None:
        self._slots: dict[int, ImageSlot] = {}

    def feed(self, delta: dict) -> None:
        index = delta.get("index") or 0
        slot = self._slots.setdefault(index, ImageSlot())
        url = (delta.get("image_url") or {}).get("url")
        if isinstance(url, str) and url:
            slot.feed(url)

    def slot(self, index: int) -> ImageSlot | None:
        return self._slots.get(index)

    def images(self) -> list[ImageRef]:
        return [self._slots[i].ref for i in sorted(self._slots)]

    def __len__(self) -> int:
        return len(self._slots)
