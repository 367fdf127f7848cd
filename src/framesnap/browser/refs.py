# Snapshot references and the per-cycle frame table
# Changes: Initial creation with FrameTable, Reference parsing and ReferenceResolver
#
# A reference looks like "s3e12" (root frame) or "f2s3e12" (third frame of the
# snapshot). "s3" is the snapshot cycle that produced it, "e12" the element
# inside that frame. Frame indices only mean something within one cycle.
"""Map snapshot reference strings back to Playwright locators."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Locator

from .errors import InvalidReferenceError, StaleReferenceError

logger = logging.getLogger(__name__)

# DOM attribute stamped on every element that received a reference.
REF_ATTRIBUTE = "data-framesnap-ref"

_REF_PATTERN = re.compile(r"^(?:f(?P<frame>\d+))?(?P<local>s(?P<cycle>\d+)e\d+)$")


@dataclass
class FrameTable:
    """Ordered frame handles of the most recent snapshot cycle.

    Index 0 is always the page's main frame. Frames are appended in
    depth-first, left-to-right order while a snapshot is rendered, so a
    frame's index is its position in that walk. Starting a new cycle or
    navigating the page throws the whole table away.
    """

    cycle: int = 0
    frames: list[Any] = field(default_factory=list)
    valid: bool = False

    def begin_cycle(self) -> int:
        """Reset the table for a new snapshot and return the new cycle number."""
        self.cycle += 1
        self.frames = []
        self.valid = True
        return self.cycle

    def add(self, frame: Any) -> int:
        """Append a frame handle and return its index."""
        self.frames.append(frame)
        return len(self.frames) - 1

    def get(self, index: int) -> Any | None:
        """Frame handle at ``index``, or None if the table has no such entry."""
        if not self.valid or index < 0 or index >= len(self.frames):
            return None
        return self.frames[index]

    def invalidate(self) -> None:
        """Forget every frame; references from the last cycle become stale."""
        self.frames = []
        self.valid = False

    def __len__(self) -> int:
        return len(self.frames)


@dataclass(frozen=True)
class Reference:
    """A parsed snapshot reference."""

    frame_index: int
    local_ref: str
    cycle: int

    @classmethod
    def parse(cls, ref: str) -> Reference:
        match = _REF_PATTERN.match(ref.strip())
        if match is None:
            raise InvalidReferenceError(ref, "not a snapshot reference")
        frame = match.group("frame")
        return cls(
            frame_index=int(frame) if frame is not None else 0,
            local_ref=match.group("local"),
            cycle=int(match.group("cycle")),
        )

    def __str__(self) -> str:
        if self.frame_index:
            return f"f{self.frame_index}{self.local_ref}"
        return self.local_ref


def ref_selector(local_ref: str) -> str:
    """CSS selector matching the element stamped with ``local_ref``."""
    return f'[{REF_ATTRIBUTE}="{local_ref}"]'


def qualify_ref(local_ref: str, frame_index: int) -> str:
    """Namespace a frame-local reference with its frame index."""
    if frame_index > 0:
        return f"f{frame_index}{local_ref}"
    return local_ref


class ReferenceResolver:
    """Resolves references against the frame table of the current cycle.

    Resolution builds a locator and nothing else; whether the element still
    exists is only found out when the locator is used.
    """

    def __init__(self, table: FrameTable) -> None:
        self._table = table

    def resolve(self, ref: str) -> Locator:
        reference = Reference.parse(ref)
        table = self._table

        if not table.valid:
            raise StaleReferenceError(ref, "no snapshot has been taken since the page last navigated")
        if reference.cycle != table.cycle:
            raise StaleReferenceError(
                ref, f"it comes from snapshot {reference.cycle}, the current snapshot is {table.cycle}"
            )

        frame = table.get(reference.frame_index)
        if frame is None:
            raise StaleReferenceError(ref, f"frame f{reference.frame_index} is not part of the current snapshot")
        if frame.is_detached():
            raise StaleReferenceError(ref, f"frame f{reference.frame_index} has been detached")

        logger.debug("Resolved %s to frame %d", ref, reference.frame_index)
        return frame.locator(ref_selector(reference.local_ref))


__all__ = [
    "REF_ATTRIBUTE",
    "FrameTable",
    "Reference",
    "ReferenceResolver",
    "ref_selector",
    "qualify_ref",
]
