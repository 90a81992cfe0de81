"""Generated results and the bounded recent-results list."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Iterator, List, Optional

REIMAGINED_PREFIX = "Reimagined: "


def annotate_prompt(prompt: str, from_upload: bool) -> str:
    """Return the prompt shown to the user for a result."""
    return f"{REIMAGINED_PREFIX}{prompt}" if from_upload else prompt


@dataclass(frozen=True)
class GenerationResult:
    """A finished generation."""

    image_url: str
    prompt: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    tx_hash: Optional[str] = None


class GenerationHistory:
    """Most-recent-first list of results, capped at ``capacity`` entries."""

    def __init__(self, capacity: int = 5) -> None:
        if capacity < 1:
            raise ValueError("history capacity must be at least 1")
        self.capacity = capacity
        self._items: Deque[GenerationResult] = deque(maxlen=capacity)

    def push(self, result: GenerationResult) -> None:
        # appendleft on a bounded deque drops the oldest entry from the right
        self._items.appendleft(result)

    @property
    def latest(self) -> Optional[GenerationResult]:
        return self._items[0] if self._items else None

    def get(self, index: int) -> GenerationResult:
        if index < 0 or index >= len(self._items):
            raise IndexError(f"no history entry at position {index}")
        return self._items[index]

    def items(self) -> List[GenerationResult]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[GenerationResult]:
        return iter(list(self._items))
