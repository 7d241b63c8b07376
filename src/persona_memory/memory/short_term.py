from __future__ import annotations

import dataclasses
import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Iterable, List, Mapping, Optional, Union

from persona_memory.errors import InvalidTurn
from persona_memory.memory.models import Turn

log = logging.getLogger(__name__)

TurnLike = Union[Turn, Mapping[str, Any]]


class ShortTermQueue:
    """Bounded FIFO of the most recent dialogue turns.

    Eviction is strictly oldest-first; no priority is involved.
    """

    def __init__(self, max_size: int = 10, clock: Callable[[], float] = time.time,
                 turns: Optional[Iterable[Turn]] = None) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self.max_size = max_size
        self._clock = clock
        self._turns: Deque[Turn] = deque()
        for turn in turns or ():
            self.push(turn)

    def push(self, turn: TurnLike, max_size: Optional[int] = None) -> Turn:
        """Append *turn* at the tail and evict from the head past *max_size*.

        A caller-supplied timestamp is kept; a missing one is set from the
        clock.  Returns the stored turn.

        Raises:
            InvalidTurn: If the turn has no role or no content.
        """
        if isinstance(turn, Mapping):
            turn = Turn.from_dict(turn)
        elif not isinstance(turn, Turn):
            raise InvalidTurn(f"Expected a Turn or mapping, got {type(turn).__name__}")
        if turn.timestamp is None:
            turn = dataclasses.replace(turn, timestamp=self._clock())
        limit = self.max_size if max_size is None else max_size
        if limit < 1:
            raise ValueError(f"max_size must be >= 1, got {limit}")
        self._turns.append(turn)
        while len(self._turns) > limit:
            dropped = self._turns.popleft()
            log.debug("Short-term queue evicted %s turn from %.3f", dropped.role.value, dropped.timestamp)
        return turn

    def read(self) -> List[Turn]:
        """Turns in insertion order, oldest first."""
        return list(self._turns)

    def clear(self) -> None:
        self._turns.clear()

    def size(self) -> int:
        return len(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self):
        return iter(list(self._turns))
