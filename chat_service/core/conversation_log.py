"""
Conversation memory for the chat service.

Keeps the ordered turns of the conversation and hands out bounded context
windows for generation.
"""

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from itertools import islice
from threading import Lock
from typing import Deque, Dict, Iterable, List, Optional

from chat_service.utils.logger import get_logger

logger = get_logger(__name__)


class Role(str, Enum):
    """Author of a turn."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    """One message in the conversation."""

    role: Role
    content: str
    model: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        # Accept plain strings ("user") as well as Role members
        object.__setattr__(self, "role", Role(self.role))
        if self.content is None:
            raise ValueError("Turn content may be empty but not None")

    def to_message(self) -> Dict[str, str]:
        """Format the turn for the Ollama chat API."""
        return {"role": self.role.value, "content": self.content}


class ConversationLog:
    """
    Ordered, thread-safe store of conversation turns.

    Every read returns an independent copy. Retention is unbounded unless
    ``max_turns`` is given, in which case the oldest turns are evicted.
    """

    def __init__(self, max_turns: Optional[int] = None):
        """
        Initialize the conversation log.

        Args:
            max_turns: Maximum turns to retain; None or 0 keeps everything
        """
        self.max_turns = max_turns or None
        self._turns: Deque[Turn] = deque(maxlen=self.max_turns)
        self._lock = Lock()

        logger.info(f"ConversationLog initialized (max_turns: {self.max_turns or 'unbounded'})")

    def append(self, turn: Turn):
        """Add a turn to the end of the log."""
        with self._lock:
            self._turns.append(turn)

    def extend(self, turns: Iterable[Turn]):
        """
        Add several turns as one batch.

        No other append can land between them.
        """
        batch = list(turns)
        with self._lock:
            self._turns.extend(batch)
        logger.debug(f"Appended {len(batch)} turns")

    def recent(self, limit: int) -> List[Turn]:
        """
        Get the last ``limit`` turns, oldest first.

        Args:
            limit: Number of turns wanted; values <= 0 give an empty list

        Returns:
            Snapshot list of turns
        """
        if limit <= 0:
            return []

        with self._lock:
            start = max(len(self._turns) - limit, 0)
            return list(islice(self._turns, start, None))

    def all(self) -> List[Turn]:
        """Get every stored turn, oldest first."""
        with self._lock:
            return list(self._turns)

    def clear(self):
        """Remove every turn."""
        with self._lock:
            removed = len(self._turns)
            self._turns.clear()
        logger.info(f"Cleared conversation log ({removed} turns removed)")

    def __len__(self) -> int:
        with self._lock:
            return len(self._turns)
