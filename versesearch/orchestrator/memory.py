"""
In-memory conversation memory for follow-up context.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class Message:
    """Single chat message."""

    role: str
    content: str


class ConversationMemory:
    """Sliding window of the last N messages of one conversation."""

    def __init__(self, max_messages: int = 20):
        self._messages: List[Message] = []
        self.max_messages = max_messages

    def __len__(self) -> int:
        return len(self._messages)

    def add(self, role: str, content: str) -> None:
        self._messages.append(Message(role=role, content=content))
        if len(self._messages) > self.max_messages:
            self._messages = self._messages[-self.max_messages :]

    def add_user(self, content: str) -> None:
        self.add("user", content)

    def add_assistant(self, content: str) -> None:
        self.add("assistant", content)

    def messages(self, last_n: int | None = None) -> List[Message]:
        if last_n is None:
            return list(self._messages)
        return self._messages[-last_n:] if last_n > 0 else []

    def get_history(self, last_n: int = 10) -> List[dict]:
        """Return the last N messages as role/content dicts, oldest first."""
        return [{"role": m.role, "content": m.content} for m in self.messages(last_n)]

    def clear(self) -> None:
        self._messages.clear()
