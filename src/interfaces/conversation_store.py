"""Abstract base class for conversation-history persistence.

Conversations are keyed by a caller-supplied ``conversation_id``; nothing
about a conversation lives in process memory between requests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.document import ConversationTurn


class IConversationStore(ABC):
    """Contract for storing and loading chat messages."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create the schema if it does not exist yet."""

    @abstractmethod
    async def get_recent_messages(
        self, conversation_id: str, limit: int = 10
    ) -> list[ConversationTurn]:
        """Return up to *limit* most recent messages, oldest first."""

    @abstractmethod
    async def append_messages(
        self, conversation_id: str, turns: list[ConversationTurn]
    ) -> None:
        """Append *turns* to the conversation in order."""
