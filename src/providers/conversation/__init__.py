"""Conversation-history store implementations (IConversationStore)."""

from src.providers.conversation.sqlite_conversation_store import SQLiteConversationStore

__all__ = ["SQLiteConversationStore"]
