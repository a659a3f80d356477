"""
Orchestrator: conversation memory and session bookkeeping around search.
"""

from .memory import ConversationMemory, Message
from .sessions import SessionStore

__all__ = [
    "ConversationMemory",
    "Message",
    "SessionStore",
]
