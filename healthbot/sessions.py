from __future__ import annotations

import asyncio
import weakref

from .models import ConversationId, Session


class SessionStore:
    """In-memory owner of in-progress interviews, one per conversation.

    Callers serialize work on a conversation with ``lock(conversation_id)``.
    Locks are held weakly so idle conversations do not accumulate them.
    """

    def __init__(self) -> None:
        self._sessions: dict[ConversationId, Session] = {}
        self._locks: weakref.WeakValueDictionary[ConversationId, asyncio.Lock] = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._sessions

    def get(self, conversation_id: ConversationId) -> Session | None:
        return self._sessions.get(conversation_id)

    def create(self, conversation_id: ConversationId) -> Session:
        session = Session(conversation_id=conversation_id)
        self._sessions[conversation_id] = session
        return session

    def delete(self, conversation_id: ConversationId) -> None:
        self._sessions.pop(conversation_id, None)

    def lock(self, conversation_id: ConversationId) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock
