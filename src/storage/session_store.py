"""
Session storage.

A keyed container of per-user conversation state. Every read-modify-write
goes through ``transaction``, which holds a per-key lock for its whole body
so two turns for the same user never interleave. Different users never
contend.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, Union

from loguru import logger

from core.models import Session, WorkflowKind

SessionMutator = Callable[[Session], Union[Session, Awaitable[Session]]]


class SessionTransaction:
    """Handle yielded by ``SessionStore.transaction``; assign ``session`` to commit."""

    def __init__(self, session: Session):
        self.original = session
        self.session = session

    @property
    def changed(self) -> bool:
        return self.session != self.original


class SessionStore(ABC):
    """
    Storage interface for sessions.

    Implementations must make ``transaction`` atomic per key: the session
    assigned to the transaction is committed only if the block exits
    cleanly, and no other transaction on the same key runs meanwhile.
    """

    def __init__(self, workflow: WorkflowKind = WorkflowKind.CBSE):
        self.workflow = workflow

    @abstractmethod
    async def get(self, user_id: str) -> Session:
        """Return the committed session, creating it on first contact."""

    @abstractmethod
    def transaction(self, user_id: str) -> "AsyncIterator[SessionTransaction]":
        """Async context manager giving exclusive access to one session."""

    async def update(self, user_id: str, mutator: SessionMutator) -> Session:
        """
        Atomically apply ``mutator`` to a session.

        Args:
            user_id: Session key
            mutator: Function (sync or async) returning the new session

        Returns:
            The committed session
        """
        async with self.transaction(user_id) as txn:
            result = mutator(txn.session)
            if inspect.isawaitable(result):
                result = await result
            txn.session = result
        return txn.session

    async def reset(self, user_id: str, keep_history: bool = True) -> Session:
        """Reset a session to its start state, keeping history by default."""
        return await self.update(user_id, lambda s: s.reset(keep_history=keep_history))

    def new_session(self, user_id: str) -> Session:
        return Session.initial(user_id, self.workflow)


class InMemorySessionStore(SessionStore):
    """In-process session map with one asyncio lock per user id."""

    def __init__(self, workflow: WorkflowKind = WorkflowKind.CBSE):
        super().__init__(workflow)
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        return self._locks.setdefault(user_id, asyncio.Lock())

    def _load(self, user_id: str) -> Session:
        session = self._sessions.get(user_id)
        if session is None:
            session = self.new_session(user_id)
            self._sessions[user_id] = session
            logger.debug(f"Created session for user {user_id}")
        return session

    async def get(self, user_id: str) -> Session:
        # Sessions are immutable, so an unlocked read is a consistent snapshot
        return self._load(user_id)

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncIterator[SessionTransaction]:
        async with self._lock_for(user_id):
            txn = SessionTransaction(self._load(user_id))
            yield txn
            self._sessions[user_id] = txn.session

    def put(self, session: Session) -> None:
        """Replace a stored session wholesale (imports and tests)."""
        self._sessions[session.user_id] = session

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
