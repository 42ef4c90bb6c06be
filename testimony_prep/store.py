"""
Session Store
=============

Process-wide keyed session state with lazy TTL expiry.

SessionStore is the interface the rest of the service talks to; the
in-memory implementation takes an injected clock so expiry can be tested
without sleeping. Expired sessions are swept synchronously whenever a new
session is created. There is no locking: concurrent writers to the same
session race and the last write wins.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from .config import get_settings
from .errors import SessionNotFoundError
from .schemas import (
    Analysis,
    Contradiction,
    Document,
    Gap,
    PracticeExchange,
    Question,
    Session,
    SessionKind,
    SessionStatus,
    utc_now,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_TTL = timedelta(hours=24)


class SessionStore(ABC):
    """Storage interface for prep sessions"""

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        pass

    @abstractmethod
    def put(self, session: Session) -> Session:
        pass

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        pass

    @abstractmethod
    def list_sessions(self, kind: Optional[SessionKind] = None) -> List[Session]:
        """All sessions, newest first"""
        pass

    @abstractmethod
    def list_expired(self, now: Optional[datetime] = None) -> List[str]:
        pass

    def require(self, session_id: str, kind: Optional[SessionKind] = None) -> Session:
        """
        Get a session or raise.

        A session of another kind is reported as missing, so the witness and
        deposition APIs never see each other's sessions.
        """
        session = self.get(session_id)
        if session is None or (kind is not None and session.kind != kind):
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return session

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Delete expired sessions, returning how many were removed"""
        expired = self.list_expired(now)
        for session_id in expired:
            self.delete(session_id)
        if expired:
            logger.info(f"Swept {len(expired)} expired sessions")
        return len(expired)

    # -------------------------------------------------------------------------
    # Read-modify-write helpers
    # -------------------------------------------------------------------------

    def create_session(
        self,
        kind: SessionKind,
        subject_name: str,
        case_name: str,
        case_number: Optional[str] = None,
        deposition_date: Optional[datetime] = None,
    ) -> Session:
        self.sweep_expired()
        session = Session(
            kind=kind,
            subject_name=subject_name,
            case_name=case_name,
            case_number=case_number,
            deposition_date=deposition_date,
            created_at=self.now(),
        )
        return self.put(session)

    def update_session(self, session_id: str, **changes) -> Session:
        session = self.require(session_id)
        updated = session.model_copy(update=changes)
        return self.put(updated)

    def set_status(self, session_id: str, status: SessionStatus) -> Session:
        return self.update_session(session_id, status=status)

    def add_document(self, session_id: str, document: Document) -> Session:
        session = self.require(session_id)
        documents = list(session.documents) + [document]
        status = SessionStatus.UPLOADING if session.status == SessionStatus.SETUP else session.status
        return self.put(session.model_copy(update={"documents": documents, "status": status}))

    def update_document(self, session_id: str, document_id: str, **changes) -> Session:
        session = self.require(session_id)
        documents = [
            doc.model_copy(update=changes) if doc.id == document_id else doc
            for doc in session.documents
        ]
        return self.put(session.model_copy(update={"documents": documents}))

    def save_generation(
        self,
        session_id: str,
        questions: List[Question],
        gaps: List[Gap],
        contradictions: List[Contradiction],
        analysis: Optional[Analysis],
        status: SessionStatus = SessionStatus.READY,
    ) -> Session:
        """Persist a generation result in one write"""
        session = self.require(session_id)
        return self.put(session.model_copy(update={
            "questions": list(questions),
            "gaps": list(gaps),
            "contradictions": list(contradictions),
            "analysis": analysis,
            "status": status,
        }))

    def add_practice_exchange(self, session_id: str, exchange: PracticeExchange) -> Session:
        session = self.require(session_id)
        return self.put(session.model_copy(update={
            "practice_history": list(session.practice_history) + [exchange],
            "total_duration": session.total_duration + exchange.duration,
        }))

    def now(self) -> datetime:
        return utc_now()


class InMemorySessionStore(SessionStore):
    """
    Dict-backed store.

    Args:
        ttl: Session lifetime measured from created_at
        clock: Returns the current time (timezone-aware)
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Optional[Clock] = None):
        self.ttl = ttl
        self._clock = clock or utc_now
        self._sessions: Dict[str, Session] = {}

    def now(self) -> datetime:
        return self._clock()

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def put(self, session: Session) -> Session:
        self._sessions[session.id] = session
        return session

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def list_sessions(self, kind: Optional[SessionKind] = None) -> List[Session]:
        sessions = [
            s for s in self._sessions.values()
            if kind is None or s.kind == kind
        ]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    def list_expired(self, now: Optional[datetime] = None) -> List[str]:
        now = now or self.now()
        return [
            session_id for session_id, session in self._sessions.items()
            if now - session.created_at > self.ttl
        ]


_store: Optional[InMemorySessionStore] = None


def get_store() -> InMemorySessionStore:
    """Get the process-wide session store"""
    global _store
    if _store is None:
        _store = InMemorySessionStore(ttl=timedelta(hours=get_settings().session_ttl_hours))
    return _store
