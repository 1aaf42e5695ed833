"""
Per-customer conversational session state and the in-memory session store.

A session carries the context that lets a follow-up message reuse the previous
turn: the last resolved intent, time range and entity selection, at most one open
clarification question, default preferences and a bounded list of conversation
summaries. Carried context expires after an idle period; language and timezone
survive expiry.
"""

import asyncio
import uuid
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from .logging import get_logger
from .masking import mask_customer_id
from .settings import config

logger = get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TimeRange:
    """Inclusive date interval with ``YYYY-MM-DD`` bounds."""

    from_date: str
    to_date: str

    def __str__(self) -> str:
        return f"{self.from_date} to {self.to_date}"

    def to_dict(self) -> Dict[str, str]:
        return {"fromDate": self.from_date, "toDate": self.to_date}


@dataclass
class EntityHints:
    """Identifiers the customer explicitly named in a message."""

    account_ids: List[str] = field(default_factory=list)
    card_ids: List[str] = field(default_factory=list)
    other_entities: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["EntityHints"]:
        if not data:
            return None
        return cls(
            account_ids=[str(v) for v in data.get("accountIds") or []],
            card_ids=[str(v) for v in data.get("cardIds") or []],
            other_entities={
                str(k): [str(v) for v in (vals or [])]
                for k, vals in (data.get("otherEntities") or {}).items()
            },
        )

    def is_empty(self) -> bool:
        return not (self.account_ids or self.card_ids or any(self.other_entities.values()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accountIds": list(self.account_ids),
            "cardIds": list(self.card_ids),
            "otherEntities": {k: list(v) for k, v in self.other_entities.items()},
        }


@dataclass
class ResolvedIntent:
    """The domain and metric of the last answered banking question."""

    domain: str
    metric: str
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ClarificationState:
    """The single open clarification question of a session."""

    question: str
    expected_answer_type: str
    clarification_context: Optional[str]
    asked_at: datetime = field(default_factory=_utcnow)


@dataclass
class SessionDefaults:
    transaction_status: str = "posted"
    currency_preference: Optional[str] = None
    paging_policy: str = "auto"
    page_size: int = 10


@dataclass
class ConversationSummary:
    user_message: str
    response_summary: str
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class SessionContext:  # pylint: disable=too-many-instance-attributes
    # One field per piece of carried conversational state.
    """
    Conversational state for one customer.

    ``customer_id`` never changes after creation. ``clarification_state`` is set
    only by the clarification coordinator and cleared either by the coordinator or
    by ``clear_carried_context`` on idle expiry; a non-None value means the session
    is awaiting an answer.
    """

    customer_id: str
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    language_code: Optional[str] = None
    language_confidence: Optional[float] = None
    timezone: Optional[str] = None
    last_resolved_intent: Optional[ResolvedIntent] = None
    last_resolved_time_range: Optional[TimeRange] = None
    last_selected_entities: Optional[EntityHints] = None
    clarification_state: Optional[ClarificationState] = None
    defaults: Optional[SessionDefaults] = None
    conversation_summaries: List[ConversationSummary] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    last_accessed_at: datetime = field(default_factory=_utcnow)

    def touch(self) -> None:
        """Record an access now."""
        self.last_accessed_at = _utcnow()

    @property
    def awaiting_clarification(self) -> bool:
        return self.clarification_state is not None

    def is_idle_expired(self, ttl: timedelta, now: Optional[datetime] = None) -> bool:
        """Return True if the session has been idle for longer than ``ttl``."""
        return ((now or _utcnow()) - self.last_accessed_at) > ttl

    def clear_carried_context(self) -> None:
        """Forget follow-up context; language, timezone and history are kept."""
        self.last_resolved_intent = None
        self.last_resolved_time_range = None
        self.last_selected_entities = None
        self.clarification_state = None


class SessionStore:
    """
    In-memory session store keyed by customer id.

    Sessions are kept in least-recently-accessed order and the oldest is evicted
    once ``max_entries`` is exceeded. Idle expiry of carried context is applied by
    the pipeline when a session is loaded, so a returning customer keeps their
    language and timezone.
    """

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries or config.session_max_entries
        self._sessions: "OrderedDict[str, SessionContext]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}

    def get_or_create(self, customer_id: str) -> SessionContext:
        """
        Return the customer's session, creating it on first contact.

        The session is not touched here; idle time is measured against the
        previous access when the context is loaded.
        """
        session = self._sessions.get(customer_id)
        if session is not None:
            self._sessions.move_to_end(customer_id)
            logger.debug(
                "session.retrieved",
                customer_id=mask_customer_id(customer_id),
                session_id=session.session_id,
            )
            return session

        session = SessionContext(customer_id=customer_id, timezone=config.default_timezone)
        self._sessions[customer_id] = session
        self._evict_overflow()
        logger.info(
            "session.created",
            customer_id=mask_customer_id(customer_id),
            session_id=session.session_id,
        )
        return session

    def get(self, customer_id: str) -> Optional[SessionContext]:
        session = self._sessions.get(customer_id)
        if session is not None:
            self._sessions.move_to_end(customer_id)
        return session

    def save(self, session: SessionContext) -> None:
        """Store a session and mark it accessed."""
        if session is None or not session.customer_id:
            logger.warning("session.save_invalid")
            return
        session.touch()
        self._sessions[session.customer_id] = session
        self._sessions.move_to_end(session.customer_id)
        self._evict_overflow()
        logger.debug(
            "session.saved",
            customer_id=mask_customer_id(session.customer_id),
            session_id=session.session_id,
        )

    def invalidate(self, customer_id: str) -> bool:
        """Remove the customer's session. Returns True if one existed."""
        removed = self._sessions.pop(customer_id, None)
        lock = self._locks.get(customer_id)
        if lock is not None and not lock.locked():
            del self._locks[customer_id]
        logger.info(
            "session.invalidated",
            customer_id=mask_customer_id(customer_id),
            existed=removed is not None,
        )
        return removed is not None

    def active_count(self) -> int:
        return len(self._sessions)

    @asynccontextmanager
    async def lock(self, customer_id: str) -> AsyncIterator[None]:
        """Serialize read-modify-write of one customer's session."""
        lock = self._locks.setdefault(customer_id, asyncio.Lock())
        async with lock:
            yield

    def _evict_overflow(self) -> None:
        while len(self._sessions) > self.max_entries:
            customer_id, session = self._sessions.popitem(last=False)
            lock = self._locks.get(customer_id)
            if lock is not None and not lock.locked():
                del self._locks[customer_id]
            logger.debug(
                "session.evicted",
                customer_id=mask_customer_id(customer_id),
                session_id=session.session_id,
            )
