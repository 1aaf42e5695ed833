"""
Per-request pipeline state and response types.

``OrchestrationState`` is created fresh for every message and passed by
reference through the stages. Each field has one writing stage; only the
session fields derived from it outlive the request.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..utils.session import EntityHints, ResolvedIntent, SessionContext, TimeRange
from .normalization.models import NormalizedData
from .normalization.raw import DOMAINS, RawResponse

UNKNOWN_DOMAIN = "UNKNOWN"
INTENT_DOMAINS = DOMAINS + (UNKNOWN_DOMAIN,)
METRICS = ("balance", "count", "sum", "max", "min", "average", "list")


@dataclass
class Intent:
    """One resolved request: which domain, what metric, and any hints."""

    domain: str
    metric: str
    time_range_hint: Optional[str] = None
    entity_hints: Optional[EntityHints] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_unknown(self) -> bool:
        return self.domain == UNKNOWN_DOMAIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "metric": self.metric,
            "timeRangeHint": self.time_range_hint,
            "entityHints": self.entity_hints.to_dict() if self.entity_hints else None,
            "parameters": dict(self.parameters),
        }


@dataclass
class ChatResponse:
    """What the pipeline returns for one message."""

    answer: str
    correlation_id: str
    explanation: Optional[str] = None
    tables: List[Dict[str, Any]] = field(default_factory=list)
    language: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "explanation": self.explanation,
            "tables": self.tables,
            "correlationId": self.correlation_id,
            "language": self.language,
        }


@dataclass
class OrchestrationState:  # pylint: disable=too-many-instance-attributes
    # Working record for one request; fields are grouped by the stage that writes them.
    """Working record for one request."""

    customer_id: str
    correlation_id: str
    message_text: str
    session: SessionContext

    # LOAD_CONTEXT
    awaiting_clarification: bool = False
    carried_intent: Optional[ResolvedIntent] = None
    carried_time_range: Optional[TimeRange] = None

    # APPLY_CLARIFICATION
    clarification_question: Optional[str] = None
    clarification_answer: Optional[str] = None
    clarification_context: Optional[str] = None
    expected_answer_type: Optional[str] = None

    # RESOLVE_INTENT
    intents: List[Intent] = field(default_factory=list)
    confidence: Optional[float] = None
    needs_clarification: bool = False
    clarification_needed: Optional[str] = None
    used_default: bool = False
    default_reason: Optional[str] = None

    # RESOLVE_TIME_RANGE
    time_range: Optional[TimeRange] = None
    time_range_source: Optional[str] = None

    # FETCH / NORMALIZE
    execution_plan: Dict[str, Any] = field(default_factory=dict)
    raw_responses: List[RawResponse] = field(default_factory=list)
    normalized_data: List[NormalizedData] = field(default_factory=list)

    # RESPOND
    response: Optional[ChatResponse] = None

    @property
    def banking_intents(self) -> List[Intent]:
        return [intent for intent in self.intents if not intent.is_unknown]

    def all_intents_unknown(self) -> bool:
        """True when there is at least one intent and every intent is UNKNOWN."""
        return bool(self.intents) and all(intent.is_unknown for intent in self.intents)

    def clarification_grounding(self) -> Optional[Dict[str, Optional[str]]]:
        """Answer to the previous clarification question, for the intent resolver."""
        if self.clarification_answer is None:
            return None
        return {
            "question": self.clarification_question,
            "answer": self.clarification_answer,
            "expected_answer_type": self.expected_answer_type,
            "context": self.clarification_context,
        }
