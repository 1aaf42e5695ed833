"""
Concierge model agents: the LLM-backed steps of the pipeline.
"""

from .conversational import generate_conversational_reply
from .drafter import build_fallback_tables, draft_response
from .guard import check_message
from .intent import extract_intent
from .time_resolver import resolve_time_range_with_llm
from .translator import translate_inbound, translate_outbound, translation_needed

__all__ = [
    "generate_conversational_reply",
    "build_fallback_tables",
    "draft_response",
    "check_message",
    "extract_intent",
    "resolve_time_range_with_llm",
    "translate_inbound",
    "translate_outbound",
    "translation_needed",
]
