"""
Response drafting agent.

Drafts the customer-facing answer from normalized data: a short introduction,
one or more tables and a description of where the data came from. If the model
leaves out the table while data exists, a transactions or balance table is built
from the normalized entities instead.
"""

import json
from typing import Any, Dict, List, Optional

from ...connections.llm_connector import complete_with_tools, extract_tool_arguments
from ...utils.errors import ResponseParseError
from ...utils.logging import get_logger
from ...utils.prompt_loader import load_prompt
from ...utils.session import TimeRange
from ...utils.settings import config
from ..normalization.models import NormalizedData, NormalizedEntity
from ..state import ChatResponse, Intent

TOOL_NAME = "draft_structured_response"

DEFAULT_EXPLANATION = "Response generated from normalized banking data"
DRAFTING_ERROR_ANSWER = "I encountered an error formatting your response. Please try again."
NO_DATA_ANSWER = "I couldn't find any data matching your request."

_CALCULATION_METRICS = ("sum", "count", "average", "max", "min")


def _entity_label(entity: NormalizedEntity) -> Optional[str]:
    return entity.nickname if entity.nickname is not None else entity.entity_id


def has_data_to_display(normalized_data: List[NormalizedData]) -> bool:
    return any(
        entity.has_transactions() or entity.balance is not None
        for data in normalized_data
        for entity in data.entities
    )


def _transactions_table(normalized_data: List[NormalizedData]) -> Dict[str, Any]:
    rows = []
    for data in normalized_data:
        for entity in data.entities:
            for tx in entity.transactions or []:
                amount = ""
                if tx.amount is not None:
                    amount = f"{tx.currency} {tx.amount}" if tx.currency is not None else str(tx.amount)
                rows.append(
                    {
                        "Date": tx.date or "",
                        "Amount": amount,
                        "Description": tx.description or "",
                        "Account": _entity_label(entity),
                    }
                )
    return {
        "type": "transactions",
        "headers": ["Date", "Amount", "Description", "Account"],
        "rows": rows,
        "metadata": {"rowCount": len(rows), "hasTotals": False},
    }


def _balance_table(normalized_data: List[NormalizedData]) -> Dict[str, Any]:
    rows = []
    for data in normalized_data:
        for entity in data.entities:
            balance = entity.balance
            if balance is None:
                continue
            value = balance.available if balance.available is not None else balance.current
            text = ""
            if value is not None:
                text = f"{balance.currency} {value}" if balance.currency is not None else str(value)
            rows.append(
                {
                    "Account": _entity_label(entity),
                    "Balance": text,
                    "Currency": balance.currency if balance.currency is not None else "ILS",
                }
            )
    return {
        "type": "balance",
        "headers": ["Account", "Balance", "Currency"],
        "rows": rows,
        "metadata": {"rowCount": len(rows), "hasTotals": False},
    }


def build_fallback_tables(normalized_data: List[NormalizedData]) -> List[Dict[str, Any]]:
    """
    Tables built directly from normalized data.

    A transactions table if any entity has transactions, else a balance table if
    any entity has a balance, else nothing.
    """
    if any(entity.has_transactions() for data in normalized_data for entity in data.entities):
        return [_transactions_table(normalized_data)]
    if any(entity.balance is not None for data in normalized_data for entity in data.entities):
        return [_balance_table(normalized_data)]
    return []


def no_data_response(correlation_id: str, time_range: Optional[TimeRange] = None) -> ChatResponse:
    answer = NO_DATA_ANSWER if time_range is None else f"{NO_DATA_ANSWER[:-1]} for {time_range}."
    return ChatResponse(
        answer=answer,
        correlation_id=correlation_id,
        explanation="No banking data was returned for this request",
    )


def drafting_error_response(correlation_id: str, error: str) -> ChatResponse:
    return ChatResponse(
        answer=DRAFTING_ERROR_ANSWER,
        correlation_id=correlation_id,
        explanation=f"Drafting error: {error}",
    )


def _instructions(prompt: Dict[str, Any], metric: Optional[str]) -> str:
    instructions = prompt.get("metric_instructions") or {}
    if metric == "list":
        return instructions.get("list", "")
    if metric == "balance":
        return instructions.get("balance", "")
    if metric in _CALCULATION_METRICS:
        return instructions.get("calculation", "")
    return ""


def _tables_from(draft: Dict[str, Any]) -> List[Dict[str, Any]]:
    tables = draft.get("tables")
    if tables is None and isinstance(draft.get("table"), dict):
        tables = [draft["table"]]
    return [table for table in tables or [] if isinstance(table, dict)]


async def draft_response(  # pylint: disable=too-many-arguments,too-many-locals
    # pylint: disable=too-many-positional-arguments
    # Drafting needs the question, data, intent and time context together.
    question: str,
    normalized_data: List[NormalizedData],
    intents: List[Intent],
    time_range: Optional[TimeRange],
    context: Dict[str, Any],
    history: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, Any]:
    """
    Draft the reply for a banking question.

    Args:
        question: The customer message in English
        normalized_data: Normalized data of every fetched domain
        intents: Resolved intents; the first one sets the request context
        time_range: Range the data was fetched for
        context: Runtime context (execution_id, auth_config, ssl_config)
        history: Recent turns as user/assistant messages

    Returns:
        Dictionary with status and ``response`` (ChatResponse). On failure the
        response is the fixed drafting apology.
    """
    logger = get_logger()
    execution_id = context.get("execution_id")
    prompt_version = "unknown"

    if not normalized_data:
        logger.warning("drafter.no_data", execution_id=execution_id)
        return {
            "status": "Success",
            "response": no_data_response(execution_id, time_range),
            "tokens_used": 0,
            "cost": 0,
        }

    try:
        prompt = load_prompt("drafter")
        prompt_version = prompt["version"]

        primary = next((intent for intent in intents if not intent.is_unknown), None)
        domain = primary.domain if primary else "unknown"
        metric = primary.metric if primary else "unknown"
        time_range_text = str(time_range) if time_range is not None else "unknown"

        system_prompt = prompt["system_prompt"] + prompt["context_prompt"].format(
            domain=domain, metric=metric, time_range=time_range_text
        )
        user_prompt = prompt["user_prompt"].format(
            question=question,
            data=json.dumps([data.to_dict() for data in normalized_data], indent=2, ensure_ascii=False),
            metric=metric,
            instructions=_instructions(prompt, metric),
        )

        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": user_prompt})

        model = config.llm.large.model
        response = await complete_with_tools(
            messages=messages,
            tools=[prompt["tool_definition"]],
            context=context,
            llm_params={
                "model": model,
                "temperature": 0.3,
                "max_tokens": config.llm.large.max_tokens,
                "tool_choice": "required",
            },
        )
        metrics = response.get("metrics", {})

        arguments = extract_tool_arguments(response, TOOL_NAME)
        if not arguments or not arguments.strip():
            raise ResponseParseError("model did not call draft_structured_response")
        draft = json.loads(arguments)
        if not isinstance(draft, dict):
            raise ResponseParseError("draft_structured_response arguments are not an object")

        tables = _tables_from(draft)
        if not tables and has_data_to_display(normalized_data):
            tables = build_fallback_tables(normalized_data)
            logger.warning(
                "drafter.fallback_table",
                execution_id=execution_id,
                table_type=tables[0]["type"] if tables else None,
                rows=len(tables[0]["rows"]) if tables else 0,
            )

        data_source = draft.get("dataSource") if isinstance(draft.get("dataSource"), dict) else {}
        chat_response = ChatResponse(
            answer=draft.get("introduction") or "",
            correlation_id=execution_id,
            explanation=data_source.get("description") or DEFAULT_EXPLANATION,
            tables=tables,
        )

        logger.info(
            "drafter.completed",
            execution_id=execution_id,
            tables=len(tables),
            tokens_used=metrics.get("total_tokens", 0),
        )
        return {
            "status": "Success",
            "response": chat_response,
            "tokens_used": metrics.get("total_tokens", 0),
            "cost": metrics.get("total_cost", 0),
            "response_time_ms": metrics.get("response_time", 0) * 1000,
            "model_used": model,
            "prompt_version": prompt_version,
        }

    except Exception as e:  # pylint: disable=broad-exception-caught
        # The customer gets a fixed apology that still carries the correlation id.
        logger.error("drafter.error", execution_id=execution_id, error=str(e))
        return {
            "status": "Error",
            "response": drafting_error_response(execution_id, str(e)),
            "tokens_used": 0,
            "cost": 0,
            "response_time_ms": 0,
            "model_used": None,
            "prompt_version": prompt_version,
            "error": str(e),
        }
