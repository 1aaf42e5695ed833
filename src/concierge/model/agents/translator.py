"""
Translation agent.

Inbound: the customer's message is translated into English before intent
extraction. Outbound: the answer, explanation and table text of the reply are
translated back in a single call, sent as one flat JSON object. Numbers, dates
and amounts are left untouched. Any failure keeps the untranslated text.
"""

import copy
import json
import re
from typing import Any, Dict, Optional

from ...connections.llm_connector import complete, extract_content
from ...utils.logging import get_logger
from ...utils.prompt_loader import load_prompt
from ...utils.settings import config
from ..state import ChatResponse

# Values made only of digits, currency, punctuation and ISO dates stay as they are
_PRESERVE = re.compile(r"^[\d\s.,:;%+\-/()₪$€£¥]*$")
_EMPTY_QUOTES = ('""', "''")


def _should_translate(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip()) and not _PRESERVE.match(value)


async def translate_inbound(message_text: str, context: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate a customer message into English.

    Returns:
        Dictionary with status, ``text`` (translated, or the original on failure),
        ``translated`` and usage metrics.
    """
    logger = get_logger()
    execution_id = context.get("execution_id")

    try:
        prompt = load_prompt("translator_inbound")
        model = config.llm.medium.model
        response = await complete(
            messages=[
                {"role": "system", "content": prompt["system_prompt"]},
                {"role": "user", "content": message_text},
            ],
            context=context,
            llm_params={"model": model, "temperature": 0},
        )
        metrics = response.get("metrics", {})

        translated = (extract_content(response) or "").strip()
        if translated in _EMPTY_QUOTES:
            translated = ""
        if not translated:
            # Already English or unrecognizable; the original is used as is
            logger.info("translator.inbound_empty", execution_id=execution_id)
            return {
                "status": "Success",
                "text": message_text,
                "translated": False,
                "tokens_used": metrics.get("total_tokens", 0),
                "cost": metrics.get("total_cost", 0),
                "model_used": model,
            }

        logger.info(
            "translator.inbound_translated",
            execution_id=execution_id,
            original_length=len(message_text),
            translated_length=len(translated),
        )
        return {
            "status": "Success",
            "text": translated,
            "translated": True,
            "tokens_used": metrics.get("total_tokens", 0),
            "cost": metrics.get("total_cost", 0),
            "model_used": model,
        }

    except Exception as e:  # pylint: disable=broad-exception-caught
        # An untranslated message still reaches intent extraction.
        logger.error("translator.inbound_error", execution_id=execution_id, error=str(e))
        return {
            "status": "Error",
            "text": message_text,
            "translated": False,
            "tokens_used": 0,
            "cost": 0,
            "model_used": None,
            "error": str(e),
        }


def _collect_values(response: ChatResponse) -> Dict[str, str]:
    values = {}
    if _should_translate(response.answer):
        values["ANSWER"] = response.answer
    if _should_translate(response.explanation):
        values["EXPLANATION"] = response.explanation

    for table_index, table in enumerate(response.tables or []):
        prefix = f"TABLE_{table_index}"
        if _should_translate(table.get("accountName")):
            values[f"{prefix}_ACCOUNT_NAME"] = table["accountName"]
        for header_index, header in enumerate(table.get("headers") or []):
            if _should_translate(header):
                values[f"{prefix}_HEADER_{header_index}"] = header
        for row_index, row in enumerate(table.get("rows") or []):
            if not isinstance(row, dict):
                continue
            for column_index, value in enumerate(row.values()):
                if _should_translate(value):
                    values[f"{prefix}_ROW_{row_index}_{column_index}"] = value
    return values


def _apply_translations(response: ChatResponse, translations: Dict[str, str]) -> ChatResponse:
    translated = copy.deepcopy(response)
    translated.answer = translations.get("ANSWER", response.answer)
    translated.explanation = translations.get("EXPLANATION", response.explanation)

    for table_index, table in enumerate(translated.tables or []):
        prefix = f"TABLE_{table_index}"
        if f"{prefix}_ACCOUNT_NAME" in translations:
            table["accountName"] = translations[f"{prefix}_ACCOUNT_NAME"]

        original_headers = list(table.get("headers") or [])
        headers = [
            translations.get(f"{prefix}_HEADER_{index}", header) for index, header in enumerate(original_headers)
        ]
        renamed = dict(zip(original_headers, headers))
        if original_headers:
            table["headers"] = headers

        rows = []
        for row_index, row in enumerate(table.get("rows") or []):
            if not isinstance(row, dict):
                rows.append(row)
                continue
            # Row keys follow their (possibly translated) headers
            rows.append(
                {
                    renamed.get(key, key): translations.get(f"{prefix}_ROW_{row_index}_{column_index}", value)
                    for column_index, (key, value) in enumerate(row.items())
                }
            )
        if "rows" in table:
            table["rows"] = rows
    return translated


async def translate_outbound(
    response: ChatResponse, target_language: str, context: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Translate a reply's user-facing text into the customer's language.

    Args:
        response: The English reply
        target_language: Language code of this turn, e.g. "he"
        context: Runtime context (execution_id, auth_config, ssl_config)

    Returns:
        Dictionary with status and ``response`` (translated copy, or the original
        reply on failure).
    """
    logger = get_logger()
    execution_id = context.get("execution_id")

    values = _collect_values(response)
    if not values:
        return {"status": "Success", "response": response, "tokens_used": 0, "cost": 0}

    try:
        prompt = load_prompt("translator_outbound")
        model = config.llm.medium.model
        llm_response = await complete(
            messages=[
                {"role": "system", "content": prompt["system_prompt"]},
                {"role": "user", "content": json.dumps(values, ensure_ascii=False)},
            ],
            context=context,
            llm_params={"model": model, "temperature": 0, "response_format": {"type": "json_object"}},
        )
        metrics = llm_response.get("metrics", {})

        parsed = json.loads((extract_content(llm_response) or "").strip())
        if not isinstance(parsed, dict):
            raise ValueError("translation is not a JSON object")
        translations = {key: value for key, value in parsed.items() if key in values and isinstance(value, str)}

        logger.info(
            "translator.outbound_translated",
            execution_id=execution_id,
            target_language=target_language,
            values=len(values),
            translated=len(translations),
        )
        return {
            "status": "Success",
            "response": _apply_translations(response, translations),
            "tokens_used": metrics.get("total_tokens", 0),
            "cost": metrics.get("total_cost", 0),
            "model_used": model,
        }

    except Exception as e:  # pylint: disable=broad-exception-caught
        # The English reply is better than none.
        logger.error(
            "translator.outbound_error",
            execution_id=execution_id,
            target_language=target_language,
            error=str(e),
        )
        return {"status": "Error", "response": response, "tokens_used": 0, "cost": 0, "error": str(e)}


def translation_needed(language_code: Optional[str]) -> bool:
    return bool(language_code) and language_code != "en"
