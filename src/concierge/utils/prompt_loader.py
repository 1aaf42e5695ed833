"""
Prompt loader utility for agent prompts stored as YAML.
"""

from pathlib import Path
from typing import Any, Dict

import yaml

from .logging import get_logger

logger = get_logger()

PROMPTS_DIR = Path(__file__).parent.parent / "model" / "prompts"


def load_yaml(file_path: str) -> Dict[str, Any]:
    """
    Load and parse a YAML file.

    Args:
        file_path: Relative path to YAML file from prompts directory

    Returns:
        Parsed YAML content as dictionary

    Raises:
        FileNotFoundError: If the prompt file does not exist
    """
    full_path = PROMPTS_DIR / file_path

    if not full_path.exists():
        raise FileNotFoundError(f"Prompt file not found: {full_path}")

    with open(full_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def load_prompt(name: str) -> Dict[str, Any]:
    """
    Load an agent prompt by name.

    Every agent prompt file provides ``system_prompt`` and may provide
    ``user_prompt`` (a ``str.format`` template) and ``tool_definition``.

    Args:
        name: Prompt name, e.g. "intent" loads ``agents/intent.yaml``

    Returns:
        Prompt dictionary with ``version`` defaulted to "unknown"

    Raises:
        FileNotFoundError: If the prompt file does not exist
        ValueError: If the file has no system prompt
    """
    data = load_yaml(f"agents/{name}.yaml") or {}
    if not data.get("system_prompt"):
        raise ValueError(f"Prompt '{name}' has no system_prompt")

    data.setdefault("version", "unknown")
    logger.debug(
        "prompt_loader.loaded",
        name=name,
        version=data["version"],
        has_user_prompt=bool(data.get("user_prompt")),
        has_tool_definition=bool(data.get("tool_definition")),
    )
    return data
