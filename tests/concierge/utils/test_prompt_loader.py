"""
Tests for the prompt loader utility.
"""

from unittest.mock import patch

import pytest

from concierge.utils.prompt_loader import load_prompt, load_yaml

AGENT_PROMPTS = [
    "intent",
    "time_resolver",
    "drafter",
    "conversational",
    "guard",
    "translator_inbound",
    "translator_outbound",
]


class TestLoadYaml:
    """Test YAML loading functionality."""

    def test_load_nonexistent_yaml(self):
        """Test loading a non-existent YAML file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_yaml("nonexistent/file.yaml")


class TestLoadPrompt:
    """Test agent prompt loading."""

    @pytest.mark.parametrize("name", AGENT_PROMPTS)
    def test_shipped_prompts_load(self, name):
        """Every shipped agent prompt has a system prompt and a version."""
        prompt = load_prompt(name)

        assert prompt["system_prompt"]
        assert prompt["version"]

    @pytest.mark.parametrize(
        "name,tool",
        [
            ("intent", "extract_intent"),
            ("time_resolver", "resolve_time_range"),
            ("drafter", "draft_structured_response"),
            ("guard", "report_security_check_result"),
        ],
    )
    def test_tool_definitions(self, name, tool):
        """Tool-calling prompts define the function their agent extracts."""
        prompt = load_prompt(name)

        assert prompt["tool_definition"]["function"]["name"] == tool

    @patch("concierge.utils.prompt_loader.load_yaml")
    def test_missing_system_prompt(self, mock_load_yaml):
        """A prompt without system_prompt is rejected."""
        mock_load_yaml.return_value = {"user_prompt": "x"}

        with pytest.raises(ValueError):
            load_prompt("broken")

    @patch("concierge.utils.prompt_loader.load_yaml")
    def test_version_defaults_to_unknown(self, mock_load_yaml):
        """A missing version is reported as unknown."""
        mock_load_yaml.return_value = {"system_prompt": "You are helpful."}

        assert load_prompt("anything")["version"] == "unknown"
