import json
from types import SimpleNamespace

import pytest

from sts_core.commands.schema import ActionChoice, CreationParams, MoveParams, ScaleParams
from sts_core.prompts.templates import ACTION_INSTRUCTIONS, build_system_prompt
from sts_core.providers import get_provider, list_providers
from sts_core.providers.mock import MockProvider
from sts_core.providers.openai_provider import OpenAIProvider
from sts_core.providers.registry import provider_from_config
from sts_core.providers.rules import LocalRulesProvider


def test_registry():
    assert list_providers() == ["mock", "openai", "rules"]
    assert isinstance(get_provider("rules"), LocalRulesProvider)
    with pytest.raises(KeyError):
        get_provider("gemini")


def test_provider_from_config(cfg):
    cfg["active_provider"] = "mock"
    cfg["providers"]["mock"] = {"delay_s": 0.25}
    provider = provider_from_config(cfg)
    assert isinstance(provider, MockProvider)
    assert provider.delay_s == 0.25


def test_rules_provider_answers_each_schema():
    p = LocalRulesProvider()
    assert p.respond("make it red", "", ActionChoice, {}) == {"kind": "modification"}
    assert p.respond("put it there", "", ActionChoice, {}) == {"kind": "unknown"}
    assert p.respond("move it left", "", MoveParams, {})["direction"] == "negative"
    assert p.respond("make it huge", "", ScaleParams, {}) == {"factor": 2.0}


def test_mock_provider_queue_then_fallback():
    p = MockProvider({"responses": {"ScaleParams": [{"factor": 7}]}})
    assert p.respond("make it bigger", "", ScaleParams, {}) == {"factor": 7}
    assert p.respond("make it bigger", "", ScaleParams, {}) == {"factor": 2.0}
    assert p.calls == [("make it bigger", "ScaleParams")] * 2


def test_mock_provider_without_fallback():
    p = MockProvider({"fallback_to_rules": False})
    with pytest.raises(RuntimeError):
        p.respond("make it bigger", "", ScaleParams, {})


def test_system_prompt_carries_instructions_and_schema():
    prompt = build_system_prompt(ACTION_INSTRUCTIONS, ActionChoice)
    assert ACTION_INSTRUCTIONS in prompt
    assert '"modification"' in prompt


# ---------------- OpenAI ----------------

class _FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _openai(content):
    provider = OpenAIProvider({"api_key": "sk-test\n", "model": "gpt-4o-mini"})
    completions = _FakeCompletions(content)
    provider.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return provider, completions


def test_openai_requires_a_key(monkeypatch):
    monkeypatch.delenv("STS_TEST_MISSING_KEY", raising=False)
    with pytest.raises(RuntimeError, match="STS_TEST_MISSING_KEY"):
        OpenAIProvider({"api_key_env": "STS_TEST_MISSING_KEY"})


def test_openai_json_mode_request():
    payload = {"shape": "box", "size": 0.12, "color": "red", "metallic": False, "roughness": 0.5}
    provider, completions = _openai("```json\n" + json.dumps(payload) + "\n```")
    assert provider.respond("make a red cube", "Identify the object.", CreationParams,
                            {"temperature": 0.15}) == payload

    (req,) = completions.requests
    assert req["model"] == "gpt-4o-mini"
    assert req["response_format"] == {"type": "json_object"}
    assert req["temperature"] == 0.15
    system, user = req["messages"]
    assert system["role"] == "system" and "Identify the object." in system["content"]
    assert user == {"role": "user", "content": "make a red cube"}


def test_openai_invalid_json():
    provider, _ = _openai("sure! it's a cube")
    with pytest.raises(RuntimeError, match="invalid JSON"):
        provider.respond("make a red cube", "", CreationParams, {})


def test_openai_empty_reply():
    provider, _ = _openai("")
    with pytest.raises(RuntimeError, match="Empty response"):
        provider.respond("make a red cube", "", CreationParams, {})
