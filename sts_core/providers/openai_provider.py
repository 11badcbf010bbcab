# sts_core/providers/openai_provider.py
# Structured extraction through OpenAI chat completions in JSON mode.

import json
import logging
import os
from typing import Any, Dict

from ..prompts.templates import build_system_prompt

log = logging.getLogger(__name__)


class OpenAIProvider:
    name = "openai"

    def __init__(self, cfg: Dict[str, Any] | None = None):
        from openai import OpenAI

        cfg = cfg or {}
        key_env = cfg.get("api_key_env", "OPENAI_API_KEY")
        key = cfg.get("api_key") or os.getenv(key_env, "")
        # copy-pasted keys sometimes carry hidden whitespace / line breaks
        key = "".join(str(key).split())
        if not key:
            raise RuntimeError(f"OpenAI API key missing: set {key_env} or providers.openai.api_key")

        self.model = cfg.get("model", "gpt-4o")
        self.client = OpenAI(api_key=key, base_url=cfg.get("base_url"),
                             timeout=float(cfg.get("request_timeout_s", 30)))

    def respond(self, prompt: str, instructions: str, schema: type,
                options: Dict[str, Any]) -> Dict[str, Any]:
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": build_system_prompt(instructions, schema)},
                {"role": "user", "content": prompt},
            ],
            temperature=float(options.get("temperature", 0)),
            response_format={"type": "json_object"},
        )
        content = (resp.choices[0].message.content or "").strip()
        if not content:
            raise RuntimeError("Empty response from LLM")

        # some models still wrap JSON mode output in fences
        content = content.replace("```json", "").replace("```", "").strip()
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            log.debug("[OpenAI] unparseable reply: %r", content[:200])
            raise RuntimeError(f"LLM returned invalid JSON: {e}") from e
        log.debug("[OpenAI] %s -> %s", schema.__name__, data)
        return data
