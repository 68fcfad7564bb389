"""YAML/dict config loader for format-redactor.

Supports loading from a YAML file or a plain dict (for embedding in a
larger application config).

Example YAML:

    format_redactor:
      model: gpt-4o-mini
      base_url: https://api.openai.com/v1
      temperature: 0.1
      max_output_tokens: 8192
      timeout: 60
      batch_size: 100
      max_text_chars: 100000
      fail_on_unresolved: false
      use_presidio: false
      language: en
      score_threshold: 0.35
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any

import yaml

from .llm_client import ModelClient, OpenAIModelClient
from .redactor import Redactor, RedactorConfig

DEFAULT_MODEL = os.environ.get("FORMAT_REDACTOR_MODEL", "gpt-4o-mini")
DEFAULT_BASE_URL = os.environ.get("FORMAT_REDACTOR_BASE_URL") or None


def load_config(data: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    data = data or {}
    # Support nested under "format_redactor" key or flat
    if "format_redactor" in data:
        data = data["format_redactor"] or {}

    timeout = data.get("timeout")
    return {
        "model": data.get("model", DEFAULT_MODEL),
        "base_url": data.get("base_url", DEFAULT_BASE_URL),
        "temperature": float(data.get("temperature", 0.1)),
        "max_output_tokens": int(data.get("max_output_tokens", 8192)),
        "timeout": float(timeout) if timeout is not None else None,
        "batch_size": int(data.get("batch_size", 100)),
        "max_text_chars": int(data.get("max_text_chars", 100_000)),
        "fail_on_unresolved": bool(data.get("fail_on_unresolved", False)),
        "use_presidio": bool(data.get("use_presidio", False)),
        "language": data.get("language", "en"),
        "score_threshold": float(data.get("score_threshold", 0.35)),
    }


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    with open(Path(path).expanduser()) as f:
        return load_config(yaml.safe_load(f))


def build_config(config: dict[str, Any]) -> RedactorConfig:
    return RedactorConfig(**load_config(config))


def create_client(config: RedactorConfig) -> OpenAIModelClient:
    return OpenAIModelClient(
        model=config.model,
        base_url=config.base_url,
        temperature=config.temperature,
        max_tokens=config.max_output_tokens,
        timeout=config.timeout,
    )


def create_redactor(
    config: dict[str, Any] | None = None,
    *,
    client: ModelClient | None = None,
    use_ai: bool = False,
) -> Redactor:
    """Create a fully configured Redactor from a config dict.

    A model client is built from the config only when ``use_ai`` is set
    and none was passed in.
    """
    redactor_config = build_config(config or {})
    if client is None and use_ai:
        client = create_client(redactor_config)
    return Redactor(redactor_config, client=client)
