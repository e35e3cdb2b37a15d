# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# Purpose: Defines the config unit so this responsibility stays isolated, testable, and easy to evolve.

"""
Configuration loading utilities for streamchat.

Conventions:
- Machine-specific config: resources/config/machine.json (or $STREAMCHAT_CONFIG)
- Environment variables override JSON values.
- JSON values can reference environment variables using ${VAR_NAME} placeholders.
- The merged result is validated against core/schemas/machine.schema.json.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import jsonschema
from pydantic import BaseModel

from streamchat.services.exceptions import ConfigurationError

BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent
CONFIG_DIR = BASE_DIR / "resources" / "config"
SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"

DEFAULT_MACHINE_CONFIG: Dict[str, Any] = {
    "ollama": {
        "base_url": "http://localhost:11434",
        "model": "llama3.2",
        "timeout_s": 60,
        "idle_timeout_s": 60,
        "request_format": "generate",
    }
}

_ENDPOINT_PATHS = {"generate": "/api/generate", "chat": "/api/chat"}


def _get_machine_schema() -> Dict[str, Any]:
    with open(SCHEMAS_DIR / "machine.schema.json", "r", encoding="utf-8") as f:
        return json.load(f)


_ENV_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")


def _interpolate_env(value: Any) -> Any:
    """Interpolate ${VAR} placeholders within strings using environment variables.

    Non-string types are returned unchanged.
    """
    if isinstance(value, str):

        def replace(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, match.group(0))  # leave placeholder if unset

        return _ENV_PATTERN.sub(replace, value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(v) for v in value]
    return value


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Deeply merge mapping 'override' into dict 'base'. Returns new dict.

    - For dict values, merges recursively.
    - For lists and scalars, override replaces base.
    """
    result: Dict[str, Any] = dict(base)
    for k, v in override.items():
        if isinstance(v, Mapping) and isinstance(result.get(k), Mapping):
            result[k] = _deep_merge(dict(result[k]), v)  # type: ignore[index]
        else:
            result[k] = v
    return result


def load_json_file(path: os.PathLike[str] | str | None) -> Dict[str, Any]:
    """Load JSON from path if it exists; return empty dict if missing.

    Raises ValueError for malformed JSON.
    """
    if path is None:
        return {}
    p = Path(path)
    if not p.exists():
        return {}
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON at {p}: {e}") from e


def _env_overrides_for_ollama() -> Dict[str, Any]:
    """Collect OLLAMA_* environment variables into a nested dict structure.

    Supported variables:
    - OLLAMA_BASE_URL -> ollama.base_url
    - OLLAMA_MODEL -> ollama.model
    - OLLAMA_API_KEY -> ollama.api_key
    - OLLAMA_TIMEOUT_S -> ollama.timeout_s (int if parseable)
    - OLLAMA_IDLE_TIMEOUT_S -> ollama.idle_timeout_s (int if parseable)
    """
    ollama: Dict[str, Any] = {}
    for env_name, key in (
        ("OLLAMA_BASE_URL", "base_url"),
        ("OLLAMA_MODEL", "model"),
        ("OLLAMA_API_KEY", "api_key"),
    ):
        value = os.getenv(env_name)
        if value is not None:
            ollama[key] = value
    for env_name, key in (
        ("OLLAMA_TIMEOUT_S", "timeout_s"),
        ("OLLAMA_IDLE_TIMEOUT_S", "idle_timeout_s"),
    ):
        value = os.getenv(env_name)
        if value is None:
            continue
        try:
            ollama[key] = int(value)
        except ValueError:
            # left as a string so schema validation reports it
            ollama[key] = value
    return {"ollama": ollama} if ollama else {}


def default_machine_config_path() -> Path:
    env_path = os.getenv("STREAMCHAT_CONFIG")
    if env_path:
        return Path(env_path)
    return CONFIG_DIR / "machine.json"


def load_machine_config(
    path: os.PathLike[str] | str | None = None,
    defaults: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Load machine configuration applying precedence and interpolation.

    Precedence: env overrides > JSON file > defaults

    Raises ConfigurationError when the merged result violates the schema.
    """
    if path is None:
        path = default_machine_config_path()
    defaults = dict(DEFAULT_MACHINE_CONFIG if defaults is None else defaults)
    json_config = load_json_file(path)
    json_config = _interpolate_env(json_config)
    merged = _deep_merge(defaults, json_config)
    merged = _deep_merge(merged, _env_overrides_for_ollama())
    try:
        jsonschema.validate(merged, _get_machine_schema())
    except jsonschema.ValidationError as exc:
        raise ConfigurationError(f"Invalid machine config at {path}: {exc.message}")
    return merged


class EndpointSettings(BaseModel):
    """Typed view of the ``ollama`` section used by the chat session controller."""

    base_url: str
    model: str
    api_key: str | None = None
    timeout_s: float = 60.0
    idle_timeout_s: float | None = 60.0
    request_format: Literal["generate", "chat"] = "generate"
    endpoint_path: str | None = None

    @property
    def url(self) -> str:
        path = self.endpoint_path or _ENDPOINT_PATHS[self.request_format]
        return self.base_url.rstrip("/") + "/" + path.lstrip("/")


def resolve_endpoint_settings(machine: Mapping[str, Any]) -> EndpointSettings:
    """Build EndpointSettings from a loaded machine config.

    An ``idle_timeout_s`` of 0 disables the idle guard.
    """
    ollama = dict(DEFAULT_MACHINE_CONFIG["ollama"])
    ollama.update(machine.get("ollama") or {})
    if not ollama.get("base_url") or not ollama.get("model"):
        raise ConfigurationError("Missing base_url or model in configuration")
    if not ollama.get("idle_timeout_s"):
        ollama["idle_timeout_s"] = None
    return EndpointSettings(**ollama)
