from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .settings import Settings

ENV_PREFIX = "DERIWS_"

# Read elsewhere, never mapped onto settings.
_RESERVED = {"CONFIG", "LOG_LEVEL"}

# Flat aliases commonly exported by deployment tooling.
_SHORTCUTS = {
    "CLIENT_ID": ["credentials", "client_id"],
    "CLIENT_SECRET": ["credentials", "client_secret"],
    "URI": ["connection", "uri"],
}


def _deep_set(obj: dict[str, Any], path: list[str], value: Any) -> None:
    cur = obj
    for key in path[:-1]:
        nxt = cur.get(key)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[key] = nxt
        cur = nxt
    cur[path[-1]] = value


def _parse_env_value(key: str, raw: str) -> Any:
    # Secrets and identifiers stay verbatim; "0123" must not become an int.
    if key in {"CLIENT_ID", "CLIENT_SECRET"} or key.endswith(("__CLIENT_ID", "__CLIENT_SECRET")):
        return raw
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


def _env_overrides(environ: dict[str, str]) -> list[tuple[list[str], Any]]:
    overrides: list[tuple[list[str], Any]] = []
    for key, raw_value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        remainder = key[len(ENV_PREFIX):]
        if remainder in _RESERVED:
            continue

        if remainder in _SHORTCUTS:
            path = _SHORTCUTS[remainder]
        else:
            path = [p.lower() for p in remainder.split("__") if p]
        if not path:
            continue

        overrides.append((path, _parse_env_value(remainder, raw_value)))
    return overrides


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}

    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config root must be a mapping, got: {type(loaded)!r}")
    return loaded


def load_settings(config_path: str | Path | None = None, *, environ: dict[str, str] | None = None) -> Settings:
    """Load settings from YAML, then apply ``DERIWS_*`` environment overrides.

    ``DERIWS_SESSION__LEGACY_ROUTING=true`` sets ``session.legacy_routing``;
    ``DERIWS_CLIENT_ID`` / ``DERIWS_CLIENT_SECRET`` / ``DERIWS_URI`` are
    shortcuts for the credential and endpoint fields.

    Raises:
        ValueError: If the file is not a mapping or validation fails
    """
    env = dict(os.environ if environ is None else environ)
    if config_path is None:
        config_path = env.get(f"{ENV_PREFIX}CONFIG", "config.yml")

    data = _read_config_file(Path(config_path))
    for path, value in _env_overrides(env):
        _deep_set(data, path, value)

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
