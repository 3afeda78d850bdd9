"""Load WhiskerConfig from whisker.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.  The ``WHISKER_ENV``
environment variable switches to build mode when set to ``production``.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

import yaml

from whisker._errors import ConfigError
from whisker.config import WhiskerConfig

ENV_VAR = "WHISKER_ENV"

_CONFIG_KEYS = frozenset({
    "templates_dir", "content_dir", "source_globs", "debounce_ms", "mode",
    "routes",
})


def load_config(root: Path, **overrides: object) -> WhiskerConfig:
    """Load WhiskerConfig from root, optionally merging whisker.yaml.

    Looks for whisker.yaml, whisker.yml, or whisker.toml in root. If found,
    loads and merges with overrides. Overrides take precedence, and an
    explicit ``mode`` beats the environment.

    Raises:
        ConfigError: If a config file exists but cannot be parsed, or holds
            a value of the wrong shape.

    """
    file_config = _read_whisker_config(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    if "mode" not in overrides or overrides["mode"] is None:
        env_mode = mode_from_env()
        if env_mode is not None:
            merged["mode"] = env_mode
    _normalize(merged)
    return WhiskerConfig(root=root, **merged)


def mode_from_env(environ: dict[str, str] | None = None) -> str | None:
    """Return ``"build"`` when the environment declares production mode."""
    env = os.environ if environ is None else environ
    value = env.get(ENV_VAR, "").strip().lower()
    if value == "production":
        return "build"
    if value in ("development", "develop"):
        return "develop"
    return None


def _read_whisker_config(root: Path) -> dict[str, object]:
    """Read whisker config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("whisker.yaml", "whisker.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "whisker.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    """Parse YAML config."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {path}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping at the top level"
        raise ConfigError(msg)
    return _flatten_whisker_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    """Parse TOML config."""
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_whisker_section(data)


def _flatten_whisker_section(data: dict[str, object]) -> dict[str, object]:
    """Extract whisker.* keys into top-level config."""
    result: dict[str, object] = {}
    section = data.get("whisker")
    if isinstance(section, dict):
        for k, v in section.items():
            if k in _CONFIG_KEYS:
                result[k] = v
    for k, v in data.items():
        if k != "whisker" and k in _CONFIG_KEYS:
            result[k] = v
    return result


def _normalize(merged: dict[str, object]) -> None:
    """Coerce file-shaped values into the types WhiskerConfig expects."""
    if "source_globs" in merged:
        globs = merged["source_globs"]
        if isinstance(globs, str):
            globs = [globs]
        if not isinstance(globs, (list, tuple)):
            msg = f"source_globs must be a list of patterns, got {globs!r}"
            raise ConfigError(msg)
        merged["source_globs"] = tuple(str(g) for g in globs)

    if "routes" in merged:
        routes = merged["routes"]
        if isinstance(routes, dict):
            merged["routes"] = tuple((str(k), str(v)) for k, v in routes.items())
        elif isinstance(routes, (list, tuple)):
            try:
                merged["routes"] = tuple((str(p), str(t)) for p, t in routes)
            except (TypeError, ValueError) as exc:
                msg = f"routes entries must be [route_path, template] pairs: {exc}"
                raise ConfigError(msg) from exc
        else:
            msg = f"routes must map route paths to template names, got {routes!r}"
            raise ConfigError(msg)

    if "debounce_ms" in merged:
        try:
            merged["debounce_ms"] = int(merged["debounce_ms"])  # type: ignore[call-overload]
        except (TypeError, ValueError) as exc:
            msg = f"debounce_ms must be an integer, got {merged['debounce_ms']!r}"
            raise ConfigError(msg) from exc

    if "mode" in merged and merged["mode"] not in ("develop", "build"):
        msg = f"mode must be 'develop' or 'build', got {merged['mode']!r}"
        raise ConfigError(msg)
