"""Configuration layering and the XDG data directory.

Settings for one run come from four layers, high to low precedence:

1. CLI flags (passed to :func:`resolve_config` as ``cli_overrides``);
2. environment variables (``SWAGDOC_DIRS``, ``SWAGDOC_EXCLUDE_DIRS``,
   ``SWAGDOC_GENERAL_INFO``, ``SWAGDOC_OUTPUT``, ``SWAGDOC_OUTPUT_TYPES``,
   ``SWAGDOC_OAS``, ``SWAGDOC_MAX_FILE_SIZE``, ``SWAGDOC_WORKERS``);
3. the project file ``./swagdoc.json`` (or ``--config PATH``);
4. the defaults of :class:`~swagdoc.models.GenerateConfig`.

List-valued settings given as strings are comma separated. Validation
failures of any layer surface as
:class:`~swagdoc.exceptions.ConfigurationError`.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from swagdoc.exceptions import ConfigurationError
from swagdoc.models import GenerateConfig

_APP_NAME = "swagdoc"
PROJECT_CONFIG_FILENAME = "swagdoc.json"

ENV_VARS: dict[str, str] = {
    "SWAGDOC_DIRS": "search_dirs",
    "SWAGDOC_EXCLUDE_DIRS": "exclude_dirs",
    "SWAGDOC_GENERAL_INFO": "general_info",
    "SWAGDOC_OUTPUT": "output_dir",
    "SWAGDOC_OUTPUT_TYPES": "output_types",
    "SWAGDOC_OAS": "openapi_version",
    "SWAGDOC_MAX_FILE_SIZE": "max_file_size_mb",
    "SWAGDOC_WORKERS": "workers",
}
"""Environment variable to :class:`GenerateConfig` field."""

_LIST_FIELDS = {"search_dirs", "exclude_dirs", "output_types"}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/swagdoc/`` (default ``~/.local/share/swagdoc/``).
    On macOS/Windows: ``~/.swagdoc/logs/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_DATA_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Layers ---


def split_list(value: Any) -> list[str]:
    """``"a, b,,c"`` -> ``["a", "b", "c"]``; lists pass through flattened."""
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple)) else [value]
    parts: list[str] = []
    for item in items:
        parts.extend(p.strip() for p in str(item).split(",") if p.strip())
    return parts


def load_project_config(path: Optional[Path] = None) -> dict[str, Any]:
    """Load the project configuration file.

    Args:
        path: Explicit file. When ``None``, ``./swagdoc.json`` is used if
            it exists.

    Returns:
        The parsed settings, or an empty dict when no file applies.

    Raises:
        ConfigurationError: If an explicit *path* does not exist, or the
            file is not a JSON object.
    """
    explicit = path is not None
    path = path if path is not None else Path.cwd() / PROJECT_CONFIG_FILENAME
    if not path.is_file():
        if explicit:
            raise ConfigurationError(f"Config file '{path}' not found")
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Invalid project config at {path}: expected a JSON object")
    return data


def load_env_config(environ: Optional[dict[str, str]] = None) -> dict[str, Any]:
    """Settings from ``SWAGDOC_*`` environment variables that are set and non-empty."""
    environ = environ if environ is not None else dict(os.environ)
    settings: dict[str, Any] = {}
    for var, field_name in ENV_VARS.items():
        value = environ.get(var, "")
        if value:
            settings[field_name] = value
    return settings


def _normalize(settings: dict[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in settings.items():
        if value is None:
            continue
        if key in _LIST_FIELDS:
            value = split_list(value)
        normalized[key] = value
    return normalized


def resolve_config(
    cli_overrides: Optional[dict[str, Any]] = None,
    config_path: Optional[Path] = None,
    environ: Optional[dict[str, str]] = None,
) -> GenerateConfig:
    """Merge all layers into the effective :class:`GenerateConfig`.

    Args:
        cli_overrides: Flag values; ``None`` entries mean "not given".
        config_path: Explicit project config file.
        environ: Environment mapping, ``os.environ`` by default.

    Raises:
        ConfigurationError: For unreadable files or invalid values.
    """
    merged: dict[str, Any] = {}
    merged.update(_normalize(load_project_config(config_path)))
    merged.update(_normalize(load_env_config(environ)))
    merged.update(_normalize(cli_overrides or {}))

    unknown = sorted(set(merged) - set(GenerateConfig.model_fields))
    if unknown:
        raise ConfigurationError(f"Unknown configuration key(s): {', '.join(unknown)}")
    try:
        return GenerateConfig.model_validate(merged)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from exc
