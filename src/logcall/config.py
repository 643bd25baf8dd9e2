from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

from logcall.detector import DEFAULT_WRAPPER_CONSTRUCTORS
from logcall.format import RenderMode
from logcall.synthesis import SynthesisConfig

DEFAULT_CONFIG_NAME = "logcall.toml"
DEFAULT_DECORATORS: tuple[str, ...] = ("logcall", "logcall.logcall")

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def transform_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("logcall", {})
    return section if isinstance(section, dict) else {}


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def _as_bool(value: TomlValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _as_name(value: TomlValue, fallback: str) -> str:
    if isinstance(value, str) and value.strip().isidentifier():
        return value.strip()
    return fallback


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


def decorator_names(section: TomlTable | None) -> tuple[str, ...]:
    if not isinstance(section, dict):
        return DEFAULT_DECORATORS
    names = _normalize_name_list(section.get("decorators"))
    return tuple(names) if names else DEFAULT_DECORATORS


def ensure_logger_enabled(section: TomlTable | None) -> bool:
    if not isinstance(section, dict):
        return False
    return _as_bool(section.get("ensure_logger"))


def synthesis_config(section: TomlTable | None) -> SynthesisConfig:
    if not isinstance(section, dict):
        return SynthesisConfig()
    defaults = SynthesisConfig()
    result_types = _normalize_name_list(section.get("result_types"))
    constructors = _normalize_name_list(section.get("wrapper_constructors"))
    return SynthesisConfig(
        structured=_as_bool(section.get("structured")),
        render=RenderMode.DISPLAY if _as_bool(section.get("display")) else RenderMode.DEBUG,
        logger_name=_as_name(section.get("logger"), defaults.logger_name),
        result_types=tuple(result_types) or defaults.result_types,
        ok_type=_as_name(section.get("ok_type"), defaults.ok_type),
        err_type=_as_name(section.get("err_type"), defaults.err_type),
        wrapper_constructors=tuple(constructors) or DEFAULT_WRAPPER_CONSTRUCTORS,
    )
