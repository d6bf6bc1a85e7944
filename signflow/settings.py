"""YAML-backed application settings."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
import os
from pathlib import Path
from typing import Any

import structlog
import yaml

from signflow.geometry.policy import PlacementPolicy

logger = structlog.get_logger(__name__)

CONFIG_ENV_VAR = "SIGNFLOW_CONFIG"


class SettingsError(RuntimeError):
    """Raised when a settings file cannot be read or has invalid values."""


@dataclass(slots=True)
class ServiceSettings:
    base_url: str | None = None
    api_token: str | None = None
    timeout_seconds: float = 10.0


@dataclass(slots=True)
class PlacementSettings:
    click_threshold_px: float = 5.0
    min_draw_width_px: float = 50.0
    min_draw_height_px: float = 30.0
    min_resize_px: float = 30.0
    repeat_placement: bool = False

    def policy(self) -> PlacementPolicy:
        return PlacementPolicy(
            click_threshold=self.click_threshold_px,
            min_draw_width=self.min_draw_width_px,
            min_draw_height=self.min_draw_height_px,
            min_resize=self.min_resize_px,
        )


@dataclass(slots=True)
class ViewerSettings:
    initial_scale: float = 1.0
    min_scale: float = 0.5
    max_scale: float = 3.0
    zoom_in_factor: float = 1.25
    zoom_out_factor: float = 0.8
    scale_epsilon: float = 0.001


@dataclass(slots=True)
class FlattenSettings:
    text_font: str = "Helvetica"
    signature_font: str = "Helvetica-Oblique"
    max_font_size: float = 12.0


@dataclass(slots=True)
class Settings:
    document_id: str = "local"
    log_level: str = "INFO"
    service: ServiceSettings = field(default_factory=ServiceSettings)
    placement: PlacementSettings = field(default_factory=PlacementSettings)
    viewer: ViewerSettings = field(default_factory=ViewerSettings)
    flatten: FlattenSettings = field(default_factory=FlattenSettings)
    signers: list[dict[str, Any]] = field(default_factory=list)


_SECTIONS = {
    "service": ServiceSettings,
    "placement": PlacementSettings,
    "viewer": ViewerSettings,
    "flatten": FlattenSettings,
}


def _build_section(name: str, cls: type, raw: Any) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise SettingsError(f"Section '{name}' must be a mapping")
    known = {item.name: item for item in fields(cls)}
    values: dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            logger.warning("settings.unknown_key", section=name, key=key)
            continue
        default = getattr(cls(), key)
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise SettingsError(f"{name}.{key} must be true or false")
        elif isinstance(default, float):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise SettingsError(f"{name}.{key} must be a number")
            value = float(value)
        elif value is not None:
            value = str(value)
        values[key] = value
    return cls(**values)


def settings_from_dict(data: dict[str, Any]) -> Settings:
    settings = Settings()
    for key, value in data.items():
        if key in _SECTIONS:
            setattr(settings, key, _build_section(key, _SECTIONS[key], value))
        elif key in ("document_id", "log_level"):
            setattr(settings, key, str(value))
        elif key == "signers":
            if not isinstance(value, list) or not all(isinstance(item, dict) and "id" in item for item in value):
                raise SettingsError("signers must be a list of mappings with an 'id'")
            settings.signers = value
        else:
            logger.warning("settings.unknown_key", key=key)
    return settings


def load_settings(path: str | Path | None = None) -> Settings:
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return Settings()

    config_path = Path(path)
    if not config_path.exists():
        logger.info("settings.file_missing", path=str(config_path))
        return Settings()

    try:
        with config_path.open(encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise SettingsError(f"Failed to read settings: {config_path}") from exc

    if not isinstance(data, dict):
        raise SettingsError(f"Settings file must contain a mapping: {config_path}")
    return settings_from_dict(data)
