# core/lore_tables.py
"""Load and validate the data-driven lore tables.

Three YAML files describe the world: per-archetype voice/delivery/visual
profiles, location visual descriptions, and the per-page scene timeline.
They are validated once at startup; any gap raises `ConfigurationError`
instead of degrading to a silent default later in a run.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

import config
from core.exceptions import ConfigurationError, create_error_context
from models.narrative_models import Archetype, SceneConfig
from utils.common import load_yaml_file

logger = structlog.get_logger(__name__)


class ArchetypeProfile(BaseModel):
    voice: str
    delivery: str
    visual: str


@dataclass(frozen=True)
class LoreTables:
    """Validated lore tables keyed by archetype, location and page number."""

    archetypes: dict[Archetype, ArchetypeProfile]
    locations: dict[str, str]
    default_location: str
    timeline: dict[int, SceneConfig]
    fallback_scene: SceneConfig
    default_voice: str = "Puck"

    def voice_for(self, archetype: Archetype) -> str:
        profile = self.archetypes.get(archetype)
        return profile.voice if profile else self.default_voice

    def delivery_for(self, archetype: Archetype) -> str:
        profile = self.archetypes.get(archetype)
        return profile.delivery if profile else ""

    def visual_for(self, archetype: Archetype) -> str:
        profile = self.archetypes.get(archetype)
        return profile.visual if profile else ""

    def location_visual(self, location: str) -> str:
        return self.locations.get(location) or self.locations[self.default_location]


def _require_mapping(data: dict[str, Any], key: str, path: str) -> dict[Any, Any]:
    value = data.get(key)
    if not isinstance(value, dict) or not value:
        raise ConfigurationError(
            f"Lore table is missing a non-empty '{key}' mapping",
            details=create_error_context(path=path, key=key),
        )
    return value


def _load(path: str | Path) -> dict[str, Any]:
    data = load_yaml_file(str(path))
    if data is None:
        raise ConfigurationError("Lore table could not be loaded", details={"path": str(path)})
    return data


def _parse_archetypes(path: str) -> tuple[dict[Archetype, ArchetypeProfile], str]:
    data = _load(path)
    raw = _require_mapping(data, "archetypes", path)

    profiles: dict[Archetype, ArchetypeProfile] = {}
    for name, entry in raw.items():
        try:
            archetype = Archetype(name)
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown archetype '{name}' in archetype table",
                details=create_error_context(path=path),
            ) from e
        try:
            profiles[archetype] = ArchetypeProfile.model_validate(entry)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid profile for archetype '{name}'",
                details=create_error_context(path=path, errors=e.errors(include_url=False)),
            ) from e

    missing = [a.value for a in Archetype if a not in profiles]
    if missing:
        raise ConfigurationError(
            "Archetype table is incomplete",
            details=create_error_context(path=path, missing=missing),
        )
    return profiles, str(data.get("default_voice") or "Puck")


def _parse_locations(path: str) -> tuple[dict[str, str], str]:
    data = _load(path)
    raw = _require_mapping(data, "locations", path)
    locations = {str(k): str(v) for k, v in raw.items()}
    default_location = str(data.get("default_location") or "")
    if default_location not in locations:
        raise ConfigurationError(
            "default_location must name a listed location",
            details=create_error_context(path=path, default_location=default_location or None),
        )
    return locations, default_location


def _parse_scene(entry: Any, locations: dict[str, str], path: str, where: str) -> SceneConfig:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"Timeline entry {where} must be a mapping", details={"path": path})
    try:
        scene = SceneConfig(
            location=entry.get("location", ""),
            focus_archetype=entry.get("focus", ""),
            intent=entry.get("intent", ""),
        )
    except ValidationError as e:
        raise ConfigurationError(
            f"Timeline entry {where} is invalid",
            details=create_error_context(path=path, errors=e.errors(include_url=False)),
        ) from e
    if scene.location not in locations:
        raise ConfigurationError(
            f"Timeline entry {where} references unknown location '{scene.location}'",
            details={"path": path},
        )
    return scene


def _parse_timeline(path: str, locations: dict[str, str]) -> tuple[dict[int, SceneConfig], SceneConfig]:
    data = _load(path)
    if "fallback" not in data:
        raise ConfigurationError("Timeline is missing its fallback entry", details={"path": path})
    fallback = _parse_scene(data["fallback"], locations, path, "fallback")

    raw_pages = _require_mapping(data, "pages", path)
    timeline: dict[int, SceneConfig] = {}
    for key, entry in raw_pages.items():
        try:
            page = int(key)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Timeline page key '{key}' is not an integer", details={"path": path}) from e
        timeline[page] = _parse_scene(entry, locations, path, f"page {page}")
    return timeline, fallback


def load_lore_tables(
    archetypes_path: str | None = None,
    locations_path: str | None = None,
    timeline_path: str | None = None,
) -> LoreTables:
    """Load all three lore tables and validate them against each other.

    Args:
        archetypes_path: Archetype table; defaults to `config.ARCHETYPES_FILE`.
        locations_path: Location table; defaults to `config.LOCATIONS_FILE`.
        timeline_path: Timeline table; defaults to `config.TIMELINE_FILE`.

    Returns:
        The validated `LoreTables`.

    Raises:
        ConfigurationError: If any table is missing, malformed or incomplete.
    """
    archetypes_path = str(archetypes_path or config.ARCHETYPES_FILE)
    locations_path = str(locations_path or config.LOCATIONS_FILE)
    timeline_path = str(timeline_path or config.TIMELINE_FILE)

    archetypes, default_voice = _parse_archetypes(archetypes_path)
    locations, default_location = _parse_locations(locations_path)
    timeline, fallback = _parse_timeline(timeline_path, locations)

    missing_pages = [p for p in range(1, config.MAX_STORY_PAGES + 1) if p not in timeline]
    if missing_pages:
        logger.warning("Timeline does not cover every story page; fallback scene will be used", pages=missing_pages)

    logger.info(
        "Lore tables loaded",
        archetypes=len(archetypes),
        locations=len(locations),
        timeline_pages=len(timeline),
    )
    return LoreTables(
        archetypes=archetypes,
        locations=locations,
        default_location=default_location,
        timeline=timeline,
        fallback_scene=fallback,
        default_voice=default_voice,
    )
