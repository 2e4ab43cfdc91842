"""Loading and validation of YAML pedal presets."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from savantctl.core.errors import KeyActionError, PresetLoadError, PresetValidationError
from savantctl.core.keys import parse_key_action
from savantctl.core.model import PEDAL_NAMES, Preset

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


# Pedal actions are strings; "on"/"yes" must not turn into booleans.
UniqueKeyLoader.yaml_implicit_resolvers = {
    first_char: [(tag, regexp) for tag, regexp in mappings if tag != "tag:yaml.org,2002:bool"]
    for first_char, mappings in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise PresetValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedPresets:
    presets: dict[str, Preset]
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("savantctl.schemas").joinpath("preset.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def user_preset_dir() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "savantctl/presets"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PresetLoadError(f"Could not read preset file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise PresetValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise PresetValidationError(f"Preset file {path} must contain a mapping at root")
    return loaded


def build_preset(doc: dict[str, Any], source: Path | Traversable | str) -> Preset:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise PresetValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    pedals = doc["pedals"]
    for pedal in PEDAL_NAMES:
        try:
            parse_key_action(pedals[pedal])
        except KeyActionError as exc:
            raise PresetValidationError(f"{doc['name']}.{pedal}: {exc}") from exc

    return Preset(
        name=doc["name"],
        description=doc.get("description", ""),
        left=pedals["left"].strip(),
        middle=pedals["middle"].strip(),
        right=pedals["right"].strip(),
    )


def _iter_packaged_preset_paths() -> list[Traversable]:
    preset_root = resources.files("savantctl.presets")
    return [item for item in preset_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_preset_paths() -> list[Path]:
    directory = user_preset_dir()
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"})


def load_presets() -> LoadedPresets:
    presets: dict[str, Preset] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_preset_paths(), key=lambda p: p.name):
        preset = build_preset(_read_yaml(path), path)
        presets[preset.name] = preset

    for path in _iter_user_preset_paths():
        preset = build_preset(_read_yaml(path), path)
        if preset.name in presets:
            warning = f"User preset '{preset.name}' overrides packaged preset"
            LOGGER.warning(warning)
            warnings.append(warning)
        presets[preset.name] = preset

    return LoadedPresets(presets=presets, warnings=tuple(warnings))
