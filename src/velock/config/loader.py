"""Configuration loading: YAML scenario files, partial sections and overrides."""

import copy
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from ..errors import InvalidConfiguration
from .schema import Config

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def merge_sections(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge ``overrides`` into a copy of ``base``.

    Nested mappings merge key by key; any other value (lists included, so a
    fee split is always replaced whole) overwrites the base value.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_sections(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def read_yaml(yaml_path: Union[str, Path]) -> Dict[str, Any]:
    """Read a scenario file; an empty file is an empty mapping."""
    with open(yaml_path, 'r') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidConfiguration(
            f"{yaml_path} must hold a mapping of config sections",
            details={"path": str(yaml_path), "type": type(data).__name__},
        )
    return data


def load_config(
    yaml_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Mapping[str, Any]] = None
) -> Config:
    """
    Load configuration from a YAML file.

    Args:
        yaml_path: Path to YAML file (defaults to the bundled defaults.yaml)
        overrides: Partial sections merged over the file before validation

    Returns:
        Config object
    """
    data = read_yaml(yaml_path if yaml_path is not None else DEFAULTS_PATH)
    if overrides:
        data = merge_sections(data, overrides)
    return Config.from_dict(data)


def config_from_dict(data: Mapping[str, Any], base: Optional[Config] = None) -> Config:
    """
    Create config from a possibly partial dictionary.

    Args:
        data: Configuration sections; missing sections and fields keep their value
        base: Config the sections are merged onto (schema defaults when None)

    Returns:
        Config object
    """
    if base is None:
        return Config.from_dict(dict(data))
    return Config.from_dict(merge_sections(base.to_dict(), data))
