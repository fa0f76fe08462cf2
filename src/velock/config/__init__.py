"""Configuration schema and YAML loading."""

from .loader import config_from_dict, load_config, merge_sections
from .schema import Config

__all__ = [
    "Config",
    "config_from_dict",
    "load_config",
    "merge_sections"
]
