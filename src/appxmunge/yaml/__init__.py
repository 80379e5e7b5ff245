from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

PLUGIN_YAML = YAML()

__all__ = [
    "PLUGIN_YAML",
    "YAML",
    "YAMLError",
]
