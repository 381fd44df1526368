"""YAML loading for experiment files, rejecting duplicate keys.

A repeated key in a hand-edited experiment file (two ``frequencies:`` lists,
say) would otherwise silently keep the last value. The loader here raises
instead.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, TextIO, Union

import yaml


class UniqueKeyLoader(yaml.SafeLoader):
    """Safe YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict:
    loader.flatten_mapping(node)
    mapping = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            line = key_node.start_mark.line + 1
            raise ValueError(f"Duplicate key '{key}' in YAML (line {line}).")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def load_yaml(stream: Union[str, TextIO]) -> Any:
    """Parse YAML text or a file-like object.

    Raises:
        ValueError: If a mapping repeats a key.
    """
    return yaml.load(stream, Loader=UniqueKeyLoader)


def load_yaml_file(path: Union[str, Path]) -> Any:
    """Parse the YAML file at ``path``.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If a mapping repeats a key.
    """
    with open(path, "r", encoding="utf-8") as handle:
        return load_yaml(handle)


def dump_yaml(data: Any) -> str:
    """Serialise ``data`` as block-style YAML, preserving key order."""
    return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
