"""YAML ディープマージユーティリティ"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """base と override をディープマージして新しい辞書を返す。

    override の値が優先される。リストは置換（マージしない）。
    """
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def nest_dotted(flat: Mapping[str, Any]) -> dict[str, Any]:
    """ドット区切りキーの辞書を入れ子の辞書に変換する。

    例: {"kafka.brokers": "a:9092"} -> {"kafka": {"brokers": "a:9092"}}
    """
    tree: dict[str, Any] = {}
    for key_path, value in flat.items():
        parts = [p for p in key_path.split(".") if p]
        if not parts:
            continue
        node = tree
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
    return tree
