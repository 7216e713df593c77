from __future__ import annotations

import json
import os
from typing import Any, Optional

import yaml


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        return data.decode(encoding or 'utf-8')
    if isinstance(data, str):
        return data
    return str(data)


def detect_format(path: Optional[str] = None, data_hint: Optional[str] = None) -> str:
    """
    Returns the canonical document format: 'json' or 'yaml'.
    Uses the file extension first; falls back to simple data sniffing.
    YAML is the default since every YAPL program is a YAML document.
    """
    if path:
        ext = os.path.splitext(str(path))[1].lower()
        if ext == '.json':
            return 'json'
        if ext in ('.yapl', '.yaml', '.yml'):
            return 'yaml'
    if data_hint is not None:
        s = data_hint.lstrip()
        if s.startswith('{"'):
            # JSON objects are also valid YAML, but json gives sharper errors
            return 'json'
    return 'yaml'


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str,
                *,
                fmt: Optional[str] = None,
                path: Optional[str] = None) -> Any:
    """
    Decode a YAPL document (bytes or text) into plain Python structures.
    Supported fmt: 'yaml', 'json'. If fmt is None, uses the path, then sniffing.
    Decoder errors (yaml.YAMLError, json.JSONDecodeError) propagate unchanged.
    """
    text = _norm_text(data)
    f = fmt or detect_format(path, text)
    if f == 'json':
        return json.loads(text)
    if f == 'yaml':
        return yaml.safe_load(text)
    raise ValueError(f"Unsupported document format: {fmt!r}")


__all__ = [
    "deserialize",
    "detect_format",
]
