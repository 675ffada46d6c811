"""
orjson-backed JSON helpers
==========================

Used for structured metrics log lines and stable hashing of payloads.
"""

from typing import Any, Callable, Optional

import orjson

JSONDecodeError = orjson.JSONDecodeError


def dumps(obj: Any, indent: Optional[int] = None, sort_keys: bool = False, default: Optional[Callable] = None) -> str:
    """
    Serialize obj to a JSON string using orjson

    Args:
        obj: Object to serialize
        indent: Pretty-print with two-space indentation when set
        sort_keys: Emit keys in sorted order (stable output for hashing)
        default: Callable for objects orjson cannot serialize (e.g. default=str)
    """
    option = orjson.OPT_SERIALIZE_UUID | orjson.OPT_NON_STR_KEYS
    if indent is not None:
        option |= orjson.OPT_INDENT_2
    if sort_keys:
        option |= orjson.OPT_SORT_KEYS
    return orjson.dumps(obj, default=default, option=option).decode("utf-8")


def loads(s: Any) -> Any:
    return orjson.loads(s)
