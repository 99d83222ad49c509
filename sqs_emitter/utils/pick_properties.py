# utils/pick_properties.py
from typing import Any, Dict, Iterable


def pick_properties(content: Any, keys: Iterable[str]) -> Dict[str, Any]:
    """
    Copy the listed keys of `content` whose values are truthy.
    Content that is not a mapping has nothing to pick.
    """
    if not isinstance(content, dict):
        return {}

    result = {}
    for key in keys:
        if content.get(key):
            result[key] = content[key]
    return result
