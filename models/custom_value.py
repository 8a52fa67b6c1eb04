"""Typed value union for free-form rule fields (plugin arguments, extra plan conditions)."""
from typing import Any, Dict, List, Union

CustomValue = Union[None, bool, int, float, str, List["CustomValue"], Dict[str, "CustomValue"]]


def coerce_custom_value(value: Any, path: str = "value") -> CustomValue:
    """
    Check that a decoded document value fits the CustomValue union.

    Tuples are accepted and turned into lists, mappings are copied. Anything
    else (dates, sets, objects) raises TypeError naming the offending path.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [coerce_custom_value(item, f"{path}[{i}]") for i, item in enumerate(value)]
    if isinstance(value, dict):
        result: Dict[str, CustomValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"{path}: mapping keys must be strings, got {type(key).__name__}")
            result[key] = coerce_custom_value(item, f"{path}.{key}")
        return result
    raise TypeError(f"{path}: unsupported value type {type(value).__name__}")


def coerce_custom_mapping(value: Any, path: str = "value") -> Dict[str, CustomValue]:
    """Like coerce_custom_value but the top level must be a mapping (None means empty)."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"{path}: expected a mapping, got {type(value).__name__}")
    return coerce_custom_value(value, path)
