"""Parameter extraction for internal tools.

Every helper raises ValueError with a message suitable for returning to the
model as a tool error.
"""

from typing import Any, Dict, List


def _as_mapping(parameters: Any, name: str, required: bool) -> Dict[str, Any] | None:
    if isinstance(parameters, dict):
        return parameters
    if required:
        raise ValueError(f"Missing required parameter: {name}")
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def required_string(parameters: Any, name: str) -> str:
    params = _as_mapping(parameters, name, required=True)
    value = params.get(name)
    if not isinstance(value, str):
        raise ValueError(f"Parameter {name} must be a string")
    return value


def optional_string(parameters: Any, name: str) -> str | None:
    params = _as_mapping(parameters, name, required=False)
    if params is None or params.get(name) is None:
        return None
    value = params[name]
    if not isinstance(value, str):
        raise ValueError(f"Parameter {name} must be a string")
    return value


def required_number(parameters: Any, name: str) -> float:
    params = _as_mapping(parameters, name, required=True)
    value = params.get(name)
    if not _is_number(value):
        raise ValueError(f"Parameter {name} must be a number")
    return value


def optional_number(parameters: Any, name: str) -> float | None:
    params = _as_mapping(parameters, name, required=False)
    if params is None or params.get(name) is None:
        return None
    value = params[name]
    if not _is_number(value):
        raise ValueError(f"Parameter {name} must be a number")
    return value


def _string_list(value: Any, name: str) -> List[str]:
    if not isinstance(value, list):
        raise ValueError(f"Parameter {name} must be an array")
    if not all(isinstance(item, str) for item in value):
        raise ValueError(f"All items in {name} must be strings")
    return list(value)


def required_string_list(parameters: Any, name: str) -> List[str]:
    params = _as_mapping(parameters, name, required=True)
    return _string_list(params.get(name), name)


def optional_string_list(parameters: Any, name: str) -> List[str] | None:
    params = _as_mapping(parameters, name, required=False)
    if params is None or params.get(name) is None:
        return None
    return _string_list(params[name], name)
