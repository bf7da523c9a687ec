"""
Typed access to tool call arguments, and the tool result wrapper.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ...errors import InvalidParamsError


@dataclass
class ToolResult:
    """Tool output with an explicit error flag (an error-like outcome, not a protocol error)."""

    text: str
    is_error: bool = False


class ToolArguments:
    """
    Read-only view over the ``arguments`` object of a tools/call request.

    Getters return None (or the given default) for absent arguments and raise
    InvalidParamsError when a present argument has the wrong JSON type.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values = dict(values or {})

    def __contains__(self, name: str) -> bool:
        return self._values.get(name) is not None

    def raw(self, name: str) -> Any:
        return self._values.get(name)

    def _typed(self, name: str, types: tuple, label: str, default: Any) -> Any:
        value = self._values.get(name)
        if value is None:
            return default
        # bool is an int subclass; never accept it as a number
        if isinstance(value, bool) and bool not in types:
            raise InvalidParamsError(f"Argument '{name}' must be {label}")
        if not isinstance(value, types):
            raise InvalidParamsError(f"Argument '{name}' must be {label}")
        return value

    def get_str(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._typed(name, (str,), "a string", default)

    def require_str(self, name: str) -> str:
        value = self.get_str(name)
        if value is None:
            raise InvalidParamsError(f"Missing required argument: {name}")
        return value

    def get_int(self, name: str, default: Optional[int] = None) -> Optional[int]:
        value = self._typed(name, (int, float), "an integer", default)
        if isinstance(value, float):
            if not value.is_integer():
                raise InvalidParamsError(f"Argument '{name}' must be an integer")
            return int(value)
        return value

    def require_int(self, name: str) -> int:
        value = self.get_int(name)
        if value is None:
            raise InvalidParamsError(f"Missing required argument: {name}")
        return value

    def get_float(self, name: str, default: Optional[float] = None) -> Optional[float]:
        value = self._typed(name, (int, float), "a number", default)
        return float(value) if value is not None else None

    def require_float(self, name: str) -> float:
        value = self.get_float(name)
        if value is None:
            raise InvalidParamsError(f"Missing required argument: {name}")
        return value

    def get_bool(self, name: str, default: Optional[bool] = None) -> Optional[bool]:
        return self._typed(name, (bool,), "a boolean", default)

    def require_bool(self, name: str) -> bool:
        value = self.get_bool(name)
        if value is None:
            raise InvalidParamsError(f"Missing required argument: {name}")
        return value

    def __repr__(self) -> str:
        return f"ToolArguments({self._values!r})"
