"""Error handling for the simcomp package."""

from enum import IntEnum
from typing import Optional
from dataclasses import dataclass


class ErrorCode(IntEnum):
    """Error codes reported by definition, build and run failures."""

    NO_ERROR = 0
    NOT_FOUND = 1
    DUPLICATE_COMPONENT = 2
    UNKNOWN_DIMENSION = 3
    BAD_DIMENSION_KEYS = 4
    BAD_WINDOW = 5
    UNBOUND_PARAMETER = 6
    AMBIGUOUS_PARAMETER = 7
    DIMENSION_MISMATCH = 8
    UNIT_MISMATCH = 9
    MISSING_BACKUP = 10
    TYPE_CONVERSION = 11
    SHAPE_MISMATCH = 12
    DUPLICATE_BINDING = 13
    DUPLICATE_PARAMETER = 14
    HOOK_FAILED = 15
    NOT_RUN = 16
    READ_ONLY = 17


@dataclass
class ErrorDetail:
    """Detailed information about a single build problem."""

    code: ErrorCode
    message: str
    component_name: Optional[str] = None
    item_name: Optional[str] = None

    def __str__(self) -> str:
        """Return a human-readable string representation."""
        parts = [f"Error {self.code.name}"]

        if self.component_name:
            parts.append(f"in component '{self.component_name}'")

        if self.item_name:
            parts.append(f"for '{self.item_name}'")

        if self.message:
            parts.append(f": {self.message}")

        return " ".join(parts)


class SimcompError(Exception):
    """Base exception for all simcomp errors."""

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.code = code


class SimcompDefinitionError(SimcompError):
    """Exception raised when a definition mutation is invalid."""
    pass


class SimcompBindingError(SimcompError):
    """Exception raised when a model definition cannot be built."""

    def __init__(self, message: str, errors: Optional[list[ErrorDetail]] = None):
        codes = {e.code for e in errors or []}
        super().__init__(message, codes.pop() if len(codes) == 1 else None)
        self.errors = errors or []


class SimcompRuntimeError(SimcompError):
    """Exception raised during model execution or result access."""

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        component_name: Optional[str] = None,
        position: Optional[int] = None,
    ):
        super().__init__(message, code)
        self.component_name = component_name
        self.position = position


def error_code_to_string(code: int) -> str:
    """Convert an error code to a human-readable string."""
    try:
        error = ErrorCode(code)
        return error.name.replace("_", " ").title()
    except ValueError:
        return f"Unknown Error Code ({code})"
