"""
Exception hierarchy for CargoKit.

Every error raised by the configuration engine derives from CargoKitError so
callers can catch the whole family at one point. Errors carry the structured
context they were raised with (paths, keys, positions) as attributes.
"""

from pathlib import Path
from typing import Iterable, Optional, Sequence, Union


class CargoKitError(Exception):
    """Base exception for all CargoKit errors."""

    pass


# ============================================================================
# Loading
# ============================================================================


class LoadError(CargoKitError):
    """Raised when a configuration document exists but cannot be read or parsed."""

    def __init__(self, path: Union[str, Path], detail: str):
        self.path = Path(path)
        self.detail = detail
        super().__init__(f"failed to load config from {self.path}: {detail}")


class TypeMismatch(CargoKitError):
    """Raised by strict merges when a table or array meets a different kind."""

    def __init__(
        self,
        key: str,
        base_kind: str,
        override_kind: str,
        base_origin: Optional[str] = None,
        override_origin: Optional[str] = None,
    ):
        self.key = key
        self.base_kind = base_kind
        self.override_kind = override_kind
        self.base_origin = base_origin
        self.override_origin = override_origin
        message = (
            f"failed to merge config value `{key or '<root>'}`: "
            f"expected {base_kind}, but found {override_kind}"
        )
        if base_origin and override_origin:
            message += f" (from {base_origin} and {override_origin})"
        super().__init__(message)


class ConfigValueError(CargoKitError):
    """Raised when a known configuration key holds a value of the wrong shape."""

    pass


# ============================================================================
# Environment
# ============================================================================


class InvalidEnvValue(CargoKitError):
    """Raised when an environment variable cannot be coerced to its bound kind."""

    def __init__(self, variable: str, value: str, expected: str):
        self.variable = variable
        self.value = value
        self.expected = expected
        super().__init__(
            f"failed to parse environment variable `{variable}`: "
            f"expected {expected}, found `{value}`"
        )


# ============================================================================
# Predicates and platform attributes
# ============================================================================


class ParseError(CargoKitError):
    """Raised for a malformed platform predicate; points at the offending column."""

    def __init__(self, reason: str, position: int, source: str = ""):
        self.reason = reason
        self.position = position
        self.source = source
        message = f"{reason} at position {position}"
        if source:
            message += f"\n{source}\n{' ' * position}^"
        super().__init__(message)


class InvalidPredicate(CargoKitError):
    """Raised when a bare attribute name needs a value to be evaluated."""

    def __init__(self, name: str, source: str = ""):
        self.name = name
        self.source = source
        super().__init__(
            f"`{name}` cannot be used as a bare predicate; "
            f'write `{name} = "..."` instead'
        )


class UnknownAttribute(CargoKitError):
    """Raised when an attribute key is not part of the platform catalog."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"unknown platform attribute `{key}`")


class TooManyValues(CargoKitError):
    """Raised when a single-valued attribute is given more than one value."""

    def __init__(self, key: str, values: Iterable[str]):
        self.key = key
        self.values = tuple(values)
        super().__init__(
            f"`{key}` accepts a single value, but found {len(self.values)}: "
            + ", ".join(self.values)
        )


class UnknownTarget(CargoKitError):
    """Raised when a target identifier is neither known nor a valid triple."""

    def __init__(self, identifier: str, detail: Optional[str] = None):
        self.identifier = identifier
        message = f"unknown target `{identifier}`"
        if detail:
            message += f": {detail}"
        super().__init__(message)


# ============================================================================
# Commands and flags
# ============================================================================


class FlagEncodingError(CargoKitError):
    """Raised when a flag cannot be encoded because it contains the separator."""

    def __init__(self, flag: str, separator: str, flags: Sequence[str] = ()):
        self.flag = flag
        self.separator = separator
        self.flags = tuple(flags)
        super().__init__(
            f"flag `{flag}` contains separator {separator!r} and cannot be encoded"
        )


__all__ = [
    "CargoKitError",
    "LoadError",
    "TypeMismatch",
    "ConfigValueError",
    "InvalidEnvValue",
    "ParseError",
    "InvalidPredicate",
    "UnknownAttribute",
    "TooManyValues",
    "UnknownTarget",
    "FlagEncodingError",
]
