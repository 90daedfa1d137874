"""
Core functionality for CargoKit.

This package contains the foundational modules that other components depend on.
"""

from .directory import (
    get_home_dir,
    get_cargo_home,
    DirectoryError,
)

from .platform import (
    detect_host_triple,
    clear_host_cache,
)

from .exceptions import (
    CargoKitError,
    LoadError,
    TypeMismatch,
    ConfigValueError,
    InvalidEnvValue,
    ParseError,
    InvalidPredicate,
    UnknownAttribute,
    TooManyValues,
    UnknownTarget,
    FlagEncodingError,
)

__all__ = [
    # Directory
    "get_home_dir",
    "get_cargo_home",
    "DirectoryError",
    # Platform
    "detect_host_triple",
    "clear_host_cache",
    # Exceptions
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
