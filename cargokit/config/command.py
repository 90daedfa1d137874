"""
Command and flag values.

Several settings name an external program plus arguments (`build.rustc`,
`target.<triple>.runner`, `doc.browser`, ...). They may be written either as
a single string, split on spaces with no further quote handling, or as an
array whose elements are taken verbatim:

    runner = "qemu-aarch64 -L /usr/aarch64-linux-gnu"
    runner = ["qemu-aarch64", "-L", "/path with spaces"]

Flag lists (`build.rustflags`) are converted to and from the two encodings
the build tool passes on: 0x1f separated and space separated.
"""

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from cargokit.config.value import ConfigValue, Definition, Kind
from cargokit.core.exceptions import ConfigValueError, FlagEncodingError


def split_space_separated(text: str) -> List[str]:
    """Split on spaces, trimming each piece and dropping empty ones."""
    return [part.strip() for part in text.split(" ") if part.strip()]


def resolve_program(program: str, definition: Optional[Definition], cwd: Path) -> Path:
    """
    Resolve a program path relative to where it was defined.

    Bare names (`clang`) are left for PATH lookup; relative paths with a
    separator (`tools/clang`) are joined to the definition root.
    """
    path = Path(program)
    if path.is_absolute() or ("/" not in program and "\\" not in program):
        return path
    if definition is None:
        return cwd / path
    return definition.root(cwd) / path


def resolve_path(value: str, definition: Optional[Definition], cwd: Path) -> Path:
    """Resolve a directory or file path relative to where it was defined."""
    path = Path(value)
    if path.is_absolute():
        return path
    if definition is None:
        return cwd / path
    return definition.root(cwd) / path


@dataclass(frozen=True)
class PathAndArgs:
    """
    A program and its leading arguments.

    Attributes:
        path: Program to run
        args: Arguments placed before any arguments the caller adds
    """

    path: Path
    args: Tuple[str, ...] = ()

    @classmethod
    def from_value(cls, value: ConfigValue, key: str, cwd: Path) -> "PathAndArgs":
        """
        Build from a string or array configuration value.

        Raises:
            ConfigValueError: If the value is empty or not a string or array
                of strings
        """
        if value.kind is Kind.STRING:
            parts = split_space_separated(value.data)
        elif value.kind is Kind.ARRAY:
            parts = value.as_str_list(key)
        else:
            raise ConfigValueError(
                f"expected a string or array of strings, but found a "
                f"{value.kind.value} for `{key}` in {value.definition or 'unknown location'}"
            )
        if not parts:
            raise ConfigValueError(
                f"invalid length 0, expected at least one element for `{key}`"
            )
        return cls(resolve_program(parts[0], value.definition, cwd), tuple(parts[1:]))

    @classmethod
    def from_program(cls, program: str, args: Iterable[str] = ()) -> "PathAndArgs":
        return cls(Path(program), tuple(args))

    def with_args(self, args: Iterable[str]) -> "PathAndArgs":
        return PathAndArgs(self.path, self.args + tuple(args))

    def argv(self) -> List[str]:
        """Invocation as a list, suitable for subprocess.run()."""
        return [str(self.path), *self.args]

    def __str__(self) -> str:
        return shlex.join(self.argv())


@dataclass(frozen=True)
class Flags:
    """An ordered list of compiler flags."""

    flags: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_list(cls, flags: Iterable[str]) -> "Flags":
        return cls(tuple(flags))

    @classmethod
    def from_encoded(cls, text: str) -> "Flags":
        """Parse 0x1f separated flags (`CARGO_ENCODED_RUSTFLAGS` format)."""
        return cls(tuple(text.split("\x1f")) if text else ())

    @classmethod
    def from_space_separated(cls, text: str) -> "Flags":
        """Parse space separated flags (`RUSTFLAGS` format)."""
        return cls(tuple(split_space_separated(text)))

    def _encode(self, separator: str) -> str:
        for flag in self.flags:
            if separator in flag:
                raise FlagEncodingError(flag, separator, self.flags)
        return separator.join(self.flags)

    def encode(self) -> str:
        """Encode as 0x1f separated text."""
        return self._encode("\x1f")

    def encode_space_separated(self) -> str:
        """Encode as space separated text."""
        return self._encode(" ")

    def push(self, flag: str) -> "Flags":
        return Flags(self.flags + (flag,))

    def __iter__(self):
        return iter(self.flags)

    def __len__(self) -> int:
        return len(self.flags)

    def __bool__(self) -> bool:
        return bool(self.flags)


__all__ = [
    "split_space_separated",
    "resolve_program",
    "resolve_path",
    "PathAndArgs",
    "Flags",
]
