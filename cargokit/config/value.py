"""
Value model for layered configuration.

A configuration document is a tree of tables, arrays and scalars. Every node
is a ConfigValue that remembers where it was defined, so relative paths and
error messages can point back at the file or environment variable that
produced it.

Values are never mutated. merge() and set_path() always build new nodes, so a
base configuration can be shared between many target resolutions.

Usage:
    from cargokit.config.value import Definition, from_python, merge

    global_doc = from_python({"build": {"rustflags": ["-a"]}}, Definition.path(p1))
    project_doc = from_python({"build": {"rustflags": ["-b"]}}, Definition.path(p2))
    merged = merge(global_doc, project_doc)
    merged.to_python()  # {'build': {'rustflags': ['-a', '-b']}}
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import reduce
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from cargokit.core.exceptions import ConfigValueError, TypeMismatch


class Kind(str, Enum):
    """Kind of a configuration node."""

    TABLE = "table"
    ARRAY = "array"
    STRING = "string"
    BOOLEAN = "boolean"
    INTEGER = "integer"


class MergePolicy(str, Enum):
    """How merge() treats a table or array meeting a value of another kind."""

    OVERRIDE = "override"  # the more specific value replaces the other
    STRICT = "strict"  # raise TypeMismatch


class DefinitionKind(str, Enum):
    PATH = "path"
    ENVIRONMENT = "environment"
    CLI = "cli"


@dataclass(frozen=True)
class Definition:
    """
    Location where a configuration value was defined.

    Attributes:
        kind: Source of the value (file, environment variable, programmatic)
        location: File path or environment variable name
    """

    kind: DefinitionKind
    location: str = ""

    @classmethod
    def path(cls, path: Union[str, Path]) -> "Definition":
        return cls(DefinitionKind.PATH, str(path))

    @classmethod
    def environment(cls, variable: str) -> "Definition":
        return cls(DefinitionKind.ENVIRONMENT, variable)

    @classmethod
    def cli(cls, label: str = "") -> "Definition":
        return cls(DefinitionKind.CLI, label)

    def root(self, cwd: Path) -> Path:
        """
        Directory that relative paths defined here are resolved against.

        For a file at `<dir>/.cargo/config.toml` this is `<dir>`; values from
        the environment or set programmatically resolve against the cwd.
        """
        if self.kind is DefinitionKind.PATH:
            return Path(self.location).parent.parent
        return cwd

    def __str__(self) -> str:
        if self.kind is DefinitionKind.PATH:
            return self.location
        if self.kind is DefinitionKind.ENVIRONMENT:
            return f"environment variable `{self.location}`"
        return f"--config {self.location}".rstrip()


@dataclass(frozen=True)
class ConfigValue:
    """
    One node of a configuration tree.

    `data` holds a read-only mapping of ConfigValue for tables, a tuple of
    ConfigValue for arrays, and a plain str/bool/int for scalars. Equality
    ignores the definition.
    """

    kind: Kind
    data: Any
    definition: Optional[Definition] = field(default=None, compare=False)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def table(
        cls,
        entries: Optional[Mapping[str, "ConfigValue"]] = None,
        definition: Optional[Definition] = None,
    ) -> "ConfigValue":
        return cls(Kind.TABLE, MappingProxyType(dict(entries or {})), definition)

    @classmethod
    def array(
        cls, items: Iterable["ConfigValue"] = (), definition: Optional[Definition] = None
    ) -> "ConfigValue":
        return cls(Kind.ARRAY, tuple(items), definition)

    @classmethod
    def string(cls, value: str, definition: Optional[Definition] = None) -> "ConfigValue":
        return cls(Kind.STRING, value, definition)

    @classmethod
    def boolean(cls, value: bool, definition: Optional[Definition] = None) -> "ConfigValue":
        return cls(Kind.BOOLEAN, value, definition)

    @classmethod
    def integer(cls, value: int, definition: Optional[Definition] = None) -> "ConfigValue":
        return cls(Kind.INTEGER, value, definition)

    @classmethod
    def string_list(
        cls, values: Iterable[str], definition: Optional[Definition] = None
    ) -> "ConfigValue":
        return cls.array((cls.string(v, definition) for v in values), definition)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def is_table(self) -> bool:
        return self.kind is Kind.TABLE

    @property
    def is_array(self) -> bool:
        return self.kind is Kind.ARRAY

    @property
    def is_container(self) -> bool:
        return self.kind in (Kind.TABLE, Kind.ARRAY)

    def get(self, key: str) -> Optional["ConfigValue"]:
        """Return the entry `key` of a table, or None for missing keys and non-tables."""
        if not self.is_table:
            return None
        return self.data.get(key)

    def keys(self) -> List[str]:
        return list(self.data) if self.is_table else []

    def items(self) -> List[Tuple[str, "ConfigValue"]]:
        return list(self.data.items()) if self.is_table else []

    def to_python(self) -> Any:
        """Convert to plain dicts, lists and scalars."""
        if self.kind is Kind.TABLE:
            return {k: v.to_python() for k, v in self.data.items()}
        if self.kind is Kind.ARRAY:
            return [v.to_python() for v in self.data]
        return self.data

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    def _expect(self, kind: Kind, key: str) -> Any:
        if self.kind is not kind:
            raise ConfigValueError(
                f"expected {kind.value}, but found {self.kind.value} "
                f"for `{key}` in {self.definition or 'unknown location'}"
            )
        return self.data

    def as_str(self, key: str) -> str:
        return self._expect(Kind.STRING, key)

    def as_bool(self, key: str) -> bool:
        return self._expect(Kind.BOOLEAN, key)

    def as_int(self, key: str) -> int:
        return self._expect(Kind.INTEGER, key)

    def as_table(self, key: str) -> Mapping[str, "ConfigValue"]:
        return self._expect(Kind.TABLE, key)

    def as_str_list(self, key: str) -> List[str]:
        items = self._expect(Kind.ARRAY, key)
        return [item.as_str(key) for item in items]

    def __repr__(self) -> str:
        return f"ConfigValue({self.kind.value}, {self.to_python()!r})"


def from_python(data: Any, definition: Optional[Definition] = None) -> ConfigValue:
    """
    Build a ConfigValue tree from parsed document data.

    Args:
        data: Output of a document parser (dicts, lists, str, bool, int)
        definition: Where the document came from; attached to every node

    Returns:
        ConfigValue tree

    Raises:
        ConfigValueError: If the data contains a kind the model cannot hold
            (floats, dates, ...)
    """
    # bool is a subclass of int, check it first
    if isinstance(data, bool):
        return ConfigValue.boolean(data, definition)
    if isinstance(data, int):
        return ConfigValue.integer(data, definition)
    if isinstance(data, str):
        return ConfigValue.string(data, definition)
    if isinstance(data, Mapping):
        return ConfigValue.table(
            {str(k): from_python(v, definition) for k, v in data.items()}, definition
        )
    if isinstance(data, (list, tuple)):
        return ConfigValue.array((from_python(v, definition) for v in data), definition)
    raise ConfigValueError(
        f"found configuration value of unsupported type `{type(data).__name__}` "
        f"in {definition or 'unknown location'}"
    )


def merge(
    base: ConfigValue,
    override: ConfigValue,
    policy: MergePolicy = MergePolicy.OVERRIDE,
    _key: str = "",
) -> ConfigValue:
    """
    Merge `override` on top of `base`.

    Tables merge key by key, arrays concatenate (base entries first), and any
    other combination resolves to `override`. Under MergePolicy.STRICT a table
    or array meeting a value of a different kind raises TypeMismatch instead.

    Args:
        base: Less specific value
        override: More specific value
        policy: Mismatch policy

    Returns:
        New merged value; neither input is modified

    Raises:
        TypeMismatch: On a container kind conflict under MergePolicy.STRICT
    """
    if base.kind is Kind.TABLE and override.kind is Kind.TABLE:
        entries: Dict[str, ConfigValue] = dict(base.data)
        for key, value in override.data.items():
            child_key = f"{_key}.{key}" if _key else key
            if key in entries:
                entries[key] = merge(entries[key], value, policy, child_key)
            else:
                entries[key] = value
        return ConfigValue.table(entries, override.definition or base.definition)

    if base.kind is Kind.ARRAY and override.kind is Kind.ARRAY:
        return ConfigValue.array(base.data + override.data, override.definition)

    if (
        policy is MergePolicy.STRICT
        and base.kind is not override.kind
        and (base.is_container or override.is_container)
    ):
        raise TypeMismatch(
            _key,
            base.kind.value,
            override.kind.value,
            str(base.definition) if base.definition else None,
            str(override.definition) if override.definition else None,
        )

    return override


def merge_all(
    values: Iterable[ConfigValue], policy: MergePolicy = MergePolicy.OVERRIDE
) -> ConfigValue:
    """Merge values from least to most specific. An empty input yields an empty table."""
    return reduce(lambda acc, v: merge(acc, v, policy), values, ConfigValue.table())


def _segments(path: Union[str, Sequence[str]]) -> List[str]:
    if isinstance(path, str):
        return path.split(".") if path else []
    return list(path)


def get_path(value: ConfigValue, path: Union[str, Sequence[str]]) -> Optional[ConfigValue]:
    """
    Look up a nested value.

    Args:
        value: Root value
        path: Dotted path (`"build.rustflags"`) or a sequence of segments for
            keys that themselves contain dots

    Returns:
        The value, or None if a segment is missing or crosses a non-table
    """
    current: Optional[ConfigValue] = value
    for segment in _segments(path):
        if current is None or not current.is_table:
            return None
        current = current.data.get(segment)
    return current


def set_path(
    value: ConfigValue, path: Union[str, Sequence[str]], new: ConfigValue
) -> ConfigValue:
    """Return a copy of `value` with `new` stored at `path`, creating tables on the way."""
    segments = _segments(path)
    if not segments:
        return new
    head, rest = segments[0], segments[1:]
    entries = dict(value.data) if value.is_table else {}
    child = entries.get(head)
    if child is None or not child.is_table:
        child = ConfigValue.table(definition=new.definition)
    entries[head] = set_path(child, rest, new) if rest else new
    return ConfigValue.table(entries, value.definition if value.is_table else None)


def remove_key(value: ConfigValue, key: str) -> ConfigValue:
    """Return a copy of a table without `key`."""
    if not value.is_table or key not in value.data:
        return value
    entries = {k: v for k, v in value.data.items() if k != key}
    return ConfigValue.table(entries, value.definition)


__all__ = [
    "Kind",
    "MergePolicy",
    "DefinitionKind",
    "Definition",
    "ConfigValue",
    "from_python",
    "merge",
    "merge_all",
    "get_path",
    "set_path",
    "remove_key",
]
