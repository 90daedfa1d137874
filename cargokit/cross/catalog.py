"""
Platform attribute catalog.

Each platform attribute a predicate can test (architecture, operating system,
environment, family, ...) is described by one AttributeDefinition in a static
table. A single generic Attribute class turns raw strings into AttributeValue
objects for any definition.

Values outside the known set are not errors: they are kept as-is and compare
equal to their raw string, so new platforms keep working before the catalog
learns about them.

Usage:
    from cargokit.cross.catalog import get_attribute

    arch = get_attribute("target_arch").parse("x86_64")
    arch == "x86_64"      # True
    arch.is_known         # True

    new_os = get_attribute("target_os").parse("someos")
    new_os == "someos"    # True
    new_os.is_known       # False
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from cargokit.core.exceptions import TooManyValues, UnknownAttribute


class Cardinality(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


@dataclass(frozen=True)
class AttributeDefinition:
    """
    Static description of one platform attribute.

    Attributes:
        key: Predicate key name (e.g. 'target_arch')
        name: Human readable name
        cardinality: Whether a target holds one or several values
        known_values: Values observed across known targets
        numeric: Values are widths in bits; non-numeric known values (such as
            'ptr' for atomics) are still allowed
    """

    key: str
    name: str
    cardinality: Cardinality
    known_values: Tuple[str, ...]
    numeric: bool = False

    @property
    def is_multiple(self) -> bool:
        return self.cardinality is Cardinality.MULTIPLE


@dataclass(frozen=True)
class AttributeValue:
    """
    A parsed attribute value.

    Known values and unrecognized ones share one representation; `raw` is
    always the original string, so as_str() round-trips.
    """

    key: str
    raw: str
    is_known: bool

    def as_str(self) -> str:
        return self.raw

    def as_int(self) -> Optional[int]:
        """Numeric value for width attributes; None if the raw string is not a number."""
        try:
            return int(self.raw)
        except ValueError:
            return None

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AttributeValue):
            return self.key == other.key and self.raw == other.raw
        if isinstance(other, str):
            return self.raw == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self.as_int() == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.key, self.raw))

    def __str__(self) -> str:
        return self.raw


class Attribute:
    """Parser and lookup helper for one attribute definition."""

    def __init__(self, definition: AttributeDefinition):
        self.definition = definition
        self._known = frozenset(definition.known_values)

    @property
    def key(self) -> str:
        return self.definition.key

    def parse(self, raw: str) -> AttributeValue:
        """Parse a raw value. Never fails; unknown values are preserved."""
        return AttributeValue(self.key, raw, raw in self._known)

    def from_values(self, values: Iterable[str]) -> List[AttributeValue]:
        return [self.parse(v) for v in values]

    def lookup(
        self, values: Iterable[str]
    ) -> Union[Optional[AttributeValue], List[AttributeValue]]:
        """
        Build the attribute output for the raw values a target holds.

        Args:
            values: Raw values from a target descriptor

        Returns:
            A list for multi-valued attributes; a single value or None
            otherwise

        Raises:
            TooManyValues: If a single-valued attribute has more than one value
        """
        parsed = self.from_values(values)
        if self.definition.is_multiple:
            return parsed
        if len(parsed) > 1:
            raise TooManyValues(self.key, [v.raw for v in parsed])
        return parsed[0] if parsed else None

    def __repr__(self) -> str:
        return f"Attribute({self.key!r})"


# ============================================================================
# Attribute table
# ============================================================================

_DEFINITIONS = (
    AttributeDefinition(
        key="target_arch",
        name="Architecture",
        cardinality=Cardinality.SINGLE,
        known_values=(
            "aarch64", "arm", "arm64ec", "avr", "bpf", "csky", "hexagon",
            "loongarch64", "m68k", "mips", "mips32r6", "mips64", "mips64r6",
            "msp430", "nvptx64", "powerpc", "powerpc64", "riscv32", "riscv64",
            "s390x", "sparc", "sparc64", "wasm32", "wasm64", "x86", "x86_64",
            "xtensa",
        ),
    ),
    AttributeDefinition(
        key="target_os",
        name="Operating system",
        cardinality=Cardinality.SINGLE,
        known_values=(
            "aix", "android", "cuda", "dragonfly", "emscripten", "espidf",
            "freebsd", "fuchsia", "haiku", "hermit", "horizon", "hurd",
            "illumos", "ios", "l4re", "linux", "macos", "netbsd", "none",
            "nto", "openbsd", "psp", "redox", "solaris", "solid_asp3", "teeos",
            "tvos", "uefi", "unknown", "visionos", "vita", "vxworks", "wasi",
            "watchos", "windows", "xous", "zkvm",
        ),
    ),
    AttributeDefinition(
        key="target_env",
        name="Environment",
        cardinality=Cardinality.SINGLE,
        known_values=(
            "gnu", "msvc", "musl", "newlib", "nto70", "nto71", "ohos", "p1",
            "p2", "relibc", "sgx", "uclibc", "v5",
        ),
    ),
    AttributeDefinition(
        key="target_family",
        name="Family",
        cardinality=Cardinality.MULTIPLE,
        known_values=("unix", "wasm", "windows"),
    ),
    AttributeDefinition(
        key="target_vendor",
        name="Vendor",
        cardinality=Cardinality.SINGLE,
        known_values=(
            "apple", "espressif", "fortanix", "ibm", "kmc", "nintendo",
            "nvidia", "pc", "risc0", "sony", "sun", "unikraft", "unknown",
            "uwp", "win7", "wrs",
        ),
    ),
    AttributeDefinition(
        key="target_endian",
        name="Endianness",
        cardinality=Cardinality.SINGLE,
        known_values=("big", "little"),
    ),
    AttributeDefinition(
        key="target_pointer_width",
        name="Pointer width",
        cardinality=Cardinality.SINGLE,
        known_values=("16", "32", "64"),
        numeric=True,
    ),
    AttributeDefinition(
        key="target_has_atomic",
        name="Atomic widths",
        cardinality=Cardinality.MULTIPLE,
        known_values=("8", "16", "32", "64", "128", "ptr"),
        numeric=True,
    ),
    AttributeDefinition(
        key="target_abi",
        name="ABI",
        cardinality=Cardinality.SINGLE,
        known_values=(
            "abi64", "abiv2", "abiv2hf", "eabi", "eabihf", "elf", "fortanix",
            "ilp32", "llvm", "macabi", "sim", "softfloat", "spe", "uwp",
            "vec-extabi", "x32",
        ),
    ),
)

ATTRIBUTES: Mapping[str, Attribute] = MappingProxyType(
    {d.key: Attribute(d) for d in _DEFINITIONS}
)

# Bare names accepted as boolean predicates. `unix` and `windows` are
# shorthands for `target_family` membership; the rest are compiler flags.
FAMILY_SHORTHANDS = frozenset({"unix", "windows"})
KNOWN_FLAGS = FAMILY_SHORTHANDS | frozenset(
    {
        "debug_assertions",
        "doc",
        "doctest",
        "miri",
        "overflow_checks",
        "proc_macro",
        "target_thread_local",
        "test",
        "ub_checks",
    }
)


def get_attribute(key: str) -> Attribute:
    """
    Get the catalog entry for an attribute key.

    Raises:
        UnknownAttribute: If the key is not in the catalog
    """
    try:
        return ATTRIBUTES[key]
    except KeyError:
        raise UnknownAttribute(key) from None


__all__ = [
    "Cardinality",
    "AttributeDefinition",
    "AttributeValue",
    "Attribute",
    "ATTRIBUTES",
    "FAMILY_SHORTHANDS",
    "KNOWN_FLAGS",
    "get_attribute",
]
