"""
Target descriptors: the platform attributes of one concrete target.

A descriptor is found in one of these ways, in order:
    1. an explicit descriptor or `rustc --print cfg` style provider supplied
       by the caller
    2. a custom target specification file (`my-target.json`)
    3. the shipped table of known targets (data/targets.yaml)
    4. inference from the `arch-vendor-os[-env]` components of the triple

Descriptors are immutable and cached per identifier for the process
lifetime.

Usage:
    from cargokit.cross.descriptor import TargetTriple, get_descriptor

    descriptor = get_descriptor(TargetTriple.parse("x86_64-unknown-linux-gnu"))
    descriptor.values("target_family")  # ('unix',)
    descriptor.attribute("target_arch")  # AttributeValue('target_arch', 'x86_64')
"""

import functools
import json
import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import (
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Union,
)

import yaml

from cargokit.core.exceptions import UnknownTarget
from cargokit.cross.catalog import AttributeValue, get_attribute

logger = logging.getLogger(__name__)

_DATA_FILE = Path(__file__).parent.parent / "data" / "targets.yaml"

_FIELD_KEYS = {
    "arch": "target_arch",
    "os": "target_os",
    "env": "target_env",
    "abi": "target_abi",
    "vendor": "target_vendor",
    "endian": "target_endian",
    "width": "target_pointer_width",
    "family": "target_family",
    "atomic": "target_has_atomic",
}

_TRIPLE_PATTERN = re.compile(r"^[A-Za-z0-9_.]+(-[A-Za-z0-9_.]+){1,3}$")


class CfgProvider(Protocol):
    """Returns `rustc --print cfg --target <triple>` output for a triple."""

    def __call__(self, triple: str) -> str: ...


@dataclass(frozen=True)
class TargetTriple:
    """
    A target identifier.

    Attributes:
        triple: Target name; for a custom target specification this is the
            file stem
        spec_path: Path of the custom target specification file, if any
    """

    triple: str
    spec_path: Optional[Path] = None

    @classmethod
    def parse(cls, identifier: str, cwd: Optional[Path] = None) -> "TargetTriple":
        """
        Interpret a target identifier.

        Identifiers ending in `.json` or containing a path separator name a
        custom target specification; relative paths are joined to `cwd`.
        """
        if identifier.endswith(".json") or "/" in identifier or "\\" in identifier:
            path = Path(identifier)
            if cwd is not None and not path.is_absolute():
                path = cwd / path
            return cls(path.stem, path)
        return cls(identifier)

    @property
    def cli_target(self) -> str:
        """Value to pass to `--target`."""
        return str(self.spec_path) if self.spec_path else self.triple

    def __str__(self) -> str:
        return self.triple


@dataclass(frozen=True)
class TargetDescriptor:
    """
    Platform attributes of one target.

    Attributes:
        triple: Target name
        key_values: Raw values per attribute key, in declaration order
        flags: Bare flags set for the target (e.g. 'unix')
    """

    triple: str
    key_values: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    flags: FrozenSet[str] = frozenset()

    @classmethod
    def from_attributes(
        cls,
        triple: str,
        attributes: Mapping[str, Iterable[str]],
        flags: Iterable[str] = (),
    ) -> "TargetDescriptor":
        """Build a descriptor from a mapping of attribute key to raw values; empty values are dropped."""
        key_values: Dict[str, Tuple[str, ...]] = {}
        for key, values in attributes.items():
            if isinstance(values, str):
                values = [values]
            kept = tuple(str(v) for v in values if str(v))
            if kept:
                key_values[key] = kept
        return cls(triple, MappingProxyType(key_values), frozenset(flags))

    @classmethod
    def from_cfg_output(cls, triple: str, output: str) -> "TargetDescriptor":
        """Build a descriptor from `rustc --print cfg` output."""
        flags, key_values = parse_cfg_output(output)
        return cls.from_attributes(triple, key_values, flags)

    def values(self, key: str) -> Tuple[str, ...]:
        return self.key_values.get(key, ())

    def has_flag(self, name: str) -> bool:
        return name in self.flags

    def attribute(
        self, key: str
    ) -> Union[Optional[AttributeValue], List[AttributeValue]]:
        """
        Typed value of a catalog attribute.

        Returns:
            A list of AttributeValue for multi-valued attributes, otherwise a
            single AttributeValue or None

        Raises:
            UnknownAttribute: If the key is not in the catalog
            TooManyValues: If a single-valued attribute holds several values
        """
        return get_attribute(key).lookup(self.values(key))


def parse_cfg_output(output: str) -> Tuple[List[str], Dict[str, List[str]]]:
    """
    Parse `rustc --print cfg` output.

    Lines of the form `name` are flags and `name="value"` adds a value to
    `name`. Empty values and lines that are neither are skipped.

    Returns:
        (flags, key_values)
    """
    flags: List[str] = []
    key_values: Dict[str, List[str]] = {}
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        if "=" not in line:
            if re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", line):
                flags.append(line)
            continue
        name, _, value = line.partition("=")
        name = name.strip()
        value = value.strip()
        if len(value) < 2 or not (value.startswith('"') and value.endswith('"')):
            continue
        value = value[1:-1]
        if not value:
            continue
        key_values.setdefault(name, []).append(value)
    return flags, key_values


# ============================================================================
# Known targets
# ============================================================================


@functools.lru_cache(maxsize=1)
def _load_target_table() -> Mapping[str, TargetDescriptor]:
    with open(_DATA_FILE, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    table: Dict[str, TargetDescriptor] = {}
    for triple, entry in (data.get("targets") or {}).items():
        attributes = {
            _FIELD_KEYS[name]: value if isinstance(value, list) else [value]
            for name, value in entry.items()
            if name in _FIELD_KEYS
        }
        flags = list(entry.get("flags", [])) + list(entry.get("family", []))
        table[triple] = TargetDescriptor.from_attributes(triple, attributes, flags)
    logger.debug(f"Loaded {len(table)} known targets from {_DATA_FILE}")
    return MappingProxyType(table)


def known_targets() -> List[str]:
    return sorted(_load_target_table())


# ============================================================================
# Inference from triple components
# ============================================================================

# (prefix, arch, endian, pointer width, atomic widths); longest prefixes first
_ARCHITECTURES = (
    ("x86_64", "x86_64", "little", "64", ("8", "16", "32", "64", "ptr")),
    ("i386", "x86", "little", "32", ("8", "16", "32", "64", "ptr")),
    ("i586", "x86", "little", "32", ("8", "16", "32", "64", "ptr")),
    ("i686", "x86", "little", "32", ("8", "16", "32", "64", "ptr")),
    ("aarch64_be", "aarch64", "big", "64", ("8", "16", "32", "64", "128", "ptr")),
    ("aarch64", "aarch64", "little", "64", ("8", "16", "32", "64", "128", "ptr")),
    ("arm64ec", "arm64ec", "little", "64", ("8", "16", "32", "64", "128", "ptr")),
    ("armeb", "arm", "big", "32", ("8", "16", "32", "64", "ptr")),
    ("arm", "arm", "little", "32", ("8", "16", "32", "64", "ptr")),
    ("thumbv6m", "arm", "little", "32", ()),
    ("thumb", "arm", "little", "32", ("8", "16", "32", "ptr")),
    ("riscv64", "riscv64", "little", "64", ("8", "16", "32", "64", "ptr")),
    ("riscv32", "riscv32", "little", "32", ("8", "16", "32", "ptr")),
    ("powerpc64le", "powerpc64", "little", "64", ("8", "16", "32", "64", "ptr")),
    ("powerpc64", "powerpc64", "big", "64", ("8", "16", "32", "64", "ptr")),
    ("powerpc", "powerpc", "big", "32", ("8", "16", "32", "ptr")),
    ("mips64el", "mips64", "little", "64", ("8", "16", "32", "64", "ptr")),
    ("mips64", "mips64", "big", "64", ("8", "16", "32", "64", "ptr")),
    ("mipsel", "mips", "little", "32", ("8", "16", "32", "ptr")),
    ("mips", "mips", "big", "32", ("8", "16", "32", "ptr")),
    ("s390x", "s390x", "big", "64", ("8", "16", "32", "64", "ptr")),
    ("sparc64", "sparc64", "big", "64", ("8", "16", "32", "64", "ptr")),
    ("sparcv9", "sparc64", "big", "64", ("8", "16", "32", "64", "ptr")),
    ("sparc", "sparc", "big", "32", ("8", "16", "32", "ptr")),
    ("wasm32", "wasm32", "little", "32", ("8", "16", "32", "64", "ptr")),
    ("wasm64", "wasm64", "little", "64", ("8", "16", "32", "64", "ptr")),
    ("loongarch64", "loongarch64", "little", "64", ("8", "16", "32", "64", "ptr")),
    ("nvptx64", "nvptx64", "little", "64", ("8", "16", "32", "64", "ptr")),
    ("bpfel", "bpf", "little", "64", ("8", "16", "32", "64", "ptr")),
    ("bpfeb", "bpf", "big", "64", ("8", "16", "32", "64", "ptr")),
    ("hexagon", "hexagon", "little", "32", ("8", "16", "32", "64", "ptr")),
    ("m68k", "m68k", "big", "32", ("8", "16", "32", "ptr")),
    ("csky", "csky", "little", "32", ("8", "16", "32", "ptr")),
    ("xtensa", "xtensa", "little", "32", ("8", "16", "32", "ptr")),
    ("avr", "avr", "little", "16", ()),
    ("msp430", "msp430", "little", "16", ()),
)

_UNIX_OSES = frozenset(
    {
        "aix", "android", "dragonfly", "emscripten", "espidf", "freebsd",
        "fuchsia", "haiku", "horizon", "hurd", "illumos", "ios", "l4re",
        "linux", "macos", "netbsd", "nto", "openbsd", "redox", "solaris",
        "tvos", "visionos", "vita", "watchos",
    }
)

_OS_ALIASES = {"darwin": "macos"}

_ENVIRONMENTS = ("gnu", "musl", "msvc", "uclibc", "sgx", "newlib", "ohos", "relibc")


def _split_environment(component: str) -> Tuple[str, str]:
    """Split an env component such as 'gnueabihf' into (env, abi)."""
    for env in _ENVIRONMENTS:
        if component.startswith(env):
            return env, component[len(env):].lstrip("_")
    return "", component


def _looks_like_os(component: str) -> bool:
    return component in _UNIX_OSES or component in ("windows", "none", "darwin")


def infer_descriptor(triple: str) -> TargetDescriptor:
    """
    Infer platform attributes from the components of a target triple.

    Raises:
        UnknownTarget: If the identifier is not shaped like a triple
    """
    if not _TRIPLE_PATTERN.match(triple):
        raise UnknownTarget(triple, "not a valid target triple")

    parts = triple.split("-")
    if len(parts) == 2:
        arch_part, vendor, os_part, env_part = parts[0], "unknown", parts[1], ""
    elif len(parts) == 3 and _looks_like_os(parts[1]):
        arch_part, vendor, os_part, env_part = parts[0], "unknown", parts[1], parts[2]
    elif len(parts) == 3:
        arch_part, vendor, os_part, env_part = parts[0], parts[1], parts[2], ""
    else:
        arch_part, vendor, os_part, env_part = parts

    attributes: Dict[str, List[str]] = {"target_vendor": [vendor]}
    for prefix, arch, endian, width, atomics in _ARCHITECTURES:
        if arch_part.startswith(prefix):
            attributes.update(
                target_arch=[arch],
                target_endian=[endian],
                target_pointer_width=[width],
                target_has_atomic=list(atomics),
            )
            break
    else:
        attributes["target_arch"] = [arch_part]

    os_name = _OS_ALIASES.get(os_part, os_part)
    env, abi = _split_environment(env_part)
    if abi.startswith("android"):
        os_name, abi = "android", abi[len("android"):]
    if os_name == "ios" and not env_part and attributes["target_arch"] == ["x86_64"]:
        abi = "sim"
    attributes.update(target_os=[os_name], target_env=[env], target_abi=[abi])

    family: List[str] = []
    if os_name in _UNIX_OSES:
        family.append("unix")
    elif os_name == "windows":
        family.append("windows")
    if attributes["target_arch"][0] in ("wasm32", "wasm64"):
        family.append("wasm")
    attributes["target_family"] = family

    logger.debug(f"Inferred attributes for unknown target {triple}: {attributes}")
    return TargetDescriptor.from_attributes(triple, attributes, family)


# ============================================================================
# Custom target specifications
# ============================================================================


def _descriptor_from_spec(target: TargetTriple, spec_path: Path) -> TargetDescriptor:
    try:
        with open(spec_path, "r", encoding="utf-8") as f:
            spec = json.load(f)
    except OSError as e:
        raise UnknownTarget(
            target.cli_target, f"failed to read target specification: {e}"
        ) from e
    except ValueError as e:
        # JSONDecodeError and UnicodeDecodeError
        raise UnknownTarget(
            target.cli_target, f"invalid target specification: {e}"
        ) from e
    if not isinstance(spec, dict):
        raise UnknownTarget(
            target.cli_target,
            f"invalid target specification: expected a JSON object, "
            f"found {type(spec).__name__}",
        )

    width = str(spec.get("target-pointer-width", ""))
    atomics: List[str] = []
    max_atomic = spec.get("max-atomic-width")
    if max_atomic is None and width.isdigit():
        max_atomic = int(width)
    if max_atomic:
        atomics = [str(w) for w in (8, 16, 32, 64, 128) if w <= int(max_atomic)]
        if width.isdigit() and int(width) <= int(max_atomic):
            atomics.append("ptr")

    family = spec.get("target-family", [])
    if isinstance(family, str):
        family = [family]
    attributes = {
        "target_arch": [spec.get("arch", "")],
        "target_os": [spec.get("os", "none")],
        "target_env": [spec.get("env", "")],
        "target_abi": [spec.get("abi", "")],
        "target_vendor": [spec.get("vendor", "unknown")],
        "target_endian": [spec.get("target-endian", "little")],
        "target_pointer_width": [width],
        "target_family": family,
        "target_has_atomic": atomics,
    }
    return TargetDescriptor.from_attributes(target.triple, attributes, family)


# ============================================================================
# Lookup
# ============================================================================

_cache: Dict[str, TargetDescriptor] = {}
_cache_lock = threading.Lock()


def _build_descriptor(target: TargetTriple) -> TargetDescriptor:
    if target.spec_path is not None:
        if not target.spec_path.is_file():
            raise UnknownTarget(
                target.cli_target, "target specification file does not exist"
            )
        return _descriptor_from_spec(target, target.spec_path)
    table = _load_target_table()
    if target.triple in table:
        return table[target.triple]
    return infer_descriptor(target.triple)


def get_descriptor(
    target: TargetTriple,
    descriptors: Optional[Mapping[str, TargetDescriptor]] = None,
    cfg_provider: Optional[CfgProvider] = None,
) -> TargetDescriptor:
    """
    Look up or construct the descriptor for a target.

    Args:
        target: Target to describe
        descriptors: Explicit descriptors by triple; these take precedence
        cfg_provider: Source of `rustc --print cfg` output; used before the
            built-in table when given

    Returns:
        Target descriptor

    Raises:
        UnknownTarget: If the target is neither known nor a valid triple
    """
    if descriptors and target.triple in descriptors:
        return descriptors[target.triple]
    if cfg_provider is not None:
        return TargetDescriptor.from_cfg_output(
            target.triple, cfg_provider(target.cli_target)
        )

    key = target.cli_target
    with _cache_lock:
        cached = _cache.get(key)
        if cached is None:
            cached = _build_descriptor(target)
            _cache[key] = cached
    return cached


def clear_descriptor_cache() -> None:
    """Clear cached descriptors (mainly for testing)."""
    with _cache_lock:
        _cache.clear()
    _load_target_table.cache_clear()


__all__ = [
    "CfgProvider",
    "TargetTriple",
    "TargetDescriptor",
    "parse_cfg_output",
    "known_targets",
    "infer_descriptor",
    "get_descriptor",
    "clear_descriptor_cache",
]
