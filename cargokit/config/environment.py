"""
Environment variable overlay.

A fixed table binds environment variables to configuration paths. After the
file documents are merged, every bound variable that is present replaces the
value at its path. A variable that is set to an empty string is still
present: for list-valued bindings it yields an explicitly empty list.

Several variables can bind the same path; the first one present wins
(e.g. `RUSTC` over `CARGO_BUILD_RUSTC`). Pattern bindings cover aliases,
registries and per-target settings (`CARGO_TARGET_<TRIPLE>_LINKER`).
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Tuple

from cargokit.config.command import split_space_separated
from cargokit.config.value import ConfigValue, Definition, get_path, set_path
from cargokit.core.exceptions import InvalidEnvValue

logger = logging.getLogger(__name__)

ENCODED_SEPARATOR = "\x1f"


class EnvKind(str, Enum):
    """Expected content of a bound environment variable."""

    STRING = "string"
    PATH = "path"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    LIST = "list"  # space separated
    ENCODED_LIST = "encoded-list"  # 0x1f separated
    SWITCH = "switch"  # "1" is true, anything else false


@dataclass(frozen=True)
class EnvBinding:
    """
    Binding of one environment variable to a configuration path.

    Attributes:
        variable: Environment variable name
        path: Dotted configuration path
        kind: How the raw string is coerced
        choices: Accepted values for enumerated strings
        fallback: Only applies when the configuration leaves the path unset
    """

    variable: str
    path: str
    kind: EnvKind
    choices: Tuple[str, ...] = ()
    fallback: bool = False


_COLOR = ("auto", "always", "never")
_FREQUENCY = ("always", "never")
_PROTOCOL = ("git", "sparse")

# Bindings sharing a path are listed in priority order.
ENV_BINDINGS: Tuple[EnvBinding, ...] = (
    # [build]
    EnvBinding("CARGO_BUILD_JOBS", "build.jobs", EnvKind.INTEGER),
    EnvBinding("RUSTC", "build.rustc", EnvKind.PATH),
    EnvBinding("CARGO_BUILD_RUSTC", "build.rustc", EnvKind.PATH),
    EnvBinding("RUSTC_WRAPPER", "build.rustc-wrapper", EnvKind.PATH),
    EnvBinding("CARGO_BUILD_RUSTC_WRAPPER", "build.rustc-wrapper", EnvKind.PATH),
    EnvBinding(
        "RUSTC_WORKSPACE_WRAPPER", "build.rustc-workspace-wrapper", EnvKind.PATH
    ),
    EnvBinding(
        "CARGO_BUILD_RUSTC_WORKSPACE_WRAPPER",
        "build.rustc-workspace-wrapper",
        EnvKind.PATH,
    ),
    EnvBinding("RUSTDOC", "build.rustdoc", EnvKind.PATH),
    EnvBinding("CARGO_BUILD_RUSTDOC", "build.rustdoc", EnvKind.PATH),
    EnvBinding("CARGO_BUILD_TARGET", "build.target", EnvKind.STRING),
    EnvBinding("CARGO_TARGET_DIR", "build.target-dir", EnvKind.PATH),
    EnvBinding("CARGO_BUILD_TARGET_DIR", "build.target-dir", EnvKind.PATH),
    EnvBinding("CARGO_ENCODED_RUSTFLAGS", "build.rustflags", EnvKind.ENCODED_LIST),
    EnvBinding("RUSTFLAGS", "build.rustflags", EnvKind.LIST),
    EnvBinding("CARGO_BUILD_RUSTFLAGS", "build.rustflags", EnvKind.LIST),
    EnvBinding(
        "CARGO_ENCODED_RUSTDOCFLAGS", "build.rustdocflags", EnvKind.ENCODED_LIST
    ),
    EnvBinding("RUSTDOCFLAGS", "build.rustdocflags", EnvKind.LIST),
    EnvBinding("CARGO_BUILD_RUSTDOCFLAGS", "build.rustdocflags", EnvKind.LIST),
    EnvBinding("CARGO_INCREMENTAL", "build.incremental", EnvKind.SWITCH),
    EnvBinding("CARGO_BUILD_INCREMENTAL", "build.incremental", EnvKind.BOOLEAN),
    EnvBinding("CARGO_BUILD_DEP_INFO_BASEDIR", "build.dep-info-basedir", EnvKind.PATH),
    # [doc]
    EnvBinding("BROWSER", "doc.browser", EnvKind.STRING, fallback=True),
    # [future-incompat-report]
    EnvBinding(
        "CARGO_FUTURE_INCOMPAT_REPORT_FREQUENCY",
        "future-incompat-report.frequency",
        EnvKind.STRING,
        choices=_FREQUENCY,
    ),
    # [http]
    EnvBinding("CARGO_HTTP_PROXY", "http.proxy", EnvKind.STRING),
    EnvBinding("CARGO_HTTP_TIMEOUT", "http.timeout", EnvKind.INTEGER),
    # [net]
    EnvBinding("CARGO_NET_RETRY", "net.retry", EnvKind.INTEGER),
    EnvBinding("CARGO_NET_GIT_FETCH_WITH_CLI", "net.git-fetch-with-cli", EnvKind.BOOLEAN),
    EnvBinding("CARGO_NET_OFFLINE", "net.offline", EnvKind.BOOLEAN),
    # [registry]
    EnvBinding("CARGO_REGISTRY_DEFAULT", "registry.default", EnvKind.STRING),
    EnvBinding("CARGO_REGISTRY_TOKEN", "registry.token", EnvKind.STRING),
    # [term]
    EnvBinding("CARGO_TERM_QUIET", "term.quiet", EnvKind.BOOLEAN),
    EnvBinding("CARGO_TERM_VERBOSE", "term.verbose", EnvKind.BOOLEAN),
    EnvBinding("CARGO_TERM_COLOR", "term.color", EnvKind.STRING, choices=_COLOR),
    EnvBinding(
        "CARGO_TERM_PROGRESS_WHEN", "term.progress.when", EnvKind.STRING, choices=_COLOR
    ),
    EnvBinding("CARGO_TERM_PROGRESS_WIDTH", "term.progress.width", EnvKind.INTEGER),
)

# Variables that replace per-target flags instead of only build.*flags.
TARGET_OVERRIDING_RUSTFLAGS = ("CARGO_ENCODED_RUSTFLAGS", "RUSTFLAGS")
TARGET_OVERRIDING_RUSTDOCFLAGS = ("CARGO_ENCODED_RUSTDOCFLAGS", "RUSTDOCFLAGS")

_ALIAS_PATTERN = re.compile(r"^CARGO_ALIAS_(.+)$")
_REGISTRIES_PATTERN = re.compile(r"^CARGO_REGISTRIES_(.+)_(INDEX|TOKEN|PROTOCOL)$")
_REGISTRY_FIELDS = {
    "INDEX": ("index", EnvKind.STRING, ()),
    "TOKEN": ("token", EnvKind.STRING, ()),
    "PROTOCOL": ("protocol", EnvKind.STRING, _PROTOCOL),
}


@dataclass(frozen=True)
class OverlayResult:
    """
    Outcome of apply_environment().

    Attributes:
        value: Configuration with environment values applied
        applied: Variables that changed the configuration, in order
        rustflags_override_target: build.rustflags came from RUSTFLAGS or
            CARGO_ENCODED_RUSTFLAGS and replaces per-target flags
        rustdocflags_override_target: Same for rustdoc flags
    """

    value: ConfigValue
    applied: Tuple[str, ...] = ()
    rustflags_override_target: bool = False
    rustdocflags_override_target: bool = False


def snapshot_environment(env: Mapping[str, str]) -> Dict[str, str]:
    """Copy the variables the overlay can use (CARGO*, RUST*, BROWSER)."""
    return {
        k: v
        for k, v in env.items()
        if k.startswith("CARGO") or k.startswith("RUST") or k == "BROWSER"
    }


def env_name(name: str) -> str:
    """Environment spelling of a configuration key: upper case, `-` and `.` as `_`."""
    return name.upper().replace("-", "_").replace(".", "_")


def target_env_prefix(triple: str) -> str:
    """Prefix of the per-target variables, e.g. `CARGO_TARGET_X86_64_UNKNOWN_LINUX_GNU`."""
    return f"CARGO_TARGET_{env_name(triple)}"


def coerce(
    variable: str, raw: str, kind: EnvKind, choices: Iterable[str] = ()
) -> ConfigValue:
    """
    Convert a raw environment value to a ConfigValue.

    Raises:
        InvalidEnvValue: If the value does not fit `kind` or `choices`
    """
    definition = Definition.environment(variable)
    if kind is EnvKind.BOOLEAN:
        if raw not in ("true", "false"):
            raise InvalidEnvValue(variable, raw, "a boolean (`true` or `false`)")
        return ConfigValue.boolean(raw == "true", definition)
    if kind is EnvKind.SWITCH:
        return ConfigValue.boolean(raw == "1", definition)
    if kind is EnvKind.INTEGER:
        try:
            return ConfigValue.integer(int(raw.strip()), definition)
        except ValueError:
            raise InvalidEnvValue(variable, raw, "an integer") from None
    if kind is EnvKind.LIST:
        return ConfigValue.string_list(split_space_separated(raw), definition)
    if kind is EnvKind.ENCODED_LIST:
        items = raw.split(ENCODED_SEPARATOR) if raw else []
        return ConfigValue.string_list(items, definition)

    choices = tuple(choices)
    if choices and raw not in choices:
        expected = "one of " + ", ".join(f"`{c}`" for c in choices)
        raise InvalidEnvValue(variable, raw, expected)
    return ConfigValue.string(raw, definition)


def _match_name(suffix: str, existing: Iterable[str]) -> str:
    """Map an environment suffix back to a configured key, else lower-case it."""
    for name in existing:
        if env_name(name) == suffix:
            return name
    return suffix.lower().replace("_", "-")


def apply_environment(value: ConfigValue, env: Mapping[str, str]) -> OverlayResult:
    """
    Apply bound environment variables on top of a merged configuration.

    Args:
        value: Merged file configuration (a table)
        env: Environment snapshot

    Returns:
        OverlayResult holding the new configuration; `value` is unchanged

    Raises:
        InvalidEnvValue: If a present variable cannot be coerced
    """
    result = value
    applied: List[str] = []
    decided = set()

    for binding in ENV_BINDINGS:
        if binding.path in decided or binding.variable not in env:
            continue
        decided.add(binding.path)
        if binding.fallback and get_path(result, binding.path) is not None:
            continue
        new = coerce(binding.variable, env[binding.variable], binding.kind, binding.choices)
        result = set_path(result, binding.path, new)
        applied.append(binding.variable)
        logger.debug(f"{binding.variable} overrides `{binding.path}`")

    aliases = get_path(result, "alias")
    registries = get_path(result, "registries")
    alias_names = aliases.keys() if aliases is not None else []
    registry_names = registries.keys() if registries is not None else []

    for variable in sorted(env):
        match = _ALIAS_PATTERN.match(variable)
        if match:
            name = _match_name(match.group(1), alias_names)
            new = coerce(variable, env[variable], EnvKind.LIST)
            result = set_path(result, ("alias", name), new)
            applied.append(variable)
            continue

        match = _REGISTRIES_PATTERN.match(variable)
        if match:
            name = _match_name(match.group(1), registry_names)
            field_name, kind, choices = _REGISTRY_FIELDS[match.group(2)]
            new = coerce(variable, env[variable], kind, choices)
            result = set_path(result, ("registries", name, field_name), new)
            applied.append(variable)

    return OverlayResult(
        value=result,
        applied=tuple(applied),
        rustflags_override_target=any(
            v in applied for v in TARGET_OVERRIDING_RUSTFLAGS
        ),
        rustdocflags_override_target=any(
            v in applied for v in TARGET_OVERRIDING_RUSTDOCFLAGS
        ),
    )


def target_environment(triple: str, env: Mapping[str, str]) -> Dict[str, ConfigValue]:
    """
    Per-target values from `CARGO_TARGET_<TRIPLE>_{LINKER,RUNNER,RUSTFLAGS}`.

    Returns:
        Mapping of target section key ('linker', 'runner', 'rustflags') to value
    """
    prefix = target_env_prefix(triple)
    values: Dict[str, ConfigValue] = {}
    for key, kind in (
        ("linker", EnvKind.PATH),
        ("runner", EnvKind.STRING),
        ("rustflags", EnvKind.LIST),
    ):
        variable = f"{prefix}_{env_name(key)}"
        if variable in env:
            values[key] = coerce(variable, env[variable], kind)
    return values


__all__ = [
    "ENCODED_SEPARATOR",
    "EnvKind",
    "EnvBinding",
    "ENV_BINDINGS",
    "OverlayResult",
    "snapshot_environment",
    "env_name",
    "target_env_prefix",
    "coerce",
    "apply_environment",
    "target_environment",
]
