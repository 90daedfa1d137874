"""
Configuration resolution pipeline.

    load(start_dir)            discover, read and merge documents, then apply
                               the environment overlay -> BaseConfig
    resolve(base, target)      select and merge the target sections that
                               apply to one target -> ResolvedConfig

A BaseConfig is immutable and can be resolved for many targets, also from
several threads, without touching the filesystem again.

Usage:
    from cargokit.config import load, resolve

    base = load(Path.cwd())
    config = resolve(base, "aarch64-unknown-linux-gnu")
    config.target.linker       # merged target.<triple> / target.'cfg(...)'
    config.rustflags           # effective flags for the target
    config.rustc().argv()      # ['sccache', 'rustc'] with a wrapper set
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from cargokit.config.command import Flags, PathAndArgs, resolve_program
from cargokit.config.environment import (
    apply_environment,
    snapshot_environment,
    target_environment,
)
from cargokit.config.loader import LoadDiagnostic, load_documents, merge_documents
from cargokit.config.sections import (
    BuildConfig,
    DocConfig,
    EnvEntry,
    FutureIncompatReportConfig,
    HttpConfig,
    NetConfig,
    RegistriesEntry,
    RegistryConfig,
    TargetConfig,
    TermConfig,
    parse_alias,
    parse_build,
    parse_doc,
    parse_env,
    parse_future_incompat_report,
    parse_http,
    parse_net,
    parse_registries,
    parse_registry,
    parse_target,
    parse_term,
    string_list,
)
from cargokit.config.value import (
    ConfigValue,
    Definition,
    DefinitionKind,
    Kind,
    MergePolicy,
    get_path,
    merge,
    merge_all,
    set_path,
)
from cargokit.core.directory import get_cargo_home
from cargokit.core.platform import detect_host_triple
from cargokit.cross.descriptor import (
    CfgProvider,
    TargetDescriptor,
    TargetTriple,
    get_descriptor,
)
from cargokit.cross.catalog import AttributeValue
from cargokit.cross.predicate import is_cfg_key, parse_cfg_key

logger = logging.getLogger(__name__)


# ============================================================================
# Base configuration
# ============================================================================


@dataclass(frozen=True)
class BaseConfig:
    """
    Merged file configuration with the environment overlay applied.

    Attributes:
        cwd: Working directory the configuration was loaded for
        value: Merged configuration table
        env: Environment snapshot used for the overlay and per-target values
        documents: Loaded documents, least specific first
        diagnostics: Skipped directories and similar recoverable problems
        applied_env: Environment variables that changed the configuration
        rustflags_override_target: RUSTFLAGS/CARGO_ENCODED_RUSTFLAGS were set
        rustdocflags_override_target: RUSTDOCFLAGS/CARGO_ENCODED_RUSTDOCFLAGS
            were set
    """

    cwd: Path
    value: ConfigValue
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    documents: Tuple[Path, ...] = ()
    diagnostics: Tuple[LoadDiagnostic, ...] = ()
    applied_env: Tuple[str, ...] = ()
    rustflags_override_target: bool = False
    rustdocflags_override_target: bool = False

    def get(self, path: Union[str, Tuple[str, ...]]) -> Optional[ConfigValue]:
        return get_path(self.value, path)

    def to_dict(self) -> Dict[str, Any]:
        return self.value.to_python()

    def build_targets(self, host: Optional[str] = None) -> List[TargetTriple]:
        """Targets named by `build.target`, or the host when none is set."""
        build = parse_build(self.get("build"), self.cwd)
        if build.target:
            return build.target
        return [TargetTriple.parse(host or detect_host_triple())]


def load(
    start_dir: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    cargo_home: Optional[Path] = None,
    root: Optional[Path] = None,
    policy: MergePolicy = MergePolicy.OVERRIDE,
) -> BaseConfig:
    """
    Load the configuration that applies to a directory.

    Args:
        start_dir: Working directory (defaults to the process cwd)
        env: Environment to overlay (defaults to os.environ)
        cargo_home: Location of the global document (defaults to
            $CARGO_HOME or ~/.cargo)
        root: Do not look for documents above this directory
        policy: How structural conflicts between documents are handled

    Returns:
        BaseConfig ready to be resolved for any number of targets

    Raises:
        LoadError: If a discovered document cannot be read or parsed
        TypeMismatch: On a structural conflict under MergePolicy.STRICT
        InvalidEnvValue: If a bound environment variable has a bad value
    """
    cwd = Path(start_dir if start_dir is not None else os.getcwd()).absolute()
    snapshot = snapshot_environment(os.environ if env is None else env)
    if cargo_home is None:
        cargo_home = get_cargo_home(cwd, snapshot)

    documents, diagnostics = load_documents(cwd, cargo_home, root)
    merged = merge_documents(documents, policy)
    overlay = apply_environment(merged, snapshot)
    logger.debug(
        f"Loaded {len(documents)} config documents for {cwd}, "
        f"{len(overlay.applied)} environment overrides"
    )

    return BaseConfig(
        cwd=cwd,
        value=overlay.value,
        env=MappingProxyType(snapshot),
        documents=tuple(d.path for d in documents),
        diagnostics=tuple(diagnostics),
        applied_env=overlay.applied,
        rustflags_override_target=overlay.rustflags_override_target,
        rustdocflags_override_target=overlay.rustdocflags_override_target,
    )


# ============================================================================
# Wrapper precedence
# ============================================================================


@dataclass(frozen=True)
class WrapperChoice:
    """
    Selected compiler wrapper.

    Attributes:
        program: Wrapper program; "" when explicitly disabled, None when no
            source sets one
        source: 'override', 'workspace', 'global', 'environment' (a blank
            wrapper variable) or None
        definition: Where the wrapper was set, for relative paths
    """

    program: Optional[str] = None
    source: Optional[str] = None
    definition: Optional[Definition] = field(default=None, compare=False)

    @property
    def enabled(self) -> bool:
        return bool(self.program)


def select_wrapper(
    override: Optional[str] = None,
    workspace: Optional[str] = None,
    global_: Optional[str] = None,
    environment: Optional[str] = None,
) -> WrapperChoice:
    """
    Pick the wrapper from its sources, most specific first.

    An override that is set but blank disables the wrapper instead of falling
    through. For the other sources the first non-blank value wins.
    """
    if override is not None:
        return WrapperChoice(override if override.strip() else "", "override")
    for source, candidate in (
        ("workspace", workspace),
        ("global", global_),
        ("environment", environment),
    ):
        if candidate is not None and candidate.strip():
            return WrapperChoice(candidate, source)
    return WrapperChoice()


def _wrapper_for(base: BaseConfig, override: Optional[str]) -> WrapperChoice:
    if override is not None:
        return select_wrapper(override=override)

    def config_source(key: str) -> Tuple[Optional[str], Optional[Definition]]:
        value = base.get(("build", key))
        if value is None:
            return None, None
        return value.as_str(f"build.{key}"), value.definition

    workspace, workspace_def = config_source("rustc-workspace-wrapper")
    global_, global_def = config_source("rustc-wrapper")

    # A wrapper variable set to a blank value disables every wrapper.
    for program, definition in ((workspace, workspace_def), (global_, global_def)):
        if (
            program is not None
            and not program.strip()
            and definition is not None
            and definition.kind is DefinitionKind.ENVIRONMENT
        ):
            return WrapperChoice("", "environment", definition)

    choice = select_wrapper(workspace=workspace, global_=global_)
    definitions = {"workspace": workspace_def, "global": global_def}
    return WrapperChoice(choice.program, choice.source, definitions.get(choice.source))


# ============================================================================
# Target resolution
# ============================================================================


@dataclass(frozen=True)
class ResolveOptions:
    """
    Per-invocation inputs to resolve().

    Attributes:
        wrapper: Compiler wrapper override; "" disables any configured wrapper
        rustc: Compiler path override
        host: Host triple used when no target is given (detected otherwise)
        descriptors: Explicit target descriptors by triple
        cfg_provider: Source of `rustc --print cfg` output for targets
        policy: How structural conflicts between sections are handled
    """

    wrapper: Optional[str] = None
    rustc: Optional[str] = None
    host: Optional[str] = None
    descriptors: Mapping[str, TargetDescriptor] = field(
        default_factory=lambda: MappingProxyType({})
    )
    cfg_provider: Optional[CfgProvider] = None
    policy: MergePolicy = MergePolicy.OVERRIDE


def _normalize_flags(section: ConfigValue, key: str) -> ConfigValue:
    """Store a space separated `rustflags` string as an array so sections concatenate."""
    flags = section.get("rustflags") if section.is_table else None
    if flags is None or flags.kind is not Kind.STRING:
        return section
    return set_path(
        section,
        "rustflags",
        ConfigValue.string_list(string_list(flags, f"{key}.rustflags"), flags.definition),
    )


@dataclass(frozen=True)
class ResolvedConfig:
    """
    Effective configuration for one target.

    `value` is the base configuration with the raw `target` table replaced
    by the merged sections that apply to `triple`.
    """

    triple: TargetTriple
    descriptor: TargetDescriptor
    value: ConfigValue
    cwd: Path
    wrapper: WrapperChoice = field(default_factory=WrapperChoice)
    matched_sections: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    rustc_override: Optional[str] = None
    rustflags_override_target: bool = False
    rustdocflags_override_target: bool = False

    def get(self, path: Union[str, Tuple[str, ...]]) -> Optional[ConfigValue]:
        return get_path(self.value, path)

    def to_dict(self) -> Dict[str, Any]:
        return self.value.to_python()

    def attribute(
        self, key: str
    ) -> Union[Optional[AttributeValue], List[AttributeValue]]:
        return self.descriptor.attribute(key)

    # Typed sections

    @property
    def alias(self) -> Dict[str, List[str]]:
        return parse_alias(self.get("alias"))

    @property
    def build(self) -> BuildConfig:
        return parse_build(self.get("build"), self.cwd)

    @property
    def doc(self) -> DocConfig:
        return parse_doc(self.get("doc"), self.cwd)

    @property
    def env_vars(self) -> Dict[str, EnvEntry]:
        """The [env] table."""
        return parse_env(self.get("env"))

    @property
    def future_incompat_report(self) -> FutureIncompatReportConfig:
        return parse_future_incompat_report(self.get("future-incompat-report"))

    @property
    def http(self) -> HttpConfig:
        return parse_http(self.get("http"))

    @property
    def net(self) -> NetConfig:
        return parse_net(self.get("net"))

    @property
    def registries(self) -> Dict[str, RegistriesEntry]:
        return parse_registries(self.get("registries"))

    @property
    def registry(self) -> RegistryConfig:
        return parse_registry(self.get("registry"))

    @property
    def target(self) -> TargetConfig:
        return parse_target(self.get("target"), self.cwd, f"target.{self.triple}")

    @property
    def term(self) -> TermConfig:
        return parse_term(self.get("term"))

    # Derived values

    @property
    def rustflags(self) -> Optional[Flags]:
        """
        Flags passed to the compiler for this target.

        RUSTFLAGS/CARGO_ENCODED_RUSTFLAGS replace everything; otherwise
        per-target flags win over `build.rustflags` when any are set.
        """
        build = self.build
        if self.rustflags_override_target:
            return build.rustflags
        target_flags = self.target.rustflags
        if target_flags is not None:
            return target_flags
        return build.rustflags

    @property
    def rustdocflags(self) -> Optional[Flags]:
        return self.build.rustdocflags

    def rustc(self) -> PathAndArgs:
        """
        Compiler invocation, with the wrapper (if any) as the program.

        The compiler is the explicit override, `build.rustc`, a `rustc` next
        to $CARGO, or `rustc` from PATH, in that order.
        """
        if self.rustc_override is not None:
            compiler = Path(self.rustc_override)
        else:
            compiler = self.build.rustc or self._sibling_tool("rustc")

        if self.wrapper.enabled:
            wrapper = resolve_program(self.wrapper.program, self.wrapper.definition, self.cwd)
            return PathAndArgs(wrapper, (str(compiler),))
        return PathAndArgs(compiler)

    def rustdoc(self) -> Path:
        return self.build.rustdoc or self._sibling_tool("rustdoc")

    def _sibling_tool(self, name: str) -> Path:
        executable = name + (".exe" if sys.platform == "win32" else "")
        cargo = self.env.get("CARGO")
        if cargo:
            candidate = Path(cargo).with_name(executable)
            if candidate.is_file():
                return candidate
        return Path(name)


def resolve(
    base: BaseConfig,
    target: Optional[str] = None,
    options: Optional[ResolveOptions] = None,
) -> ResolvedConfig:
    """
    Resolve the configuration for one target.

    Sections apply in this order, later ones winning on scalars and arrays
    concatenating: `target.<triple>`, `CARGO_TARGET_<TRIPLE>_RUSTFLAGS`,
    matching `target.'cfg(...)'` sections in declaration order. Linker and
    runner from `CARGO_TARGET_<TRIPLE>_*` variables override all sections.

    Args:
        base: Loaded configuration
        target: Target triple or custom target specification path; defaults
            to the first `build.target`, then the host
        options: Per-invocation overrides

    Returns:
        ResolvedConfig for the target

    Raises:
        UnknownTarget: If the target cannot be described
        ParseError: If a `cfg(...)` section key is malformed
        InvalidPredicate: If a `cfg(...)` key uses a valued attribute bare
        TypeMismatch: On a structural conflict under MergePolicy.STRICT
    """
    options = options or ResolveOptions()
    if target is not None:
        triple = TargetTriple.parse(target, base.cwd)
    else:
        triple = base.build_targets(options.host)[0]
    descriptor = get_descriptor(triple, options.descriptors, options.cfg_provider)

    triple_sections: List[ConfigValue] = []
    cfg_sections: List[ConfigValue] = []
    matched: List[str] = []
    targets = base.get("target")
    if targets is not None and targets.is_table:
        for key, section in targets.items():
            if is_cfg_key(key):
                if parse_cfg_key(key).matches(descriptor):
                    cfg_sections.append(_normalize_flags(section, f"target.{key}"))
                    matched.append(key)
            elif key == triple.triple:
                triple_sections.append(_normalize_flags(section, f"target.{key}"))
                matched.append(key)

    env_values = target_environment(triple.triple, base.env)
    merged = merge_all(triple_sections, options.policy)
    if "rustflags" in env_values:
        env_flags = ConfigValue.table({"rustflags": env_values["rustflags"]})
        merged = merge(merged, env_flags, options.policy)
    for section in cfg_sections:
        merged = merge(merged, section, options.policy)
    for key in ("linker", "runner"):
        if key in env_values:
            merged = set_path(merged, key, env_values[key])

    logger.debug(f"Resolved target {triple}: matched sections {matched}")

    return ResolvedConfig(
        triple=triple,
        descriptor=descriptor,
        value=set_path(base.value, "target", merged),
        cwd=base.cwd,
        wrapper=_wrapper_for(base, options.wrapper),
        matched_sections=tuple(matched),
        env=base.env,
        rustc_override=options.rustc,
        rustflags_override_target=base.rustflags_override_target,
        rustdocflags_override_target=base.rustdocflags_override_target,
    )


def attribute_value(
    target: str, key: str, options: Optional[ResolveOptions] = None
) -> Union[Optional[AttributeValue], List[AttributeValue]]:
    """
    Value of one platform attribute for a target.

    Args:
        target: Target triple or custom target specification path
        key: Attribute key such as 'target_os' or 'target_family'

    Returns:
        A list of AttributeValue for multi-valued attributes, otherwise a
        single AttributeValue or None

    Raises:
        UnknownTarget: If the target cannot be described
        UnknownAttribute: If the key is not a catalog attribute
        TooManyValues: If a single-valued attribute has several values
    """
    options = options or ResolveOptions()
    descriptor = get_descriptor(
        TargetTriple.parse(target), options.descriptors, options.cfg_provider
    )
    return descriptor.attribute(key)


__all__ = [
    "BaseConfig",
    "load",
    "WrapperChoice",
    "select_wrapper",
    "ResolveOptions",
    "ResolvedConfig",
    "resolve",
    "attribute_value",
]
