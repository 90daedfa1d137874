"""Typed views over the resolved configuration tables.

Each `parse_*` function reads one top-level table of a merged configuration
and returns a dataclass. Relative paths are resolved against the directory the
value was defined in (see Definition.root).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from cargokit.config.command import (
    Flags,
    PathAndArgs,
    resolve_path,
    resolve_program,
    split_space_separated,
)
from cargokit.config.value import ConfigValue, Definition, Kind
from cargokit.core.exceptions import ConfigValueError
from cargokit.cross.descriptor import TargetTriple


@dataclass
class BuildConfig:
    """[build] table."""

    jobs: Optional[int] = None  # negative values count back from the CPU count
    rustc: Optional[Path] = None
    rustc_wrapper: Optional[Path] = None
    rustc_workspace_wrapper: Optional[Path] = None
    rustdoc: Optional[Path] = None
    target: Optional[List[TargetTriple]] = None
    target_dir: Optional[Path] = None
    rustflags: Optional[Flags] = None
    rustdocflags: Optional[Flags] = None
    incremental: Optional[bool] = None
    dep_info_basedir: Optional[Path] = None


@dataclass
class DocConfig:
    """[doc] table."""

    browser: Optional[PathAndArgs] = None


@dataclass
class EnvEntry:
    """One entry of the [env] table."""

    value: str
    force: bool = False  # override variables already set in the environment
    relative: bool = False  # value is a path relative to the config directory
    definition: Optional[Definition] = field(default=None, repr=False, compare=False)

    def resolve(self, cwd: Path) -> str:
        """Value to export; relative paths are made absolute."""
        if not self.relative:
            return self.value
        return str(resolve_path(self.value, self.definition, cwd))


@dataclass
class FutureIncompatReportConfig:
    """[future-incompat-report] table."""

    frequency: Optional[str] = None  # 'always', 'never'


@dataclass
class HttpConfig:
    """[http] table."""

    proxy: Optional[str] = None
    timeout: Optional[int] = None  # seconds


@dataclass
class NetConfig:
    """[net] table."""

    retry: Optional[int] = None
    git_fetch_with_cli: Optional[bool] = None
    offline: Optional[bool] = None


@dataclass
class TermProgress:
    """[term.progress] table."""

    when: Optional[str] = None  # 'auto', 'always', 'never'
    width: Optional[int] = None


@dataclass
class TermConfig:
    """[term] table."""

    quiet: Optional[bool] = None
    verbose: Optional[bool] = None
    color: Optional[str] = None  # 'auto', 'always', 'never'
    progress: TermProgress = field(default_factory=TermProgress)


@dataclass
class RegistriesEntry:
    """One entry of the [registries] table."""

    index: Optional[str] = None
    token: Optional[str] = field(default=None, repr=False)
    protocol: Optional[str] = None  # 'git', 'sparse'


@dataclass
class RegistryConfig:
    """[registry] table."""

    default: Optional[str] = None
    token: Optional[str] = field(default=None, repr=False)


@dataclass
class TargetConfig:
    """Merged `target.<triple>` and matching `target.'cfg(...)'` tables."""

    linker: Optional[Path] = None
    runner: Optional[PathAndArgs] = None
    rustflags: Optional[Flags] = None


# ============================================================================
# Field helpers
# ============================================================================


def _field(section: Optional[ConfigValue], name: str) -> Optional[ConfigValue]:
    if section is None:
        return None
    return section.get(name)


def _check_table(section: Optional[ConfigValue], key: str) -> Optional[ConfigValue]:
    if section is not None and not section.is_table:
        section.as_table(key)
    return section


def _str(section: Optional[ConfigValue], name: str, key: str) -> Optional[str]:
    value = _field(section, name)
    return None if value is None else value.as_str(f"{key}.{name}")


def _bool(section: Optional[ConfigValue], name: str, key: str) -> Optional[bool]:
    value = _field(section, name)
    return None if value is None else value.as_bool(f"{key}.{name}")


def _int(section: Optional[ConfigValue], name: str, key: str) -> Optional[int]:
    value = _field(section, name)
    return None if value is None else value.as_int(f"{key}.{name}")


def _choice(
    section: Optional[ConfigValue], name: str, key: str, choices: Tuple[str, ...]
) -> Optional[str]:
    value = _str(section, name, key)
    if value is not None and value not in choices:
        raise ConfigValueError(
            f"invalid value `{value}` for `{key}.{name}`, expected one of "
            + ", ".join(f"`{c}`" for c in choices)
        )
    return value


def _program(
    section: Optional[ConfigValue], name: str, key: str, cwd: Path
) -> Optional[Path]:
    value = _field(section, name)
    if value is None:
        return None
    return resolve_program(value.as_str(f"{key}.{name}"), value.definition, cwd)


def _path(
    section: Optional[ConfigValue], name: str, key: str, cwd: Path
) -> Optional[Path]:
    value = _field(section, name)
    if value is None:
        return None
    return resolve_path(value.as_str(f"{key}.{name}"), value.definition, cwd)


def string_list(value: ConfigValue, key: str) -> List[str]:
    """A string (split on spaces) or an array of strings."""
    if value.kind is Kind.STRING:
        return split_space_separated(value.data)
    if value.kind is Kind.ARRAY:
        return value.as_str_list(key)
    raise ConfigValueError(
        f"expected a string or array of strings, but found a {value.kind.value} "
        f"for `{key}` in {value.definition or 'unknown location'}"
    )


def _flags(section: Optional[ConfigValue], name: str, key: str) -> Optional[Flags]:
    value = _field(section, name)
    if value is None:
        return None
    return Flags.from_list(string_list(value, f"{key}.{name}"))


# ============================================================================
# Section parsers
# ============================================================================


def parse_build(section: Optional[ConfigValue], cwd: Path) -> BuildConfig:
    section = _check_table(section, "build")
    jobs = _int(section, "jobs", "build")
    if jobs == 0:
        raise ConfigValueError("`build.jobs` may not be 0")

    target = None
    target_value = _field(section, "target")
    if target_value is not None:
        names = (
            [target_value.as_str("build.target")]
            if target_value.kind is Kind.STRING
            else target_value.as_str_list("build.target")
        )
        base = (
            target_value.definition.root(cwd) if target_value.definition else cwd
        )
        target = [TargetTriple.parse(name, base) for name in names]

    return BuildConfig(
        jobs=jobs,
        rustc=_program(section, "rustc", "build", cwd),
        rustc_wrapper=_program(section, "rustc-wrapper", "build", cwd),
        rustc_workspace_wrapper=_program(
            section, "rustc-workspace-wrapper", "build", cwd
        ),
        rustdoc=_program(section, "rustdoc", "build", cwd),
        target=target,
        target_dir=_path(section, "target-dir", "build", cwd),
        rustflags=_flags(section, "rustflags", "build"),
        rustdocflags=_flags(section, "rustdocflags", "build"),
        incremental=_bool(section, "incremental", "build"),
        dep_info_basedir=_path(section, "dep-info-basedir", "build", cwd),
    )


def parse_doc(section: Optional[ConfigValue], cwd: Path) -> DocConfig:
    section = _check_table(section, "doc")
    browser = _field(section, "browser")
    if browser is None:
        return DocConfig()
    return DocConfig(browser=PathAndArgs.from_value(browser, "doc.browser", cwd))


def parse_env(section: Optional[ConfigValue]) -> Dict[str, EnvEntry]:
    section = _check_table(section, "env")
    entries: Dict[str, EnvEntry] = {}
    if section is None:
        return entries
    for name, value in section.items():
        key = f"env.{name}"
        if value.kind is Kind.STRING:
            entries[name] = EnvEntry(value.data, definition=value.definition)
            continue
        if not value.is_table:
            value.as_str(key)
        raw = _field(value, "value")
        if raw is None:
            raise ConfigValueError(f"`{key}` is missing field `value`")
        entries[name] = EnvEntry(
            value=raw.as_str(f"{key}.value"),
            force=bool(_bool(value, "force", key)),
            relative=bool(_bool(value, "relative", key)),
            definition=raw.definition,
        )
    return entries


def parse_future_incompat_report(
    section: Optional[ConfigValue],
) -> FutureIncompatReportConfig:
    section = _check_table(section, "future-incompat-report")
    return FutureIncompatReportConfig(
        frequency=_choice(
            section, "frequency", "future-incompat-report", ("always", "never")
        )
    )


def parse_http(section: Optional[ConfigValue]) -> HttpConfig:
    section = _check_table(section, "http")
    return HttpConfig(
        proxy=_str(section, "proxy", "http"),
        timeout=_int(section, "timeout", "http"),
    )


def parse_net(section: Optional[ConfigValue]) -> NetConfig:
    section = _check_table(section, "net")
    return NetConfig(
        retry=_int(section, "retry", "net"),
        git_fetch_with_cli=_bool(section, "git-fetch-with-cli", "net"),
        offline=_bool(section, "offline", "net"),
    )


def parse_term(section: Optional[ConfigValue]) -> TermConfig:
    section = _check_table(section, "term")
    colors = ("auto", "always", "never")
    progress = _check_table(_field(section, "progress"), "term.progress")
    return TermConfig(
        quiet=_bool(section, "quiet", "term"),
        verbose=_bool(section, "verbose", "term"),
        color=_choice(section, "color", "term", colors),
        progress=TermProgress(
            when=_choice(progress, "when", "term.progress", colors),
            width=_int(progress, "width", "term.progress"),
        ),
    )


def parse_registries(section: Optional[ConfigValue]) -> Dict[str, RegistriesEntry]:
    section = _check_table(section, "registries")
    registries: Dict[str, RegistriesEntry] = {}
    if section is None:
        return registries
    for name, value in section.items():
        key = f"registries.{name}"
        value = _check_table(value, key)
        registries[name] = RegistriesEntry(
            index=_str(value, "index", key),
            token=_str(value, "token", key),
            protocol=_choice(value, "protocol", key, ("git", "sparse")),
        )
    return registries


def parse_registry(section: Optional[ConfigValue]) -> RegistryConfig:
    section = _check_table(section, "registry")
    return RegistryConfig(
        default=_str(section, "default", "registry"),
        token=_str(section, "token", "registry"),
    )


def parse_alias(section: Optional[ConfigValue]) -> Dict[str, List[str]]:
    section = _check_table(section, "alias")
    if section is None:
        return {}
    return {name: string_list(value, f"alias.{name}") for name, value in section.items()}


def parse_target(
    section: Optional[ConfigValue], cwd: Path, key: str = "target"
) -> TargetConfig:
    section = _check_table(section, key)
    runner = _field(section, "runner")
    if runner is not None:
        runner = PathAndArgs.from_value(runner, f"{key}.runner", cwd)
    return TargetConfig(
        linker=_program(section, "linker", key, cwd),
        runner=runner,
        rustflags=_flags(section, "rustflags", key),
    )


__all__ = [
    "BuildConfig",
    "DocConfig",
    "EnvEntry",
    "FutureIncompatReportConfig",
    "HttpConfig",
    "NetConfig",
    "TermProgress",
    "TermConfig",
    "RegistriesEntry",
    "RegistryConfig",
    "TargetConfig",
    "string_list",
    "parse_build",
    "parse_doc",
    "parse_env",
    "parse_future_incompat_report",
    "parse_http",
    "parse_net",
    "parse_term",
    "parse_registries",
    "parse_registry",
    "parse_alias",
    "parse_target",
]
