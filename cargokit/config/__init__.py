"""Configuration module for CargoKit.

This module loads layered `.cargo/config.toml` documents, applies environment
overrides and resolves the effective configuration for a target.
"""

from cargokit.config.value import (
    Kind,
    MergePolicy,
    DefinitionKind,
    Definition,
    ConfigValue,
    from_python,
    merge,
    merge_all,
    get_path,
)
from cargokit.config.loader import (
    Document,
    LoadDiagnostic,
    discover_config_paths,
    read_document,
    load_documents,
)
from cargokit.config.environment import (
    EnvKind,
    EnvBinding,
    ENV_BINDINGS,
    apply_environment,
    snapshot_environment,
)
from cargokit.config.command import (
    Flags,
    PathAndArgs,
)
from cargokit.config.sections import (
    BuildConfig,
    DocConfig,
    EnvEntry,
    FutureIncompatReportConfig,
    HttpConfig,
    NetConfig,
    TermConfig,
    TermProgress,
    RegistriesEntry,
    RegistryConfig,
    TargetConfig,
)
from cargokit.config.resolver import (
    BaseConfig,
    ResolveOptions,
    ResolvedConfig,
    WrapperChoice,
    select_wrapper,
    load,
    resolve,
    attribute_value,
)

__all__ = [
    # Value model
    "Kind",
    "MergePolicy",
    "DefinitionKind",
    "Definition",
    "ConfigValue",
    "from_python",
    "merge",
    "merge_all",
    "get_path",
    # Loading
    "Document",
    "LoadDiagnostic",
    "discover_config_paths",
    "read_document",
    "load_documents",
    # Environment
    "EnvKind",
    "EnvBinding",
    "ENV_BINDINGS",
    "apply_environment",
    "snapshot_environment",
    # Commands
    "Flags",
    "PathAndArgs",
    # Sections
    "BuildConfig",
    "DocConfig",
    "EnvEntry",
    "FutureIncompatReportConfig",
    "HttpConfig",
    "NetConfig",
    "TermConfig",
    "TermProgress",
    "RegistriesEntry",
    "RegistryConfig",
    "TargetConfig",
    # Resolution
    "BaseConfig",
    "ResolveOptions",
    "ResolvedConfig",
    "WrapperChoice",
    "select_wrapper",
    "load",
    "resolve",
    "attribute_value",
]
