"""
Unit tests for cargokit.config.environment module.

Tests cover:
- Snapshot filtering of process variables
- Coercion of each value kind and InvalidEnvValue
- Priority between variables bound to the same path
- Unset versus explicitly empty list variables
- Fallback bindings, aliases, registries and per-target variables
"""

import pytest

from cargokit.config.environment import (
    EnvKind,
    apply_environment,
    coerce,
    env_name,
    snapshot_environment,
    target_env_prefix,
    target_environment,
)
from cargokit.config.value import Definition, DefinitionKind, from_python, get_path
from cargokit.core.exceptions import InvalidEnvValue


def file_config(data):
    return from_python(data, Definition.path("/work/.cargo/config.toml"))


def overlay(data, env):
    return apply_environment(file_config(data), env)


class TestSnapshot:
    """Tests for snapshot_environment."""

    def test_filters_unrelated_variables(self):
        """Test that only CARGO*, RUST* and BROWSER are kept."""
        env = {
            "CARGO_HOME": "/h",
            "RUSTFLAGS": "-a",
            "BROWSER": "firefox",
            "PATH": "/bin",
            "HOME": "/home/u",
        }
        assert snapshot_environment(env) == {
            "CARGO_HOME": "/h",
            "RUSTFLAGS": "-a",
            "BROWSER": "firefox",
        }


class TestCoerce:
    """Tests for coerce."""

    def test_boolean(self):
        """Test boolean values."""
        assert coerce("V", "true", EnvKind.BOOLEAN).data is True
        assert coerce("V", "false", EnvKind.BOOLEAN).data is False

    @pytest.mark.parametrize("raw", ["yes", "1", "TRUE", ""])
    def test_invalid_boolean(self, raw):
        """Test that non-boolean strings are rejected."""
        with pytest.raises(InvalidEnvValue) as exc_info:
            coerce("CARGO_NET_OFFLINE", raw, EnvKind.BOOLEAN)

        assert exc_info.value.variable == "CARGO_NET_OFFLINE"
        assert exc_info.value.value == raw

    def test_switch(self):
        """Test "1"-means-true switches."""
        assert coerce("CARGO_INCREMENTAL", "1", EnvKind.SWITCH).data is True
        assert coerce("CARGO_INCREMENTAL", "0", EnvKind.SWITCH).data is False

    def test_integer(self):
        """Test integer values."""
        assert coerce("CARGO_BUILD_JOBS", " 8 ", EnvKind.INTEGER).data == 8
        with pytest.raises(InvalidEnvValue, match="an integer"):
            coerce("CARGO_BUILD_JOBS", "many", EnvKind.INTEGER)

    def test_space_separated_list(self):
        """Test that runs of spaces are collapsed."""
        value = coerce("RUSTFLAGS", "  -C  opt-level=3 ", EnvKind.LIST)
        assert value.to_python() == ["-C", "opt-level=3"]

    def test_encoded_list_keeps_spaces(self):
        """Test 0x1f separated lists."""
        value = coerce("CARGO_ENCODED_RUSTFLAGS", "-L\x1f/a b", EnvKind.ENCODED_LIST)
        assert value.to_python() == ["-L", "/a b"]

    @pytest.mark.parametrize("kind", [EnvKind.LIST, EnvKind.ENCODED_LIST])
    def test_empty_list(self, kind):
        """Test that an empty string is an empty list."""
        assert coerce("V", "", kind).to_python() == []

    def test_choices(self):
        """Test enumerated strings."""
        assert coerce("CARGO_TERM_COLOR", "never", EnvKind.STRING, ("auto", "never")).data == "never"
        with pytest.raises(InvalidEnvValue, match="one of `auto`, `never`"):
            coerce("CARGO_TERM_COLOR", "sometimes", EnvKind.STRING, ("auto", "never"))

    def test_definition(self):
        """Test that coerced values remember their variable."""
        value = coerce("RUSTC", "rustc", EnvKind.PATH)
        assert value.definition.kind is DefinitionKind.ENVIRONMENT
        assert value.definition.location == "RUSTC"


class TestApplyEnvironment:
    """Tests for apply_environment."""

    def test_no_variables(self):
        """Test that an empty environment changes nothing."""
        result = overlay({"build": {"jobs": 2}}, {})

        assert result.value.to_python() == {"build": {"jobs": 2}}
        assert result.applied == ()

    def test_env_wins_over_file(self):
        """Test that environment values replace file values."""
        result = overlay({"build": {"jobs": 2}}, {"CARGO_BUILD_JOBS": "16"})

        assert get_path(result.value, "build.jobs").data == 16
        assert result.applied == ("CARGO_BUILD_JOBS",)

    def test_list_replaced_not_appended(self):
        """Test that an environment list replaces the file list."""
        result = overlay(
            {"build": {"rustflags": ["-file"]}}, {"CARGO_BUILD_RUSTFLAGS": "-env"}
        )
        assert get_path(result.value, "build.rustflags").to_python() == ["-env"]

    def test_unset_list_untouched(self):
        """Test that an absent variable leaves the file list alone."""
        result = overlay({"build": {"rustflags": ["-file"]}}, {"UNRELATED": ""})
        assert get_path(result.value, "build.rustflags").to_python() == ["-file"]

    def test_empty_list_replaces(self):
        """Test that an empty variable yields an explicitly empty list."""
        result = overlay({"build": {"rustflags": ["-file"]}}, {"RUSTFLAGS": ""})

        assert get_path(result.value, "build.rustflags").to_python() == []
        assert result.rustflags_override_target

    def test_priority_within_path(self):
        """Test variable priority for one path."""
        env = {
            "CARGO_ENCODED_RUSTFLAGS": "-enc",
            "RUSTFLAGS": "-plain",
            "CARGO_BUILD_RUSTFLAGS": "-build",
            "RUSTC": "/opt/rustc",
            "CARGO_BUILD_RUSTC": "/other/rustc",
        }
        result = overlay({}, env)

        assert get_path(result.value, "build.rustflags").to_python() == ["-enc"]
        assert get_path(result.value, "build.rustc").data == "/opt/rustc"
        assert "RUSTFLAGS" not in result.applied
        assert "CARGO_BUILD_RUSTC" not in result.applied

    def test_build_rustflags_does_not_override_target(self):
        """Test that CARGO_BUILD_RUSTFLAGS only sets build.rustflags."""
        result = overlay({}, {"CARGO_BUILD_RUSTFLAGS": "-a"})
        assert not result.rustflags_override_target

    def test_rustdocflags(self):
        """Test the rustdoc flag variables."""
        result = overlay({}, {"RUSTDOCFLAGS": "--cfg docsrs"})

        assert get_path(result.value, "build.rustdocflags").to_python() == ["--cfg", "docsrs"]
        assert result.rustdocflags_override_target
        assert not result.rustflags_override_target

    def test_incremental_switch_priority(self):
        """Test CARGO_INCREMENTAL over CARGO_BUILD_INCREMENTAL."""
        result = overlay(
            {}, {"CARGO_INCREMENTAL": "0", "CARGO_BUILD_INCREMENTAL": "true"}
        )
        assert get_path(result.value, "build.incremental").data is False

    def test_invalid_value_fails(self):
        """Test that a bad value aborts the overlay."""
        with pytest.raises(InvalidEnvValue):
            overlay({}, {"CARGO_NET_OFFLINE": "maybe"})

    def test_browser_fallback(self):
        """Test that BROWSER only fills an unset doc.browser."""
        unset = overlay({}, {"BROWSER": "firefox"})
        configured = overlay({"doc": {"browser": "chromium"}}, {"BROWSER": "firefox"})

        assert get_path(unset.value, "doc.browser").data == "firefox"
        assert get_path(configured.value, "doc.browser").data == "chromium"

    def test_term_settings(self):
        """Test nested term settings."""
        result = overlay(
            {},
            {
                "CARGO_TERM_COLOR": "always",
                "CARGO_TERM_PROGRESS_WHEN": "never",
                "CARGO_TERM_PROGRESS_WIDTH": "100",
            },
        )
        assert result.value.to_python() == {
            "term": {"color": "always", "progress": {"when": "never", "width": 100}}
        }

    def test_alias(self):
        """Test CARGO_ALIAS_<NAME>."""
        result = overlay(
            {"alias": {"build-all": ["build", "--workspace"]}},
            {"CARGO_ALIAS_BUILD_ALL": "build --all-targets", "CARGO_ALIAS_T": "test"},
        )
        assert result.value.to_python()["alias"] == {
            "build-all": ["build", "--all-targets"],
            "t": ["test"],
        }

    def test_registries(self):
        """Test CARGO_REGISTRIES_<NAME>_* for configured and new registries."""
        result = overlay(
            {"registries": {"my-registry": {"index": "https://a"}}},
            {
                "CARGO_REGISTRIES_MY_REGISTRY_TOKEN": "secret",
                "CARGO_REGISTRIES_CRATES_IO_PROTOCOL": "sparse",
            },
        )
        assert result.value.to_python()["registries"] == {
            "my-registry": {"index": "https://a", "token": "secret"},
            "crates-io": {"protocol": "sparse"},
        }

    def test_registry_protocol_validated(self):
        """Test that unknown registry protocols are rejected."""
        with pytest.raises(InvalidEnvValue):
            overlay({}, {"CARGO_REGISTRIES_CRATES_IO_PROTOCOL": "ftp"})

    def test_input_not_modified(self):
        """Test that the merged file configuration is left intact."""
        config = file_config({"build": {"jobs": 2}})
        apply_environment(config, {"CARGO_BUILD_JOBS": "4"})
        assert config.to_python() == {"build": {"jobs": 2}}


class TestTargetEnvironment:
    """Tests for per-target variables."""

    def test_env_name(self):
        """Test key to variable spelling."""
        assert env_name("rustc-wrapper") == "RUSTC_WRAPPER"
        assert target_env_prefix("thumbv8m.main-none-eabi") == "CARGO_TARGET_THUMBV8M_MAIN_NONE_EABI"

    def test_linker_runner_rustflags(self):
        """Test reading the per-target variables."""
        env = {
            "CARGO_TARGET_AARCH64_UNKNOWN_LINUX_GNU_LINKER": "aarch64-linux-gnu-gcc",
            "CARGO_TARGET_AARCH64_UNKNOWN_LINUX_GNU_RUNNER": "qemu-aarch64 -L /usr",
            "CARGO_TARGET_AARCH64_UNKNOWN_LINUX_GNU_RUSTFLAGS": "-C lto",
            "CARGO_TARGET_X86_64_UNKNOWN_LINUX_GNU_LINKER": "ignored",
        }
        values = target_environment("aarch64-unknown-linux-gnu", env)

        assert values["linker"].data == "aarch64-linux-gnu-gcc"
        assert values["runner"].data == "qemu-aarch64 -L /usr"
        assert values["rustflags"].to_python() == ["-C", "lto"]

    def test_none_set(self):
        """Test a target without variables."""
        assert target_environment("aarch64-unknown-linux-gnu", {}) == {}


class TestWrapperVariables:
    """Tests for the compiler wrapper variables."""

    def test_rustc_wrapper_over_file(self):
        """Test that RUSTC_WRAPPER replaces build.rustc-wrapper."""
        result = overlay({"build": {"rustc-wrapper": "from-file"}}, {"RUSTC_WRAPPER": "sccache"})

        value = get_path(result.value, "build.rustc-wrapper")
        assert value.data == "sccache"
        assert value.definition.location == "RUSTC_WRAPPER"

    def test_rustc_wrapper_over_build_variable(self):
        """Test RUSTC_WRAPPER over CARGO_BUILD_RUSTC_WRAPPER."""
        result = overlay({}, {"RUSTC_WRAPPER": "a", "CARGO_BUILD_RUSTC_WRAPPER": "b"})

        assert get_path(result.value, "build.rustc-wrapper").data == "a"
        assert "CARGO_BUILD_RUSTC_WRAPPER" not in result.applied

    def test_workspace_wrapper_over_build_variable(self):
        """Test RUSTC_WORKSPACE_WRAPPER over CARGO_BUILD_RUSTC_WORKSPACE_WRAPPER."""
        result = overlay(
            {},
            {
                "RUSTC_WORKSPACE_WRAPPER": "clippy-driver",
                "CARGO_BUILD_RUSTC_WORKSPACE_WRAPPER": "other",
            },
        )
        assert get_path(result.value, "build.rustc-workspace-wrapper").data == "clippy-driver"

    def test_empty_wrapper_kept(self):
        """Test that an empty RUSTC_WRAPPER is stored, not skipped."""
        result = overlay({"build": {"rustc-wrapper": "from-file"}}, {"RUSTC_WRAPPER": ""})
        assert get_path(result.value, "build.rustc-wrapper").data == ""
