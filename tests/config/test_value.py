"""
Unit tests for cargokit.config.value module.

Tests cover:
- Conversion from parsed document data
- Table, array and scalar merge semantics
- Strict merge policy and TypeMismatch
- Immutability of merge inputs
- Path lookup and update helpers
"""

from pathlib import Path

import pytest

from cargokit.config.value import (
    ConfigValue,
    Definition,
    DefinitionKind,
    Kind,
    MergePolicy,
    from_python,
    get_path,
    merge,
    merge_all,
    remove_key,
    set_path,
)
from cargokit.core.exceptions import ConfigValueError, TypeMismatch


def doc(data, location="/work/.cargo/config.toml"):
    return from_python(data, Definition.path(location))


class TestFromPython:
    """Tests for building values from parsed data."""

    def test_scalar_kinds(self):
        """Test that scalars map to their kinds."""
        value = from_python({"s": "x", "b": True, "i": 3})

        assert value.get("s").kind is Kind.STRING
        assert value.get("b").kind is Kind.BOOLEAN
        assert value.get("i").kind is Kind.INTEGER

    def test_bool_is_not_integer(self):
        """Test that booleans are not mistaken for integers."""
        assert from_python(False).kind is Kind.BOOLEAN

    def test_nested_round_trip(self):
        """Test that to_python returns the original structure."""
        data = {"build": {"rustflags": ["-a", "-b"], "jobs": 4}, "alias": {}}
        assert from_python(data).to_python() == data

    def test_definition_attached_to_every_node(self):
        """Test that provenance reaches nested values."""
        value = doc({"build": {"rustflags": ["-a"]}})
        flag = get_path(value, "build.rustflags").data[0]

        assert flag.definition.kind is DefinitionKind.PATH
        assert flag.definition.location == "/work/.cargo/config.toml"

    def test_float_rejected(self):
        """Test that unsupported kinds raise ConfigValueError."""
        with pytest.raises(ConfigValueError, match="float"):
            from_python({"x": 1.5})


class TestMerge:
    """Tests for merge()."""

    def test_tables_merge_recursively(self):
        """Test that keys from both tables survive."""
        merged = merge(doc({"build": {"jobs": 1}}), doc({"build": {"rustc": "r"}}))
        assert merged.to_python() == {"build": {"jobs": 1, "rustc": "r"}}

    def test_arrays_concatenate_base_first(self):
        """Test order-preserving array concatenation."""
        merged = merge(doc({"flags": ["x"]}), doc({"flags": ["y"]}))
        assert merged.to_python() == {"flags": ["x", "y"]}

    def test_arrays_not_deduplicated(self):
        """Test that repeated entries are kept."""
        merged = merge(doc({"flags": ["x"]}), doc({"flags": ["x"]}))
        assert merged.to_python() == {"flags": ["x", "x"]}

    def test_scalar_override_wins(self):
        """Test that the more specific scalar replaces the other."""
        merged = merge(doc({"jobs": 1}), doc({"jobs": 8}))
        assert merged.to_python() == {"jobs": 8}

    def test_scalar_kind_change_allowed(self):
        """Test that scalar kind changes are plain replacements even when strict."""
        merged = merge(doc({"x": 1}), doc({"x": "one"}), MergePolicy.STRICT)
        assert merged.to_python() == {"x": "one"}

    def test_table_replaced_by_scalar_by_default(self):
        """Test the permissive default policy."""
        merged = merge(doc({"x": {"a": 1}}), doc({"x": "flat"}))
        assert merged.to_python() == {"x": "flat"}

    def test_strict_rejects_container_mismatch(self):
        """Test that strict mode raises TypeMismatch with the key path."""
        with pytest.raises(TypeMismatch) as exc_info:
            merge(
                doc({"build": {"rustflags": ["-a"]}}),
                doc({"build": {"rustflags": "-b"}}, "/other/.cargo/config.toml"),
                MergePolicy.STRICT,
            )

        error = exc_info.value
        assert error.key == "build.rustflags"
        assert error.base_kind == "array"
        assert error.override_kind == "string"
        assert "/other/.cargo/config.toml" in str(error)

    def test_inputs_not_modified(self):
        """Test that merge builds new values."""
        base = doc({"build": {"rustflags": ["-a"]}})
        override = doc({"build": {"rustflags": ["-b"], "jobs": 2}})

        merge(base, override)

        assert base.to_python() == {"build": {"rustflags": ["-a"]}}
        assert override.to_python() == {"build": {"rustflags": ["-b"], "jobs": 2}}

    def test_tables_are_read_only(self):
        """Test that table data cannot be mutated."""
        value = doc({"a": 1})
        with pytest.raises(TypeError):
            value.data["b"] = ConfigValue.integer(2)

    def test_associativity(self):
        """Test that merge order grouping does not matter."""
        a = doc({"jobs": 1, "flags": ["a"], "t": {"x": 1}})
        b = doc({"flags": ["b"], "t": {"y": 2}})
        c = doc({"jobs": 3, "flags": ["c"], "t": {"x": 9}})

        left = merge(merge(a, b), c)
        right = merge(a, merge(b, c))

        assert left == right
        assert left.to_python() == {"jobs": 3, "flags": ["a", "b", "c"], "t": {"x": 9, "y": 2}}

    def test_merge_all_empty(self):
        """Test that merging nothing yields an empty table."""
        assert merge_all([]).to_python() == {}

    def test_merge_all_matches_pairwise(self):
        """Test merge_all against explicit pairwise merges."""
        docs = [doc({"k": i, "l": [i]}) for i in range(4)]
        expected = merge(merge(merge(docs[0], docs[1]), docs[2]), docs[3])
        assert merge_all(docs) == expected


class TestPaths:
    """Tests for get_path/set_path/remove_key."""

    def test_get_nested(self):
        """Test dotted lookup."""
        value = doc({"build": {"jobs": 4}})
        assert get_path(value, "build.jobs").data == 4

    def test_get_missing(self):
        """Test that missing segments return None."""
        value = doc({"build": {"jobs": 4}})
        assert get_path(value, "build.rustc") is None
        assert get_path(value, "net.retry") is None

    def test_get_through_scalar(self):
        """Test that crossing a non-table returns None."""
        value = doc({"build": {"jobs": 4}})
        assert get_path(value, "build.jobs.x") is None

    def test_get_with_segments(self):
        """Test lookup of keys containing dots."""
        value = doc({"target": {"thumbv7em.custom": {"linker": "x"}}})
        assert get_path(value, ("target", "thumbv7em.custom", "linker")).data == "x"

    def test_set_creates_tables(self):
        """Test that set_path creates intermediate tables and copies."""
        value = doc({"build": {"jobs": 4}})
        updated = set_path(value, "term.progress.width", ConfigValue.integer(80))

        assert updated.to_python() == {
            "build": {"jobs": 4},
            "term": {"progress": {"width": 80}},
        }
        assert value.to_python() == {"build": {"jobs": 4}}

    def test_remove_key(self):
        """Test removing a top-level key."""
        value = doc({"root": True, "build": {}})
        assert remove_key(value, "root").to_python() == {"build": {}}


class TestAccessors:
    """Tests for typed accessors and definitions."""

    def test_wrong_kind_message(self):
        """Test the error raised for a wrong kind."""
        value = doc({"build": {"jobs": "four"}})
        with pytest.raises(ConfigValueError, match="expected integer, but found string for `build.jobs`"):
            get_path(value, "build.jobs").as_int("build.jobs")

    def test_str_list(self):
        """Test reading an array of strings."""
        value = doc({"f": ["-a", "-b"]})
        assert value.get("f").as_str_list("f") == ["-a", "-b"]

    def test_definition_root(self):
        """Test relative path roots for each definition kind."""
        cwd = Path("/cwd")
        assert Definition.path("/work/.cargo/config.toml").root(cwd) == Path("/work")
        assert Definition.environment("RUSTC").root(cwd) == cwd
        assert Definition.cli().root(cwd) == cwd

    def test_definition_str(self):
        """Test human readable definitions."""
        assert str(Definition.environment("RUSTC")) == "environment variable `RUSTC`"
