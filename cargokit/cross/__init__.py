"""
Target platform support for CargoKit.

This module provides the platform attribute catalog, target descriptors and
the predicate language used by `target.'cfg(...)'` configuration sections.
"""

from cargokit.cross.catalog import (
    ATTRIBUTES,
    Attribute,
    AttributeDefinition,
    AttributeValue,
    Cardinality,
    get_attribute,
)
from cargokit.cross.descriptor import (
    CfgProvider,
    TargetDescriptor,
    TargetTriple,
    clear_descriptor_cache,
    get_descriptor,
    parse_cfg_output,
)
from cargokit.cross.predicate import Expression, parse_cfg_key, parse_predicate

__all__ = [
    "ATTRIBUTES",
    "Attribute",
    "AttributeDefinition",
    "AttributeValue",
    "Cardinality",
    "get_attribute",
    "CfgProvider",
    "TargetDescriptor",
    "TargetTriple",
    "clear_descriptor_cache",
    "get_descriptor",
    "parse_cfg_output",
    "Expression",
    "parse_cfg_key",
    "parse_predicate",
]
