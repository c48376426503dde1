# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
args_filter core

Configuration side: compile_block / FilterRegistryBuilder / load_file.
Request side: evaluate / filter_query.
"""

from .compiler import (
    NESTED_DIRECTIVES,
    compile_block,
    compile_directives,
    normalize_variable_name,
    parse_variable_name,
)
from .exceptions import (
    ArgsFilterError,
    ConfigError,
    ConfigFileError,
    DirectiveError,
    DuplicateFilterError,
    RegexCompileError,
    RegistryFrozenError,
)
from .loader import load_file, load_text
from .query import filter_query, split_key
from .registry import FilterRegistry, FilterRegistryBuilder
from .rules import (
    FilterDefinition,
    FilterDefinitionBuilder,
    InitialPolicy,
    LiteralMatcher,
    RegexMatcher,
    Rule,
    RuleAction,
    matcher_fault_count,
)
from .variable import VariableValue, evaluate

__all__ = [
    # Rule model
    "InitialPolicy",
    "RuleAction",
    "LiteralMatcher",
    "RegexMatcher",
    "Rule",
    "FilterDefinition",
    "FilterDefinitionBuilder",
    "matcher_fault_count",
    # Configuration
    "NESTED_DIRECTIVES",
    "compile_block",
    "compile_directives",
    "parse_variable_name",
    "normalize_variable_name",
    "load_file",
    "load_text",
    # Registry
    "FilterRegistry",
    "FilterRegistryBuilder",
    # Request time
    "filter_query",
    "split_key",
    "evaluate",
    "VariableValue",
    # Errors
    "ArgsFilterError",
    "ConfigError",
    "ConfigFileError",
    "DirectiveError",
    "RegexCompileError",
    "DuplicateFilterError",
    "RegistryFrozenError",
]
