# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
YAML rules file loader.

Format:

    args_filters:
      $filtered_args:
        - initial all
        - exclude ~ ^ads\\.
        - include ads.test
        - [include, ~*, ^utm_]
      $everything:            # empty block

A directive is either a string, split on whitespace with shell-like quoting,
or a list whose first element is the directive name. Blocks are declared in
file order; the first error aborts the whole load.

Scalars are read exactly as written: ``~``, ``on``, ``null`` or ``010`` stay
plain text and backslashes reach the regex compiler untouched. A block name
repeated in the file is declared twice, so it fails like any other duplicate.
"""

import logging
import shlex
from collections.abc import Hashable
from pathlib import Path
from typing import Any, Iterable, List, Tuple, Union

import yaml
from yaml.constructor import ConstructorError

from .compiler import Directive
from .exceptions import ConfigFileError
from .registry import FilterRegistry, FilterRegistryBuilder

logger = logging.getLogger("argsfilter.loader")

ROOT_KEY = "args_filters"


# =============================================================================
# YAML Loading
# =============================================================================

class RulesMapping(dict):
    """Mapping that also remembers every (key, value) pair, repeats included."""

    def __init__(self):
        super().__init__()
        self.pairs: List[Tuple[Any, Any]] = []


class RulesLoader(yaml.BaseLoader):
    """
    Loader for rules files.

    Based on BaseLoader so every scalar stays a string, with mappings built
    as RulesMapping so repeated keys stay visible.
    """

    def construct_mapping(self, node, deep=False):
        mapping = RulesMapping()
        for key_node, value_node in node.value:
            key = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                raise ConstructorError(
                    "while constructing a mapping", node.start_mark,
                    "found unhashable key", key_node.start_mark,
                )
            value = self.construct_object(value_node, deep=deep)
            mapping.pairs.append((key, value))
            mapping[key] = value
        return mapping


def _pairs(mapping: dict) -> Iterable[Tuple[Any, Any]]:
    return getattr(mapping, "pairs", mapping.items())


def _is_empty(value: Any) -> bool:
    # An empty YAML value reads as "" under BaseLoader and None under safe_load
    return value is None or value == ""


# =============================================================================
# Directives and Documents
# =============================================================================

def tokenize(entry: str) -> List[str]:
    """
    Split a directive string on whitespace.

    Quotes group words, backslashes are kept as written and ``#`` is an
    ordinary character.

    Raises:
        ValueError: unbalanced quotes
    """
    lexer = shlex.shlex(entry, posix=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    lexer.escape = ""
    return list(lexer)


def parse_directive(entry: Any, block: str) -> Directive:
    """
    Convert one YAML entry to a (name, args) pair.

    Examples:
        'exclude ~ ^id\\d+$'          -> ("exclude", ["~", "^id\\d+$"])
        ["include", "~*", "^utm_"]    -> ("include", ["~*", "^utm_"])
        "volatile"                    -> ("volatile", [])
    """
    if isinstance(entry, str):
        try:
            tokens = tokenize(entry)
        except ValueError as e:
            raise ConfigFileError(
                f"cannot parse directive {entry!r} in args_filter block {block}: {e}",
                cause=e,
            ) from e
    elif isinstance(entry, list):
        if not all(isinstance(item, str) for item in entry):
            raise ConfigFileError(
                f"directive arguments must be strings in args_filter block {block}: {entry!r}"
            )
        tokens = list(entry)
    else:
        raise ConfigFileError(
            f"directive must be a string or a list in args_filter block {block}: {entry!r}"
        )

    if not tokens:
        raise ConfigFileError(f"empty directive in args_filter block {block}")

    return tokens[0], tokens[1:]


def parse_document(data: Any) -> List[Tuple[str, List[Directive]]]:
    """Validate the document shape and return blocks in declaration order."""
    if data is None:
        return []

    if not isinstance(data, dict):
        raise ConfigFileError("args_filter rules file must be a mapping")

    if sum(1 for key, _ in _pairs(data) if key == ROOT_KEY) > 1:
        raise ConfigFileError(f"'{ROOT_KEY}' is declared more than once")

    blocks = data.get(ROOT_KEY)
    if _is_empty(blocks):
        return []

    if not isinstance(blocks, dict):
        raise ConfigFileError(f"'{ROOT_KEY}' must map variable names to directive lists")

    parsed: List[Tuple[str, List[Directive]]] = []
    for raw_name, entries in _pairs(blocks):
        block = str(raw_name)
        if _is_empty(entries):
            entries = []
        if not isinstance(entries, list):
            raise ConfigFileError(f"args_filter block {block} must be a list of directives")

        parsed.append((block, [parse_directive(entry, block) for entry in entries]))

    return parsed


def build_registry(data: Any) -> FilterRegistry:
    """Compile a parsed YAML document into a frozen registry."""
    builder = FilterRegistryBuilder()

    for raw_name, directives in parse_document(data):
        builder.declare(raw_name, directives)

    return builder.freeze()


def load_text(text: str) -> FilterRegistry:
    """Compile rules given as YAML text."""
    try:
        data = yaml.load(text, Loader=RulesLoader)
    except yaml.YAMLError as e:
        raise ConfigFileError(f"invalid YAML in args_filter rules: {e}", cause=e) from e

    return build_registry(data)


def load_file(file_path: Union[str, Path]) -> FilterRegistry:
    """
    Load and compile an args_filter rules file.

    Raises:
        ConfigFileError: file unreadable, not YAML or wrongly shaped
        DirectiveError / DuplicateFilterError: invalid rules
    """
    path = Path(file_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.load(f, Loader=RulesLoader)
    except OSError as e:
        raise ConfigFileError(
            f"cannot read args_filter rules file {path}: {e}", path=str(path), cause=e
        ) from e
    except yaml.YAMLError as e:
        raise ConfigFileError(
            f"invalid YAML in args_filter rules file {path}: {e}", path=str(path), cause=e
        ) from e

    registry = build_registry(data)
    logger.debug(f"Loaded {len(registry)} args_filter block(s) from {path}")
    return registry
