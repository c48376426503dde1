# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Request-time evaluation of args_filter variables."""

import logging
from dataclasses import dataclass
from typing import Optional

from .compiler import normalize_variable_name
from .logger import log_context
from .query import filter_query
from .registry import FilterRegistry

logger = logging.getLogger("argsfilter.variable")


@dataclass(frozen=True)
class VariableValue:
    """Evaluated variable. ``no_cacheable`` carries the block's ``volatile`` flag."""

    value: bytes
    no_cacheable: bool = False


def evaluate(registry: FilterRegistry, name: str, args: bytes) -> Optional[VariableValue]:
    """
    Filter the raw query string ``args`` with the definition declared as ``name``.

    Returns:
        VariableValue, or None when ``name`` is not registered. An empty
        ``value`` means every segment was filtered out, not "not found".
    """
    with log_context("request", name):
        definition = registry.lookup(name)
        if definition is None:
            logger.debug(f"args_filter: variable='{name}' is not registered")
            return None

        var_name = f"${normalize_variable_name(name)}"
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"args_filter: evaluating variable='{var_name}' volatile={definition.volatile} "
                f"args='{args.decode('utf-8', errors='replace')}'"
            )

        if definition.is_identity():
            logger.debug(
                f"args_filter: variable='{var_name}' using identity fast-path; output unchanged"
            )
            return VariableValue(value=args, no_cacheable=definition.volatile)

        filtered = filter_query(args, definition.should_keep)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"args_filter: variable='{var_name}' filtered result="
                f"'{filtered.decode('utf-8', errors='replace')}'"
            )
        return VariableValue(value=filtered, no_cacheable=definition.volatile)
