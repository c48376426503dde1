# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
args_filter Registry

Two phases:

    configuration            serving
    ┌──────────────────────┐  freeze()  ┌──────────────────────┐
    │ FilterRegistryBuilder│ ─────────► │ FilterRegistry       │
    │  declare / register  │            │  lookup (read-only)  │
    └──────────────────────┘            └──────────────────────┘

The builder is only touched by the (single-threaded) configuration load.
The frozen registry has no mutation methods and is read by any number of
concurrent requests without locking.
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .compiler import Directive, compile_block, normalize_variable_name, parse_variable_name
from .exceptions import DuplicateFilterError, RegistryFrozenError
from .logger import log_context
from .rules import FilterDefinition

logger = logging.getLogger("argsfilter.registry")


class FilterRegistryBuilder:
    """Collects definitions while configuration is parsed."""

    def __init__(self):
        self._filters: Dict[str, FilterDefinition] = {}
        self._frozen = False

    def declare(self, raw_name: str, directives: Iterable[Directive]) -> FilterDefinition:
        """
        Validate, compile and register one ``args_filter`` block.

        The duplicate check runs before any directive is looked at.

        Raises:
            DirectiveError: invalid name or directive
            DuplicateFilterError: name already declared
        """
        self._ensure_open()

        with log_context("config", raw_name or "-"):
            name = parse_variable_name(raw_name)
            self._ensure_unique(name)

        _, definition = compile_block(raw_name, directives)
        self.register(name, definition)
        return definition

    def register(self, name: str, definition: FilterDefinition) -> None:
        """Register an already-compiled definition under a normalized name."""
        self._ensure_open()
        key = normalize_variable_name(name)
        self._ensure_unique(key)
        self._filters[key] = definition
        logger.debug(f"args_filter: registered variable '${key}'")

    def __contains__(self, name: str) -> bool:
        return normalize_variable_name(name) in self._filters

    def __len__(self) -> int:
        return len(self._filters)

    def freeze(self) -> "FilterRegistry":
        """End the configuration phase. The builder accepts nothing afterwards."""
        self._frozen = True
        registry = FilterRegistry(self._filters)
        logger.info(f"args_filter: {len(registry)} filter(s) ready")
        return registry

    def _ensure_open(self) -> None:
        if self._frozen:
            raise RegistryFrozenError("args_filter registry is frozen")

    def _ensure_unique(self, key: str) -> None:
        if key in self._filters:
            message = f"duplicate args_filter declaration for ${key}"
            logger.error(message)
            raise DuplicateFilterError(message, name=key)


class FilterRegistry:
    """Read-only mapping of variable name to FilterDefinition."""

    def __init__(self, filters: Optional[Mapping[str, FilterDefinition]] = None):
        self._filters: Mapping[str, FilterDefinition] = MappingProxyType(dict(filters or {}))

    def lookup(self, name: str) -> Optional[FilterDefinition]:
        """Definition for ``name`` (with or without ``$``), or None if undeclared."""
        return self._filters.get(normalize_variable_name(name))

    def names(self) -> List[str]:
        return sorted(self._filters)

    def items(self) -> Iterator[Tuple[str, FilterDefinition]]:
        for name in self.names():
            yield name, self._filters[name]

    def __contains__(self, name: str) -> bool:
        return normalize_variable_name(name) in self._filters

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._filters)

    def __repr__(self) -> str:
        return f"FilterRegistry({self.names()!r})"
