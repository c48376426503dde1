# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
args_filter Rule Model

Key concepts:
- Matcher: a predicate over a raw query-string key (literal bytes or regex)
- Rule: a matcher plus an effect (include/exclude)
- FilterDefinition: the initial policy plus rules in declaration order

Evaluation keeps the effect of the LAST matching rule, so the order rules
were declared in is part of their meaning. Definitions are assembled by a
FilterDefinitionBuilder while configuration is parsed and frozen afterwards;
a frozen definition (and the compiled patterns it holds) is shared by every
request without locking.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger("argsfilter.rules")


# =============================================================================
# Core Types
# =============================================================================

class InitialPolicy(Enum):
    """Keep/drop default for keys no rule matches."""
    NONE = "none"
    ALL = "all"


class RuleAction(Enum):
    """Rule effect."""
    INCLUDE = "include"
    EXCLUDE = "exclude"


# =============================================================================
# Matcher Faults
# =============================================================================

class FaultCounter:
    """Thread-safe count of matcher execution faults."""

    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._count += 1
            return self._count

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def reset(self) -> None:
        with self._lock:
            self._count = 0


_matcher_faults = FaultCounter()


def matcher_fault_count() -> int:
    """Number of regex executions that failed for a reason other than no-match."""
    return _matcher_faults.count


def reset_matcher_faults() -> None:
    _matcher_faults.reset()


# =============================================================================
# Matchers
# =============================================================================

@dataclass(frozen=True)
class LiteralMatcher:
    """Exact, case-sensitive byte comparison. No percent-decoding."""

    key: bytes

    kind = "literal"

    def matches(self, key: bytes) -> bool:
        return self.key == key

    def describe(self) -> str:
        return self.key.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class RegexMatcher:
    """Compiled pattern searched (unanchored) against the raw key bytes."""

    pattern: "re.Pattern[bytes]"
    case_insensitive: bool = False

    kind = "regex"

    @classmethod
    def compile(cls, source: Union[str, bytes], case_insensitive: bool = False) -> RegexMatcher:
        """
        Compile a pattern once for the lifetime of the definition.

        Raises:
            re.error: pattern does not compile
        """
        if isinstance(source, str):
            source = source.encode("utf-8")
        flags = re.IGNORECASE if case_insensitive else 0
        return cls(pattern=re.compile(source, flags), case_insensitive=case_insensitive)

    def matches(self, key: bytes) -> bool:
        try:
            return self.pattern.search(key) is not None
        except Exception as e:
            # Fault counts as "did not match"
            faults = _matcher_faults.increment()
            logger.error(
                f"regex execution failed for pattern '{self.describe()}': {e} "
                f"(faults so far: {faults})"
            )
            return False

    def describe(self) -> str:
        return self.pattern.pattern.decode("utf-8", errors="replace")


RuleMatcher = Union[LiteralMatcher, RegexMatcher]


# =============================================================================
# Rules and Definitions
# =============================================================================

@dataclass(frozen=True)
class Rule:
    """One include/exclude rule."""

    action: RuleAction
    matcher: RuleMatcher

    def matches(self, key: bytes) -> bool:
        return self.matcher.matches(key)

    @property
    def label(self) -> str:
        return f"{self.action.value} {self.matcher.kind}"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "action": self.action.value,
            "matcher": self.matcher.kind,
            "value": self.matcher.describe(),
        }
        if isinstance(self.matcher, RegexMatcher):
            result["case_insensitive"] = self.matcher.case_insensitive
        return result


@dataclass(frozen=True)
class FilterDefinition:
    """Frozen configuration of one args_filter variable."""

    initial: InitialPolicy = InitialPolicy.NONE
    initial_set: bool = False
    # If True, callers must not cache the evaluated value
    volatile: bool = False
    rules: Tuple[Rule, ...] = ()

    def should_keep(self, key: bytes) -> bool:
        """Return True when ``key`` should be kept. Last matching rule wins."""
        keep = self.initial is InitialPolicy.ALL
        trace = logger.isEnabledFor(logging.DEBUG)

        if not self.rules:
            if trace:
                logger.debug(f"args_filter: key='{_text(key)}' no rules configured; keep={keep}")
            return keep

        if trace:
            logger.debug(
                f"args_filter: key='{_text(key)}' evaluating {len(self.rules)} rules; "
                f"initial_keep={keep}"
            )

        for idx, rule in enumerate(self.rules):
            if not rule.matches(key):
                if trace:
                    logger.debug(
                        f"args_filter: key='{_text(key)}' rule[{idx}] {rule.label} did not match"
                    )
                continue

            keep = rule.action is RuleAction.INCLUDE
            if trace:
                logger.debug(
                    f"args_filter: key='{_text(key)}' rule[{idx}] {rule.label} matched; keep={keep}"
                )

        if trace:
            logger.debug(f"args_filter: key='{_text(key)}' final keep={keep}")
        return keep

    def is_identity(self) -> bool:
        """True when the output is always identical to the input query string."""
        return self.initial is InitialPolicy.ALL and not self.rules

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initial": self.initial.value,
            "volatile": self.volatile,
            "identity": self.is_identity(),
            "rules": [rule.to_dict() for rule in self.rules],
        }


@dataclass
class FilterDefinitionBuilder:
    """Mutable definition used while a block's directives are processed."""

    initial: InitialPolicy = InitialPolicy.NONE
    initial_set: bool = False
    volatile: bool = False
    rules: List[Rule] = field(default_factory=list)

    def set_initial(self, policy: InitialPolicy) -> None:
        self.initial = policy
        self.initial_set = True

    def mark_volatile(self) -> None:
        self.volatile = True

    def add_literal(self, action: RuleAction, key: bytes) -> Rule:
        return self._push(Rule(action=action, matcher=LiteralMatcher(key)))

    def add_regex(
        self,
        action: RuleAction,
        pattern: Union[str, bytes],
        case_insensitive: bool = False,
    ) -> Rule:
        return self._push(
            Rule(action=action, matcher=RegexMatcher.compile(pattern, case_insensitive))
        )

    def _push(self, rule: Rule) -> Rule:
        self.rules.append(rule)
        return rule

    def build(self) -> FilterDefinition:
        return FilterDefinition(
            initial=self.initial,
            initial_set=self.initial_set,
            volatile=self.volatile,
            rules=tuple(self.rules),
        )


def _text(key: Optional[bytes]) -> str:
    return (key or b"").decode("utf-8", errors="replace")
