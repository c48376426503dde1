# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Tests for the rule model

These tests verify:
- Last-matching-rule-wins evaluation in declaration order
- Literal and regex matcher semantics on raw bytes
- The identity predicate
- Freezing of definitions
- Matcher faults failing open
"""

import dataclasses
import logging

import pytest

from argsfilter.core.rules import (
    FilterDefinition,
    FilterDefinitionBuilder,
    InitialPolicy,
    LiteralMatcher,
    RegexMatcher,
    Rule,
    RuleAction,
    matcher_fault_count,
)


def make_definition(initial=InitialPolicy.NONE, rules=()):
    builder = FilterDefinitionBuilder()
    builder.set_initial(initial)
    for action, kind, value in rules:
        if kind == "literal":
            builder.add_literal(action, value)
        elif kind == "regex":
            builder.add_regex(action, value)
        else:
            builder.add_regex(action, value, case_insensitive=True)
    return builder.build()


class TestShouldKeep:
    """Per-key decision tests"""

    def test_initial_policy_applies_without_rules(self):
        assert make_definition(InitialPolicy.ALL).should_keep(b"anything")
        assert not make_definition(InitialPolicy.NONE).should_keep(b"anything")

    def test_default_policy_is_none(self):
        definition = FilterDefinitionBuilder().build()
        assert definition.initial is InitialPolicy.NONE
        assert not definition.initial_set
        assert not definition.should_keep(b"a")

    def test_later_include_overrides_earlier_exclude(self):
        definition = make_definition(
            InitialPolicy.NONE,
            [
                (RuleAction.EXCLUDE, "literal", b"k"),
                (RuleAction.INCLUDE, "literal", b"k"),
            ],
        )
        assert definition.should_keep(b"k")

    def test_later_exclude_overrides_earlier_include(self):
        definition = make_definition(
            InitialPolicy.NONE,
            [
                (RuleAction.INCLUDE, "literal", b"k"),
                (RuleAction.EXCLUDE, "literal", b"k"),
            ],
        )
        assert not definition.should_keep(b"k")

    def test_last_match_wins_not_most_specific(self):
        # The literal is more specific, but the regex comes later
        definition = make_definition(
            InitialPolicy.ALL,
            [
                (RuleAction.INCLUDE, "literal", b"ads.test"),
                (RuleAction.EXCLUDE, "regex", r"^ads\."),
            ],
        )
        assert not definition.should_keep(b"ads.test")
        assert definition.should_keep(b"other")

    def test_unmatched_key_keeps_initial_value(self):
        definition = make_definition(
            InitialPolicy.ALL, [(RuleAction.EXCLUDE, "literal", b"drop")]
        )
        assert definition.should_keep(b"keep")
        assert not definition.should_keep(b"drop")

    def test_debug_trace_names_matching_rule(self, caplog):
        caplog.set_level(logging.DEBUG, logger="argsfilter")
        definition = make_definition(
            InitialPolicy.NONE, [(RuleAction.INCLUDE, "literal", b"a")]
        )

        definition.should_keep(b"a")

        assert "rule[0] include literal matched; keep=True" in caplog.text
        assert "key='a' final keep=True" in caplog.text


class TestMatchers:
    """Literal and regex matcher tests"""

    def test_literal_is_byte_exact_and_case_sensitive(self):
        matcher = LiteralMatcher(b"Key")
        assert matcher.matches(b"Key")
        assert not matcher.matches(b"key")
        assert not matcher.matches(b"Key2")

    def test_literal_does_not_percent_decode(self):
        matcher = LiteralMatcher(b"test[]")
        assert not matcher.matches(b"test%5B%5D")
        assert matcher.matches(b"test[]")

    def test_regex_search_is_unanchored(self):
        matcher = RegexMatcher.compile("ads")
        assert matcher.matches(b"x.ads.y")
        assert not matcher.matches(b"x.ad.y")

    def test_regex_case_sensitivity_flag(self):
        sensitive = RegexMatcher.compile("^utm_")
        insensitive = RegexMatcher.compile("^utm_", case_insensitive=True)

        assert not sensitive.matches(b"UTM_source")
        assert insensitive.matches(b"UTM_source")
        assert insensitive.case_insensitive

    def test_regex_accepts_bytes_pattern(self):
        matcher = RegexMatcher.compile(rb"^test\[\]$")
        assert matcher.matches(b"test[]")
        assert not matcher.matches(b"test[]x")


class _BrokenPattern:
    """Stands in for a compiled pattern whose engine fails at execution time"""

    pattern = b"(broken)"

    def search(self, key):
        raise RuntimeError("match limit exceeded")


class TestMatcherFaults:
    """Execution faults are logged, counted and treated as no-match"""

    def test_fault_is_non_matching(self, caplog):
        matcher = RegexMatcher(pattern=_BrokenPattern())

        with caplog.at_level(logging.ERROR, logger="argsfilter"):
            assert not matcher.matches(b"key")

        assert "regex execution failed" in caplog.text
        assert matcher_fault_count() == 1

    def test_fault_keeps_previous_decision(self):
        definition = FilterDefinition(
            initial=InitialPolicy.NONE,
            rules=(
                Rule(RuleAction.INCLUDE, LiteralMatcher(b"a")),
                Rule(RuleAction.EXCLUDE, RegexMatcher(pattern=_BrokenPattern())),
            ),
        )

        assert definition.should_keep(b"a")
        assert matcher_fault_count() == 1


class TestIdentityAndFreezing:
    """Identity predicate and immutability tests"""

    def test_identity_requires_all_and_no_rules(self):
        assert make_definition(InitialPolicy.ALL).is_identity()
        assert not make_definition(InitialPolicy.NONE).is_identity()
        assert not make_definition(
            InitialPolicy.ALL, [(RuleAction.INCLUDE, "literal", b"a")]
        ).is_identity()

    def test_build_preserves_declaration_order(self):
        definition = make_definition(
            InitialPolicy.NONE,
            [
                (RuleAction.INCLUDE, "regex", "^a"),
                (RuleAction.EXCLUDE, "literal", b"ab"),
                (RuleAction.INCLUDE, "iregex", "^AB$"),
            ],
        )

        assert [rule.label for rule in definition.rules] == [
            "include regex",
            "exclude literal",
            "include regex",
        ]
        assert isinstance(definition.rules, tuple)

    def test_frozen_definition_rejects_mutation(self):
        definition = make_definition(InitialPolicy.ALL)

        with pytest.raises(dataclasses.FrozenInstanceError):
            definition.volatile = True

    def test_builder_changes_after_build_do_not_leak(self):
        builder = FilterDefinitionBuilder()
        builder.add_literal(RuleAction.INCLUDE, b"a")
        definition = builder.build()

        builder.add_literal(RuleAction.INCLUDE, b"b")
        builder.mark_volatile()

        assert len(definition.rules) == 1
        assert not definition.volatile

    def test_to_dict(self):
        definition = make_definition(
            InitialPolicy.ALL,
            [
                (RuleAction.EXCLUDE, "iregex", "^utm_"),
                (RuleAction.INCLUDE, "literal", b"utm_id"),
            ],
        )

        assert definition.to_dict() == {
            "initial": "all",
            "volatile": False,
            "identity": False,
            "rules": [
                {
                    "action": "exclude",
                    "matcher": "regex",
                    "value": "^utm_",
                    "case_insensitive": True,
                },
                {"action": "include", "matcher": "literal", "value": "utm_id"},
            ],
        }
