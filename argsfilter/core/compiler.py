# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
args_filter Block Compiler

Validates one ``args_filter`` block and compiles it into a FilterDefinition:

    args_filter $filtered_args {
        initial all;
        exclude ~ "^ads\\.";
        include ads.test;
    }

arrives here as the raw name ``"$filtered_args"`` and the directives
``[("initial", ["all"]), ("exclude", ["~", "^ads\\."]), ("include", ["ads.test"])]``.

Supported directives: ``initial``, ``include``, ``exclude`` and ``volatile``.
The first invalid directive raises a DirectiveError whose message is one of
the fixed fragments below; nothing of the block survives.
"""

import logging
import re
import string
from typing import Callable, Dict, Iterable, List, NoReturn, Sequence, Tuple, Union

from .exceptions import DirectiveError, RegexCompileError
from .logger import log_context
from .rules import FilterDefinition, FilterDefinitionBuilder, InitialPolicy, RuleAction

logger = logging.getLogger("argsfilter.compiler")

VARIABLE_SIGIL = "$"
_NAME_CHARS = frozenset(string.ascii_letters + string.digits + "_")

Arg = Union[str, bytes]
Directive = Tuple[str, Sequence[Arg]]

# =============================================================================
# Error Fragments
# =============================================================================

ERR_NAME_SIGIL = "args_filter variable must start with '$'"
ERR_NAME_EMPTY = "args_filter variable name cannot be empty"
ERR_NAME_CHARS = "args_filter variable name contains invalid characters"
ERR_INITIAL_DUPLICATE = '"initial" directive is duplicate'
ERR_INITIAL_VALUE = '"initial" must be "all" or "none"'
ERR_UNKNOWN_DIRECTIVE = "unknown directive inside args_filter block"
ERR_REGEX_COMPILE = "failed to compile regex: {diagnostic}"


def arity_message(directive: str) -> str:
    return f'invalid number of arguments in "{directive}" directive'


def operator_message(directive: str) -> str:
    return f'"{directive}" expects literal, "~", or "~*"'


# =============================================================================
# Variable Names
# =============================================================================

def parse_variable_name(raw: str) -> str:
    """
    Validate ``$name`` and return it lower-cased without the sigil.

    Raises:
        DirectiveError: missing sigil, empty name or characters outside [A-Za-z0-9_]
    """
    if not raw or not raw.startswith(VARIABLE_SIGIL):
        _fail(ERR_NAME_SIGIL, block=raw)

    name = raw[len(VARIABLE_SIGIL):]
    if not name:
        _fail(ERR_NAME_EMPTY, block=raw)

    if not all(ch in _NAME_CHARS for ch in name):
        _fail(ERR_NAME_CHARS, block=raw)

    return name.lower()


def normalize_variable_name(name: str) -> str:
    """Lookup key for a name given with or without the sigil."""
    if name.startswith(VARIABLE_SIGIL):
        name = name[len(VARIABLE_SIGIL):]
    return name.lower()


# =============================================================================
# Directive Handlers
# =============================================================================

def _initial(block: FilterDefinitionBuilder, args: List[Arg]) -> None:
    if len(args) != 1:
        _fail(arity_message("initial"), directive="initial", args=args)

    if block.initial_set:
        _fail(ERR_INITIAL_DUPLICATE, directive="initial", args=args)

    value = _as_text(args[0])
    if value == InitialPolicy.ALL.value:
        block.set_initial(InitialPolicy.ALL)
    elif value == InitialPolicy.NONE.value:
        block.set_initial(InitialPolicy.NONE)
    else:
        _fail(ERR_INITIAL_VALUE, directive="initial", args=args)


def _rule(action: RuleAction) -> Callable[[FilterDefinitionBuilder, List[Arg]], None]:
    directive = action.value

    def handler(block: FilterDefinitionBuilder, args: List[Arg]) -> None:
        if len(args) not in (1, 2):
            _fail(arity_message(directive), directive=directive, args=args)

        if len(args) == 1:
            block.add_literal(action, _as_bytes(args[0]))
            return

        mode = _as_text(args[0])
        if mode == "~":
            case_insensitive = False
        elif mode == "~*":
            case_insensitive = True
        else:
            _fail(operator_message(directive), directive=directive, args=args)

        pattern = args[1]
        try:
            block.add_regex(action, pattern, case_insensitive)
        except re.error as e:
            message = ERR_REGEX_COMPILE.format(diagnostic=e)
            logger.error(message)
            raise RegexCompileError(
                message,
                pattern=_as_text(pattern),
                directive=directive,
                args=[_as_text(a) for a in args],
                cause=e,
            ) from e

    return handler


def _volatile(block: FilterDefinitionBuilder, args: List[Arg]) -> None:
    if args:
        _fail(arity_message("volatile"), directive="volatile", args=args)

    block.mark_volatile()


NESTED_DIRECTIVES: Dict[str, Callable[[FilterDefinitionBuilder, List[Arg]], None]] = {
    "initial": _initial,
    "exclude": _rule(RuleAction.EXCLUDE),
    "include": _rule(RuleAction.INCLUDE),
    "volatile": _volatile,
}


# =============================================================================
# Block Compilation
# =============================================================================

def compile_directives(
    directives: Iterable[Directive], block: str = "-"
) -> FilterDefinition:
    """
    Apply directives in source order and freeze the result.

    Args:
        directives: (name, args) pairs; args exclude the directive name
        block: raw block name, used for error context only

    Raises:
        DirectiveError: first invalid directive
    """
    builder = FilterDefinitionBuilder()

    for name, args in directives:
        handler = NESTED_DIRECTIVES.get(name)
        if handler is None:
            _fail(ERR_UNKNOWN_DIRECTIVE, directive=name, block=block, args=list(args))

        try:
            handler(builder, list(args))
        except DirectiveError as e:
            e.block = block
            raise

    definition = builder.build()
    logger.debug(
        f"args_filter: compiled block '{block}' initial={definition.initial.value} "
        f"volatile={definition.volatile} rules={len(definition.rules)}"
    )
    return definition


def compile_block(raw_name: str, directives: Iterable[Directive]) -> Tuple[str, FilterDefinition]:
    """
    Validate a block name and its directives.

    Returns:
        (normalized name, frozen definition)
    """
    with log_context("config", raw_name or "-"):
        name = parse_variable_name(raw_name)
        return name, compile_directives(directives, block=raw_name)


# =============================================================================
# Helpers
# =============================================================================

def _fail(message: str, **context) -> NoReturn:
    logger.error(message)
    if "args" in context:
        context["args"] = [_as_text(a) for a in context["args"]]
    raise DirectiveError(message, **context)


def _as_text(value: Arg) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _as_bytes(value: Arg) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")
