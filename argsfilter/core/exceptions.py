# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
args_filter Exception Hierarchy

Exception Hierarchy:
    ArgsFilterError (base)
    ├── ConfigError
    │   ├── ConfigFileError
    │   ├── DirectiveError
    │   │   └── RegexCompileError
    │   └── DuplicateFilterError
    └── RegistryFrozenError

Every ConfigError aborts the whole configuration load. The message of a
DirectiveError is the exact fragment tooling greps for, so it is never
decorated with details.
"""

from typing import Any, Dict, List, Optional

# ============================================================================
# Base Exceptions
# ============================================================================


class ArgsFilterError(Exception):
    """Base exception for all args_filter errors"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        result = {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }

        if self.cause:
            result["cause"] = {
                "type": self.cause.__class__.__name__,
                "message": str(self.cause),
            }

        return result

    def __str__(self):
        base = self.message
        if self.details:
            base += f" | Details: {self.details}"
        if self.cause:
            base += f" | Caused by: {self.cause}"
        return base


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigError(ArgsFilterError):
    """Configuration-related errors"""


class ConfigFileError(ConfigError):
    """Rules file could not be read or has the wrong shape"""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["path"] = self.path
        return result


class DirectiveError(ConfigError):
    """A directive inside (or naming) an args_filter block is invalid"""

    def __init__(
        self,
        message: str,
        directive: Optional[str] = None,
        block: Optional[str] = None,
        args: Optional[List[str]] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.directive = directive
        self.block = block
        self.arguments = list(args or [])

    def __str__(self):
        # Fragment must stay verbatim
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update(
            {
                "directive": self.directive,
                "block": self.block,
                "args": self.arguments,
            }
        )
        return result


class RegexCompileError(DirectiveError):
    """Regex pattern in include/exclude failed to compile"""

    def __init__(self, message: str, pattern: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.pattern = pattern

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["pattern"] = self.pattern
        return result


class DuplicateFilterError(ConfigError):
    """A variable name was declared by two args_filter blocks"""

    def __init__(self, message: str, name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.name = name

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["name"] = self.name
        return result


# ============================================================================
# Lifecycle Errors
# ============================================================================


class RegistryFrozenError(ArgsFilterError):
    """Registration attempted after the registry entered the serving phase"""
