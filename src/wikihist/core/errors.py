"""
Core exception types raised by grammar validation, schema checks and the history engine.

Provides typed exceptions for core-domain failures:
- GrammarError for naming/normalization violations (unknown event types, bad timestamps).
- SchemaError for schema-level constraints and cross-field combination rules.
- VersionMismatch for schema version incompatibilities against SCHEMA_V.
- InvariantViolation for structural failures of a reconstruction run
  (non-monotonic merge input, identity cycles).

Notes:
    - GrammarError and SchemaError are per-record problems. The engine turns them
      into parsing diagnostics and keeps going.
    - InvariantViolation and its subclasses mean upstream sorting/partitioning is
      broken or the identity graph is corrupted. They abort the whole run.

Examples:
    >>> from wikihist.core.errors import IdentityCycleError, InvariantViolation
    >>> issubclass(IdentityCycleError, InvariantViolation)
    True
"""

from __future__ import annotations

__all__ = [
    "SchemaError",
    "VersionMismatch",
    "GrammarError",
    "InvariantViolation",
    "MergeOrderError",
    "IdentityCycleError",
]


class SchemaError(ValueError):
    """Schema-level validation failure (shape, constraints, cross-field rules)."""


class VersionMismatch(RuntimeError):
    """Incompatible or unexpected schema version encountered."""


class GrammarError(ValueError):
    """Grammar/normalization failure (e.g., unknown event type or malformed timestamp)."""


class InvariantViolation(RuntimeError):
    """A structural invariant of the reconstruction was broken; the run must abort."""


class MergeOrderError(InvariantViolation):
    """Sort-merge input was not sorted, or the key comparator is incoherent."""


class IdentityCycleError(InvariantViolation):
    """
    A chain of identity-changing events loops back onto itself.

    Attributes:
        path (tuple): Keys visited before the cycle closed, in walk order.
    """

    def __init__(self, message: str, path: tuple[object, ...] = ()) -> None:
        super().__init__(message)
        self.path = path
