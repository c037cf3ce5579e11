"""
Custom exceptions for the wikihist.io module.

Boundaries
- wikihist.core.errors holds record validation errors (SchemaError, GrammarError)
  and fatal engine invariants (InvariantViolation and subclasses).
- wikihist.io raises Io* errors for configuration, filesystem and writer concerns:
  - IoConfigError: invalid or unsupported configuration.
  - IoSchemaError: a frame failed validation against a table descriptor.
  - IoWriteError: the staged write or the final publish failed.
  - IoReadError: an input file is missing or unreadable, or written by an
    incompatible schema version.
"""

from __future__ import annotations


class IoError(Exception):
    """Base class for IO-layer failures, distinct from wikihist.core errors."""


class IoConfigError(IoError):
    """
    Raised when configuration is invalid or unsupported.

    Examples:
        - num_partitions < 1
        - explicit config file that does not exist
    """


class IoSchemaError(IoError):
    """
    Raised when a DataFrame fails schema validation against a table descriptor.

    Notes:
        Scalar columns (i64, str, bool) are cast before validation; list columns
        must already be lists of strings.
    """


class IoWriteError(IoError):
    """
    Raised when a write does not complete.

    Notes:
        Parts are written tmp -> fsync -> os.replace inside a staging directory that
        is published only when the whole run succeeded. On failure the staging
        directory is removed and nothing is published.
    """


class IoReadError(IoError):
    """Raised when an input cannot be read or carries an incompatible schema version."""
