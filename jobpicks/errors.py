from __future__ import annotations


class ValidationError(ValueError):
    """A write was rejected before it touched any store."""


class NotFoundError(KeyError):
    """An update or delete named a record that does not exist in the scope."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "not found"


class ResolutionUnavailable(RuntimeError):
    """Inputs could not be read; the caller may retry.

    Distinct from an empty resolution, which is a normal outcome.
    """

    retryable = True
