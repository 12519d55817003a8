"""Error taxonomy shared by every bounded context.

Each module's ``exceptions.py`` subclasses one of these bases so callers
can react by category:

- ``ValidationError``: malformed input; surfaced, never retried.
- ``IllegalTransition``: rejected operation; refresh state and retry with
  corrected intent.
- ``AlreadyAssigned``: lost a claim race; retry against a fresh list.
- ``UpstreamUnavailable``: gateway or geo backend unreachable; the calling
  collaborator retries with backoff.
"""

from __future__ import annotations


class DomainError(Exception):
    """Root of all errors raised by the coordination core."""


class ValidationError(DomainError):
    """Input is malformed (bad coordinates, amount mismatch, ...)."""


class NotFound(DomainError):
    """The referenced entity does not exist."""


class Conflict(DomainError):
    """The entity already exists."""


class IllegalTransition(DomainError):
    """A state transition was rejected."""


class AlreadyAssigned(DomainError):
    """Another rider won the claim on this order."""


class UpstreamUnavailable(DomainError):
    """An external dependency (payment gateway, geo backend) is unreachable."""
