"""Rider directory exceptions."""

from __future__ import annotations

from shared.domain.exceptions import (
    Conflict,
    IllegalTransition,
    NotFound,
    ValidationError,
)


class RiderNotFound(NotFound):
    """The requested rider does not exist."""


class RiderAlreadyExists(Conflict):
    """A rider profile is already linked to this user account."""


class InvalidCoordinates(ValidationError):
    """Longitude outside [-180, 180] or latitude outside [-90, 90]."""


class IllegalRiderTransition(IllegalTransition):
    """The requested status contradicts the rider's assigned orders."""


class RiderUnavailable(IllegalTransition):
    """The rider is offline or already at capacity and cannot take an order."""
