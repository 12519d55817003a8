"""Rider repositories package."""

from modules.riders.repositories.django_repository import RiderDjangoRepository
from modules.riders.repositories.interfaces import IRiderRepository

__all__ = ["IRiderRepository", "RiderDjangoRepository"]
