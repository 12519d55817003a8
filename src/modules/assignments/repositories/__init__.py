"""Assignment proposal repositories package."""

from modules.assignments.repositories.django_repository import (
    ProposalDjangoRepository,
)
from modules.assignments.repositories.interfaces import IProposalRepository

__all__ = ["IProposalRepository", "ProposalDjangoRepository"]
