"""Django ORM building blocks shared by the concrete repositories."""

from __future__ import annotations

from typing import Any, ClassVar, Mapping, Type
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


class CompareAndSetMixin:
    """Implements ``IRepository.compare_and_set`` as one conditional UPDATE.

    ``UPDATE <table> SET ... WHERE id = ? AND <expected>`` is evaluated and
    committed by the database in a single round trip, so two concurrent
    callers can never both observe the old values and both win.
    """

    model: ClassVar[Type[models.Model]]

    def compare_and_set(
        self,
        id: UUID,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> bool:
        try:
            queryset = self.model.objects.filter(id=id, **expected)
        except (ValueError, ValidationError):
            return False
        return queryset.update(updated_at=timezone.now(), **changes) == 1
