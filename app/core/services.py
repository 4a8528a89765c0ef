"""
Base service layer patterns for business logic encapsulation.

Services encapsulate business logic separate from views and models.
Views handle HTTP concerns, models handle data, services handle logic.
Expected failures are raised as core.exceptions subclasses; views
translate them to responses.

Usage:
    from core.services import BaseService
    from core.unit_of_work import UnitOfWork

    class PaymentOrchestrator(BaseService):
        def capture(self, payment_id):
            with UnitOfWork() as uow:
                payment = self.store.lock_payment(uow, payment_id)
                ...
            self.get_logger().info("Captured", extra={"payment_id": str(payment_id)})
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from core.exceptions import ValidationError
from core.unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from collections.abc import Generator


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management through UnitOfWork
    - Required-argument validation
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for easy filtering
        in logs (e.g. ``payments.services.payment_orchestrator.PaymentOrchestrator``).
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls, using: str | None = None) -> Generator[UnitOfWork, None, None]:
        """
        Execute operations in a database transaction.

        Yields the UnitOfWork so callers can hand it to collaborators that
        must write inside the same transaction.

        Example:
            with cls.atomic() as uow:
                payment = store.lock_payment(uow, payment_id)
                outbox.add_event(..., uow=uow)
        """
        with UnitOfWork(using=using) as uow:
            yield uow

    @classmethod
    def validate_required(cls, **kwargs) -> None:
        """
        Validate that required arguments are provided.

        Raises:
            ValidationError: If any argument is None or a blank string.
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            raise ValidationError(
                "Required fields missing",
                error_code="REQUIRED_FIELDS_MISSING",
                details=errors,
            )
