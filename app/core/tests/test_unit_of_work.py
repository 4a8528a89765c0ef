"""
Tests for UnitOfWork.
"""

import pytest
from django.db import transaction

from core.unit_of_work import UnitOfWork
from orders.models import Order


@pytest.mark.django_db
class TestUnitOfWork:
    def test_active_only_inside_block(self):
        uow = UnitOfWork()
        assert uow.is_active is False

        with uow:
            assert uow.is_active is True
            uow.ensure_active()

        assert uow.is_active is False

    def test_ensure_active_outside_block_raises(self):
        with pytest.raises(RuntimeError, match="outside an active UnitOfWork"):
            UnitOfWork().ensure_active()

    def test_cannot_enter_twice(self):
        uow = UnitOfWork()
        with uow:
            with pytest.raises(RuntimeError, match="already active"):
                uow.__enter__()

    def test_rolls_back_on_exception(self):
        with pytest.raises(ValueError):
            with UnitOfWork():
                Order.objects.create(customer_id="7d7c5f1e-6d0e-4b52-9a43-0f3f0b5c2f11", total_amount=100)
                raise ValueError("boom")

        assert Order.objects.count() == 0

    def test_savepoint_keeps_outer_writes(self):
        with UnitOfWork() as uow:
            Order.objects.create(customer_id="7d7c5f1e-6d0e-4b52-9a43-0f3f0b5c2f11", total_amount=100)
            with pytest.raises(ValueError):
                with uow.savepoint():
                    Order.objects.create(
                        customer_id="7d7c5f1e-6d0e-4b52-9a43-0f3f0b5c2f11", total_amount=200
                    )
                    raise ValueError("inner")

        assert list(Order.objects.values_list("total_amount", flat=True)) == [100]

    def test_uses_given_alias(self):
        uow = UnitOfWork(using="default")

        with uow:
            assert transaction.get_connection("default").in_atomic_block
        assert uow.using == "default"
