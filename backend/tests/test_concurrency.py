# Overview: Pytest coverage for the retrying unit-of-work helper.

import pytest
from sqlalchemy.orm.exc import StaleDataError

from repairdesk.services import inventory_service
from repairdesk.services.concurrency import run_with_retry


def test_stale_row_is_retried(db_session):
    calls = []

    def _op():
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("row changed underneath us")
        return "done"

    assert run_with_retry(_op, backoff_base=0) == "done"
    assert len(calls) == 2


def test_gives_up_after_attempts(db_session):
    def _op():
        raise StaleDataError("always stale")

    with pytest.raises(StaleDataError):
        run_with_retry(_op, attempts=2, backoff_base=0)


def test_business_error_rolls_back_pending_work(db_session, store_a, make_item):
    item = make_item(store_a, name="Screen", quantity=3)

    def _op():
        fresh = inventory_service.get_item(store_a.id, item.id)
        fresh.name = "Should not stick"
        raise ValueError("stock check failed")

    with pytest.raises(ValueError):
        run_with_retry(_op)

    assert inventory_service.get_item(store_a.id, item.id).name == "Screen"
