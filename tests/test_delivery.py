"""Delivery queue ordering, at-least-once redelivery, confirmation idempotence."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
from freezegun import freeze_time

from billrelay.delivery import ConfirmationHandler, DeliveryQueue
from billrelay.errors import NotFoundError, ValidationError

from test_stores import make_bill

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
WINDOW = 3600


@pytest.fixture()
def queue(bills) -> DeliveryQueue:
    return DeliveryQueue(bills, retention_seconds=WINDOW)


@pytest.fixture()
def confirmer(bills) -> ConfirmationHandler:
    return ConfirmationHandler(bills)


class TestPoll:
    def test_empty_queue(self, queue):
        assert queue.poll(T0) is None

    def test_oldest_first(self, bills, queue):
        bills.insert_if_absent(make_bill("pay_new", T0 + timedelta(seconds=10)))
        bills.insert_if_absent(make_bill("pay_old", T0))

        first = queue.poll(T0 + timedelta(minutes=1))

        assert first.payment_id == "pay_old"
        assert first.print_attempts == 1
        assert bills.get("pay_new").print_attempts == 0

    def test_ties_go_to_insertion_order(self, bills, queue):
        bills.insert_if_absent(make_bill("pay_first", T0))
        bills.insert_if_absent(make_bill("pay_second", T0))
        assert queue.poll(T0).payment_id == "pay_first"

    def test_redelivers_until_confirmed(self, bills, queue):
        bills.insert_if_absent(make_bill("pay_1", T0))

        first = queue.poll(T0 + timedelta(seconds=1))
        second = queue.poll(T0 + timedelta(seconds=2))

        assert first is second
        assert second.print_attempts == 2
        assert second.last_print_attempt == T0 + timedelta(seconds=2)
        assert second.printed is False

    def test_skips_printed(self, bills, queue, confirmer):
        bills.insert_if_absent(make_bill("pay_1", T0))
        bills.insert_if_absent(make_bill("pay_2", T0 + timedelta(seconds=1)))
        confirmer.confirm("pay_1", T0)

        assert queue.poll(T0 + timedelta(seconds=5)).payment_id == "pay_2"

    def test_evicts_expired_bills(self, bills, queue):
        bills.insert_if_absent(make_bill("pay_1", T0))

        assert queue.poll(T0 + timedelta(seconds=WINDOW - 1)).payment_id == "pay_1"
        assert queue.poll(T0 + timedelta(seconds=WINDOW)) is None
        assert "pay_1" not in bills

    def test_eviction_applies_to_printed_bills(self, bills, queue, confirmer):
        bills.insert_if_absent(make_bill("pay_1", T0))
        confirmer.confirm("pay_1", T0)
        queue.poll(T0 + timedelta(hours=2))
        assert len(bills) == 0

    def test_concurrent_polls_count_every_attempt(self, bills, queue):
        polls = 50
        bills.insert_if_absent(make_bill("pay_old", T0))
        bills.insert_if_absent(make_bill("pay_new", T0 + timedelta(seconds=1)))
        barrier = threading.Barrier(polls)

        def poll():
            barrier.wait()
            return queue.poll(T0 + timedelta(minutes=1)).payment_id

        with ThreadPoolExecutor(max_workers=polls) as pool:
            returned = list(pool.map(lambda _: poll(), range(polls)))

        assert returned == ["pay_old"] * polls
        assert bills.get("pay_old").print_attempts == polls
        assert bills.get("pay_new").print_attempts == 0


class TestConfirm:
    def test_marks_printed(self, bills, confirmer):
        bills.insert_if_absent(make_bill("pay_1", T0))
        bills.insert_if_absent(make_bill("pay_2", T0))

        result = confirmer.confirm("pay_1", T0 + timedelta(minutes=1))

        assert result.remaining == 1
        assert result.already_printed is False
        bill = bills.get("pay_1")
        assert bill.printed is True
        assert bill.print_confirmed_at == T0 + timedelta(minutes=1)

    def test_second_confirm_is_noop(self, bills, confirmer):
        bills.insert_if_absent(make_bill("pay_1", T0))
        confirmer.confirm("pay_1", T0 + timedelta(minutes=1))

        again = confirmer.confirm("pay_1", T0 + timedelta(minutes=9))

        assert again.already_printed is True
        assert again.remaining == 0
        assert bills.get("pay_1").print_confirmed_at == T0 + timedelta(minutes=1)

    @freeze_time("2026-01-01 12:05:00")
    def test_defaults_to_current_time(self, bills, confirmer):
        bills.insert_if_absent(make_bill("pay_1", T0))
        confirmer.confirm("pay_1")
        assert bills.get("pay_1").print_confirmed_at == T0 + timedelta(minutes=5)

    @pytest.mark.parametrize("payment_id", [None, ""])
    def test_missing_id(self, confirmer, payment_id):
        with pytest.raises(ValidationError):
            confirmer.confirm(payment_id)

    def test_unknown_id(self, confirmer):
        with pytest.raises(NotFoundError):
            confirmer.confirm("pay_missing")

    def test_evicted_bill_is_not_found(self, bills, queue, confirmer):
        bills.insert_if_absent(make_bill("pay_1", T0))
        queue.poll(T0 + timedelta(hours=2))
        with pytest.raises(NotFoundError):
            confirmer.confirm("pay_1")

    def test_concurrent_confirms_set_printed_once(self, bills, confirmer):
        threads = 20
        bills.insert_if_absent(make_bill("pay_1", T0))
        barrier = threading.Barrier(threads)

        def confirm(i):
            barrier.wait()
            return confirmer.confirm("pay_1", T0 + timedelta(seconds=i)).already_printed

        with ThreadPoolExecutor(max_workers=threads) as pool:
            flags = list(pool.map(confirm, range(threads)))

        assert flags.count(False) == 1
        assert bills.get("pay_1").printed is True
