"""Print client side of the pipeline: poll for the oldest bill, confirm it printed.

Delivery is at-least-once. A poll never sets ``printed``; a bill keeps
coming back until the client confirms it or it ages out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .errors import NotFoundError, ValidationError
from .helpers import utcnow
from .models import Bill
from .stores import BillStore

logger = logging.getLogger(__name__)


def _unprinted(bill: Bill) -> bool:
    return not bill.printed


class DeliveryQueue:
    def __init__(self, bills: BillStore, retention_seconds: int = 3600) -> None:
        self.bills = bills
        self.retention = timedelta(seconds=retention_seconds)

    def poll(self, now: Optional[datetime] = None) -> Optional[Bill]:
        """Hand out the oldest unprinted bill and record the attempt, or None."""
        now = now or utcnow()
        with self.bills.lock:
            self.bills.evict_older_than(now - self.retention)
            pending = self.bills.iterate(_unprinted)
            if not pending:
                logger.debug("No unprinted bills available")
                return None
            # min() keeps the first of equal keys, so ties go to insertion order.
            bill = min(pending, key=lambda b: b.created_at)
            bill.print_attempts += 1
            bill.last_print_attempt = now
        logger.info("Sending bill %s to print client (attempt %d)", bill.payment_id, bill.print_attempts)
        return bill


@dataclass
class ConfirmResult:
    payment_id: str
    remaining: int
    already_printed: bool


class ConfirmationHandler:
    def __init__(self, bills: BillStore) -> None:
        self.bills = bills

    def confirm(self, payment_id: Optional[str], now: Optional[datetime] = None) -> ConfirmResult:
        if not payment_id:
            raise ValidationError("paymentId required")
        with self.bills.lock:
            bill = self.bills.get(payment_id)
            if bill is None:
                raise NotFoundError(f"bill {payment_id} not found")
            already = bill.printed
            if not already:
                bill.printed = True
                bill.print_confirmed_at = now or utcnow()
            remaining = self.bills.count(_unprinted)
        if already:
            logger.info("Bill %s already confirmed", payment_id)
        else:
            logger.info("Bill %s confirmed printed, %d remaining", payment_id, remaining)
        return ConfirmResult(payment_id, remaining, already)
