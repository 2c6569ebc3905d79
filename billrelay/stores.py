"""In-process stores for bills and pending tokens.

Both stores own their mapping outright; callers only see the operations
below. Compound read-modify-write sequences elsewhere must hold ``lock``.
Nothing here survives a restart.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from .errors import ValidationError
from .models import Bill, PendingToken, TokenStatus

logger = logging.getLogger(__name__)


class BillStore:
    """payment_id -> Bill, in insertion order."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._bills: Dict[str, Bill] = {}

    def __len__(self) -> int:
        return len(self._bills)

    def __contains__(self, payment_id: str) -> bool:
        return payment_id in self._bills

    def insert_if_absent(self, bill: Bill) -> bool:
        with self.lock:
            if bill.payment_id in self._bills:
                return False
            self._bills[bill.payment_id] = bill
            return True

    def get(self, payment_id: str) -> Optional[Bill]:
        return self._bills.get(payment_id)

    def delete(self, payment_id: str) -> bool:
        with self.lock:
            return self._bills.pop(payment_id, None) is not None

    def iterate(self, predicate: Optional[Callable[[Bill], bool]] = None) -> List[Bill]:
        with self.lock:
            return [b for b in self._bills.values() if predicate is None or predicate(b)]

    def count(self, predicate: Optional[Callable[[Bill], bool]] = None) -> int:
        return len(self.iterate(predicate))

    def evict_older_than(self, cutoff: datetime) -> List[str]:
        """Drop every bill created at or before ``cutoff``, printed or not."""
        with self.lock:
            stale = [pid for pid, b in self._bills.items() if b.created_at <= cutoff]
            for pid in stale:
                del self._bills[pid]
        for pid in stale:
            logger.info("Evicted stale bill %s", pid)
        return stale


class PendingTokenRegistry:
    """token_number -> PendingToken for orders registered before payment."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._tokens: Dict[str, PendingToken] = {}

    def __len__(self) -> int:
        return len(self._tokens)

    def register(self, token_number: str, amount: Decimal, items: List[str], now: datetime) -> PendingToken:
        with self.lock:
            existing = self._tokens.get(token_number)
            # A paid token number may be reissued; a pending one may not.
            if existing is not None and existing.status is TokenStatus.PENDING:
                raise ValidationError(f"token {token_number} already registered", code="TOKEN_EXISTS")
            token = PendingToken(token_number=token_number, amount=amount, items=list(items), created_at=now)
            self._tokens[token_number] = token
        logger.info("Registered token %s amount=%s items=%d", token_number, amount, len(items))
        return token

    def get(self, token_number: str) -> Optional[PendingToken]:
        return self._tokens.get(token_number)

    def mark_paid(self, token_number: str, payment_id: str, now: datetime) -> Optional[PendingToken]:
        """pending -> paid, once. Returns the token, or None if unknown."""
        with self.lock:
            token = self._tokens.get(token_number)
            if token is None:
                return None
            if token.status is TokenStatus.PENDING:
                token.status = TokenStatus.PAID
                token.paid_at = now
                token.payment_id = payment_id
                logger.info("Token %s paid by %s", token_number, payment_id)
            return token

    def evict_older_than(self, cutoff: datetime) -> List[str]:
        with self.lock:
            stale = [t for t, tok in self._tokens.items() if tok.created_at <= cutoff]
            for t in stale:
                del self._tokens[t]
        for t in stale:
            logger.info("Evicted token %s", t)
        return stale

    def list_pending(self, cutoff: datetime) -> List[PendingToken]:
        """Sweep tokens created at or before ``cutoff``, then return those still pending."""
        with self.lock:
            self.evict_older_than(cutoff)
            return [t for t in self._tokens.values() if t.status is TokenStatus.PENDING]
