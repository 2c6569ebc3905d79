"""Gateway webhook intake: signature check, event filter, dedup, bill creation.

Security contract:
- The HMAC is computed over the raw request bytes, never a re-serialized body
- Comparison is always hmac.compare_digest() (constant-time)
- Missing secret -> InternalError (fail-closed, nothing is stored)
- Events other than payment.captured are acknowledged with no side effects,
  otherwise the gateway keeps retrying them
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError as SchemaError

from .errors import AuthError, InternalError, ValidationError
from .helpers import (
    clip,
    customer_name_from_notes,
    items_from_notes,
    money,
    token_from_notes,
    utcnow,
)
from .models import (
    MAX_EMAIL_LEN,
    MAX_PHONE_LEN,
    Bill,
    CapturedPayload,
    PaymentEntity,
    WebhookEnvelope,
)
from .stores import BillStore, PendingTokenRegistry

logger = logging.getLogger(__name__)

CAPTURED_EVENT = "payment.captured"
SIGNATURE_HEADER = "x-razorpay-signature"

STORED = "stored"
DUPLICATE = "duplicate"
IGNORED = "ignored"


def compute_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> None:
    """Raise AuthError unless ``signature`` is the hex HMAC-SHA256 of ``body``."""
    if not secret:
        logger.error("Webhook secret not configured, rejecting webhook")
        raise InternalError("server configuration error")
    if not signature:
        raise AuthError("missing signature", code="SIGNATURE_MISSING")
    expected = compute_signature(secret, body)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.strip().encode("utf-8")):
        raise AuthError("invalid signature", code="INVALID_SIGNATURE")


@dataclass
class IngestResult:
    outcome: str
    event: str
    payment_id: Optional[str] = None


def _log_webhook(event: str, payment_id: Optional[str], status: str) -> None:
    logger.info("WEBHOOK_AUDIT event=%s payment=%s status=%s", event, payment_id or "-", status)


class WebhookIngestor:
    """Turns verified capture notifications into bills, at most once per payment id.

    ``item_source`` selects where items come from: ``"metadata"`` reads them
    from the payment notes, ``"token"`` looks them up in the pending token
    registry by the token number carried in the notes.
    """

    def __init__(
        self,
        bills: BillStore,
        tokens: PendingTokenRegistry,
        secret: str,
        item_source: str = "metadata",
    ) -> None:
        self.bills = bills
        self.tokens = tokens
        self.secret = secret
        self.item_source = item_source

    def ingest(self, body: bytes, signature: Optional[str]) -> IngestResult:
        try:
            verify_signature(self.secret, body, signature)
        except AuthError:
            _log_webhook("unknown", None, "signature_failed")
            raise

        envelope = self._parse_envelope(body)
        if envelope.event != CAPTURED_EVENT:
            _log_webhook(envelope.event, None, IGNORED)
            return IngestResult(IGNORED, envelope.event)

        entity = self._parse_payment(envelope)
        try:
            outcome = self._store(entity)
        except Exception:
            logger.exception("Failed to store bill for payment %s", entity.id)
            raise InternalError("failed to record payment") from None

        _log_webhook(envelope.event, entity.id, outcome)
        return IngestResult(outcome, envelope.event, entity.id)

    def _parse_envelope(self, body: bytes) -> WebhookEnvelope:
        try:
            data = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            _log_webhook("unknown", None, "invalid_json")
            raise ValidationError("invalid payload") from None
        try:
            return WebhookEnvelope.model_validate(data)
        except SchemaError:
            _log_webhook("unknown", None, "invalid_envelope")
            raise ValidationError("invalid payload") from None

    def _parse_payment(self, envelope: WebhookEnvelope) -> PaymentEntity:
        try:
            return CapturedPayload.model_validate(envelope.payload).payment.entity
        except SchemaError:
            _log_webhook(envelope.event, None, "invalid_payment")
            raise ValidationError("invalid payment entity") from None

    def _store(self, entity: PaymentEntity) -> str:
        # Held across lookup and insert so concurrent duplicate deliveries
        # create one bill and flip one token.
        with self.bills.lock:
            if entity.id in self.bills:
                return DUPLICATE

            now = utcnow()
            token_number = token_from_notes(entity.notes)
            if self.item_source == "token":
                items = []
                if token_number:
                    token = self.tokens.mark_paid(token_number, entity.id, now)
                    if token is None:
                        logger.warning("Payment %s names unknown token %s", entity.id, token_number)
                    elif token.payment_id != entity.id:
                        logger.warning(
                            "Payment %s names token %s already paid by %s",
                            entity.id,
                            token_number,
                            token.payment_id,
                        )
                    else:
                        items = list(token.items)
            else:
                items = items_from_notes(entity.notes)

            bill = Bill(
                payment_id=entity.id,
                order_id=entity.order_id,
                token_number=token_number,
                amount=money(entity.amount),
                items=items,
                method=(entity.method or "unknown").upper(),
                customer_name=customer_name_from_notes(entity.notes),
                email=clip(entity.email, MAX_EMAIL_LEN),
                phone=clip(entity.contact, MAX_PHONE_LEN),
                created_at=now,
            )
            self.bills.insert_if_absent(bill)
        logger.info("Payment stored: %s amount=%s items=%d", bill.payment_id, bill.amount, len(items))
        return STORED
