from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Field bounds
MAX_NAME_LEN = 100
MAX_EMAIL_LEN = 254
MAX_PHONE_LEN = 20
MAX_TOKEN_LEN = 20
MAX_AMOUNT = Decimal("100000")
MAX_ITEMS = 50
MAX_ITEM_LEN = 100


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


@dataclass
class Bill:
    """One captured payment and its print obligation."""

    payment_id: str
    order_id: Optional[str]
    amount: Decimal
    method: str
    created_at: datetime
    items: List[str] = field(default_factory=list)
    token_number: Optional[str] = None
    customer_name: str = "Guest"
    email: Optional[str] = None
    phone: Optional[str] = None
    printed: bool = False
    print_attempts: int = 0
    last_print_attempt: Optional[datetime] = None
    print_confirmed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "paymentId": self.payment_id,
            "orderId": self.order_id,
            "tokenNumber": self.token_number,
            "amount": float(self.amount),
            "items": list(self.items),
            "method": self.method,
            "customerName": self.customer_name,
            "email": self.email,
            "phone": self.phone,
            "createdAt": _iso(self.created_at),
            "time": self.created_at.strftime("%H:%M:%S"),
            "printed": self.printed,
            "printAttempts": self.print_attempts,
            "lastPrintAttempt": _iso(self.last_print_attempt),
            "printConfirmedAt": _iso(self.print_confirmed_at),
        }


class TokenStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


@dataclass
class PendingToken:
    token_number: str
    amount: Decimal
    created_at: datetime
    items: List[str] = field(default_factory=list)
    status: TokenStatus = TokenStatus.PENDING
    paid_at: Optional[datetime] = None
    payment_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "tokenNumber": self.token_number,
            "amount": float(self.amount),
            "items": list(self.items),
            "status": self.status.value,
            "createdAt": _iso(self.created_at),
            "paidAt": _iso(self.paid_at),
        }


# -----------------------------------------------------------------------------
# Gateway webhook envelope
# -----------------------------------------------------------------------------
class WebhookEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class PaymentEntity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    order_id: Optional[str] = None
    amount: int = Field(ge=0)
    method: Optional[str] = None
    email: Optional[str] = None
    contact: Optional[str] = None
    # The gateway sends an empty list when a payment carries no notes.
    notes: Union[Dict[str, Any], List[Any]] = Field(default_factory=dict)

    @field_validator("notes")
    @classmethod
    def notes_as_dict(cls, v):
        return v if isinstance(v, dict) else {}


class PaymentWrapper(BaseModel):
    entity: PaymentEntity


class CapturedPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    payment: PaymentWrapper
