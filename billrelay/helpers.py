import json
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional

from .errors import ValidationError
from .models import MAX_AMOUNT, MAX_ITEM_LEN, MAX_ITEMS, MAX_NAME_LEN, MAX_TOKEN_LEN

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_BEARER = re.compile(r"^Bearer\s+", re.IGNORECASE)

API_KEY_HEADERS = ("x-api-key", "authorization", "x-android-key")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def money(minor_units: int) -> Decimal:
    return (Decimal(minor_units) / 100).quantize(Decimal("0.01"))


def clip(value: Any, limit: int) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text[:limit] if text else None


def sanitize_token_number(raw: Any) -> str:
    token = _NON_ALNUM.sub("", str(raw or ""))[:MAX_TOKEN_LEN]
    if not token:
        raise ValidationError("tokenNumber must contain letters or digits")
    return token


def parse_amount(raw: Any) -> Decimal:
    if isinstance(raw, bool):
        raise ValidationError("amount must be a number")
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ValidationError("amount must be a number") from None
    if not amount.is_finite():
        raise ValidationError("amount must be a number")
    # Bounds apply to the stored, cent-rounded value.
    amount = amount.quantize(Decimal("0.01"))
    if amount <= 0 or amount > MAX_AMOUNT:
        raise ValidationError(f"amount must be > 0 and <= {MAX_AMOUNT}")
    return amount


def validate_items(raw: Any) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("items must be a list")
    if len(raw) > MAX_ITEMS:
        raise ValidationError(f"at most {MAX_ITEMS} items allowed")
    items = []
    for item in raw:
        text = str(item).strip()
        if len(text) > MAX_ITEM_LEN:
            raise ValidationError(f"item longer than {MAX_ITEM_LEN} characters")
        if text:
            items.append(text)
    return items


def items_from_notes(notes: Mapping[str, Any]) -> List[str]:
    """Read an item list out of gateway notes, which only carry strings.

    Accepts a real list, a JSON-encoded list, or a comma-separated string.
    Anything else yields no items; bounds are clipped, never rejected.
    """
    raw = notes.get("items")
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except ValueError:
            decoded = raw.split(",")
        raw = decoded
    if not isinstance(raw, list):
        return []
    out = []
    for item in raw[:MAX_ITEMS]:
        text = str(item).strip()[:MAX_ITEM_LEN]
        if text:
            out.append(text)
    return out


def token_from_notes(notes: Mapping[str, Any]) -> Optional[str]:
    for key in ("token_number", "tokenNumber", "token"):
        raw = notes.get(key)
        if raw is not None and str(raw).strip():
            token = _NON_ALNUM.sub("", str(raw))[:MAX_TOKEN_LEN]
            return token or None
    return None


def customer_name_from_notes(notes: Mapping[str, Any]) -> str:
    for key in ("name", "customer_name", "customer"):
        name = clip(notes.get(key), MAX_NAME_LEN)
        if name:
            return name
    return "Guest"


def api_key_from_headers(headers: Mapping[str, str]) -> Optional[str]:
    for name in API_KEY_HEADERS:
        value = headers.get(name)
        if value:
            return _BEARER.sub("", value).strip()
    return None
