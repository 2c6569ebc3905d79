from datetime import timedelta

from fastapi import APIRouter, Depends

from ..deps import get_state
from ..helpers import parse_amount, sanitize_token_number, utcnow, validate_items
from ..state import RelayState

router = APIRouter(prefix="/api/tokens", tags=["tokens"])

@router.post("", status_code=201)
async def register_token(payload: dict, state: RelayState = Depends(get_state)):
    token_number = sanitize_token_number(payload.get("tokenNumber") or payload.get("token_number"))
    amount = parse_amount(payload.get("amount"))
    items = validate_items(payload.get("items"))

    token = state.tokens.register(token_number, amount, items, utcnow())
    return token.to_dict()

@router.get("/pending")
async def pending_tokens(state: RelayState = Depends(get_state)):
    cutoff = utcnow() - timedelta(seconds=state.settings.token_retention_seconds)
    tokens = state.tokens.list_pending(cutoff)
    return {"tokens": [t.to_dict() for t in tokens]}
