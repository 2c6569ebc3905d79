from fastapi import APIRouter, Depends, Response

from ..deps import get_state, require_api_key
from ..errors import ValidationError
from ..helpers import utcnow
from ..state import RelayState

router = APIRouter(prefix="/api", tags=["print"], dependencies=[Depends(require_api_key)])

@router.get("/latest-paid-bill")
async def latest_paid_bill(state: RelayState = Depends(get_state)):
    now = utcnow()
    bill = state.queue.poll(now)
    if bill is None:
        return Response(status_code=204)

    out = bill.to_dict()
    out["serverTime"] = now.isoformat()
    out["serverTimestamp"] = int(now.timestamp() * 1000)
    return out

@router.post("/confirm-print")
async def confirm_print(payload: dict, state: RelayState = Depends(get_state)):
    payment_id = payload.get("paymentId") or payload.get("payment_id") or ""
    if not isinstance(payment_id, str):
        raise ValidationError("paymentId must be a string")
    payment_id = payment_id.strip()
    result = state.confirmer.confirm(payment_id)
    return {
        "success": True,
        "paymentId": result.payment_id,
        "alreadyPrinted": result.already_printed,
        "remaining": result.remaining,
    }
