from fastapi import APIRouter, Depends, Request

from ..deps import get_state
from ..ingest import SIGNATURE_HEADER
from ..state import RelayState

router = APIRouter(tags=["webhook"])

@router.post("/razorpay-webhook")
async def razorpay_webhook(request: Request, state: RelayState = Depends(get_state)):
    # Raw bytes: the signature covers the body exactly as sent.
    body = await request.body()
    result = state.ingestor.ingest(body, request.headers.get(SIGNATURE_HEADER))
    return {"status": result.outcome, "paymentId": result.payment_id}
