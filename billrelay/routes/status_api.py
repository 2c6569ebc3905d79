from fastapi import APIRouter, Depends

from ..deps import get_state, require_admin_token
from ..helpers import utcnow
from ..state import RelayState

router = APIRouter(tags=["status"])

def _unprinted(state: RelayState) -> int:
    return state.bills.count(lambda b: not b.printed)

@router.get("/health")
async def health(state: RelayState = Depends(get_state)):
    return {
        "status": "OK",
        "uptime": (utcnow() - state.started_at).total_seconds(),
        "billsInQueue": len(state.bills),
        "unprintedBills": _unprinted(state),
        "tokensTracked": len(state.tokens),
        "environment": state.settings.environment,
    }

@router.get("/admin/bills", dependencies=[Depends(require_admin_token)])
async def admin_bills(state: RelayState = Depends(get_state)):
    bills = state.bills.iterate()
    return {
        "total": len(bills),
        "unprinted": sum(1 for b in bills if not b.printed),
        "bills": [b.to_dict() for b in bills],
    }
