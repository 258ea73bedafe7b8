
from fastapi import APIRouter, Depends
from ..ledger import LocalLedger, get_ledger
from ..schemas import UsageOut

router = APIRouter()

@router.get("", response_model=UsageOut)
def get_usage(ledger: LocalLedger = Depends(get_ledger)):
    ent = ledger.get_entitlement()
    return UsageOut(plan=ent.plan, daily_limit_remaining=ent.daily_limit_remaining, can_use_timestamp=ent.can_use_timestamp)
