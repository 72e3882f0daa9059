"""
SMS transaction API endpoints.
"""

from datetime import timedelta, timezone
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from smsledger.dependencies import get_ledger_store
from smsledger.exceptions import StorageUnavailable
from smsledger.schemas.transaction import (
    DateGroup,
    GroupedTransactionsResponse,
    SmsTransactionListResponse,
    SmsTransactionResponse,
)
from smsledger.services.aggregation_service import group_by_date
from smsledger.services.ledger_store import LedgerStore

router = APIRouter(prefix="/sms-transactions", tags=["sms-transactions"])


@router.get("", response_model=SmsTransactionListResponse)
def list_sms_transactions(
    user_id: str = Query(..., min_length=1),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    store: LedgerStore = Depends(get_ledger_store)
):
    """List a user's transactions, newest first"""
    try:
        total = store.count_for_user(user_id)
        items = store.get_page_for_user(user_id, offset, limit)
    except StorageUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    return SmsTransactionListResponse(
        items=[SmsTransactionResponse.model_validate(t) for t in items],
        total=total,
        offset=offset,
        limit=limit
    )


@router.get("/all", response_model=list[SmsTransactionResponse])
def list_all_sms_transactions(
    user_id: str = Query(..., min_length=1),
    store: LedgerStore = Depends(get_ledger_store)
):
    """Every transaction of a user, newest first"""
    try:
        return store.get_all_for_user(user_id)
    except StorageUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/grouped", response_model=GroupedTransactionsResponse)
def list_grouped_sms_transactions(
    user_id: str = Query(..., min_length=1),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    tz_offset_minutes: Optional[int] = Query(None, ge=-720, le=840),
    store: LedgerStore = Depends(get_ledger_store)
):
    """One page of transactions grouped by local calendar date"""
    try:
        total = store.count_for_user(user_id)
        items = store.get_page_for_user(user_id, offset, limit)
    except StorageUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    tz = timezone(timedelta(minutes=tz_offset_minutes)) if tz_offset_minutes is not None else None
    groups = [
        DateGroup(date=label, items=[SmsTransactionResponse.model_validate(t) for t in records])
        for label, records in group_by_date(items, tz).items()
    ]
    return GroupedTransactionsResponse(groups=groups, total=total, offset=offset, limit=limit)


@router.get("/{transaction_id}", response_model=SmsTransactionResponse)
def get_sms_transaction(
    transaction_id: str,
    user_id: str = Query(..., min_length=1),
    store: LedgerStore = Depends(get_ledger_store)
):
    """Get a single transaction"""
    try:
        txn = store.get_for_user(user_id, transaction_id)
    except StorageUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    if not txn:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return txn
