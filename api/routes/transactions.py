"""交易诊断路由（只读）。"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_payment_service
from application.services.payment_service import PaymentService
from core.response import success_response

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.get("", summary="List transactions")
async def list_transactions(service: PaymentService = Depends(get_payment_service)):
    items = [tx.to_dict() for tx in await service.list_transactions()]
    return success_response(data=items, count=len(items))


@router.get("/{transaction_id}", summary="Get transaction")
async def get_transaction(transaction_id: str, service: PaymentService = Depends(get_payment_service)):
    tx = await service.get_transaction(transaction_id)
    return success_response(data=tx.to_dict())
