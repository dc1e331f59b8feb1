"""Credit balance, history, and purchase endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from framescan.api.deps import get_service
from framescan.api.errors import FrameScanHttpError
from framescan.service import FrameScanService

router = APIRouter(prefix="/v1/credits", tags=["Credits"])


class BalanceResponse(BaseModel):
    available: int
    credits: int
    bonus_credits: int
    total_purchased: int
    total_used: int
    updated_at: str


class PurchaseRequest(BaseModel):
    package_id: str = Field(..., min_length=1)


class BonusRequest(BaseModel):
    amount: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1)


def _balance(service: FrameScanService) -> BalanceResponse:
    balance = service.get_credit_balance()
    return BalanceResponse(
        available=balance.available,
        credits=balance.credits,
        bonus_credits=balance.bonus_credits,
        total_purchased=balance.total_purchased,
        total_used=balance.total_used,
        updated_at=balance.updated_at.isoformat(),
    )


@router.get("", response_model=BalanceResponse)
def get_balance(service: FrameScanService = Depends(get_service)) -> BalanceResponse:
    return _balance(service)


@router.get("/transactions")
def list_transactions(
    limit: int | None = Query(default=None, ge=1, le=500),
    service: FrameScanService = Depends(get_service),
) -> list[dict[str, Any]]:
    return [t.model_dump(mode="json") for t in service.get_credit_transactions(limit)]


@router.get("/packages")
def list_packages(service: FrameScanService = Depends(get_service)) -> list[dict[str, Any]]:
    return [p.model_dump(mode="json") for p in service.get_credit_packages()]


@router.post("/purchase", response_model=BalanceResponse)
def purchase(
    body: PurchaseRequest, service: FrameScanService = Depends(get_service)
) -> BalanceResponse:
    if not service.purchase_credits(body.package_id):
        raise FrameScanHttpError(
            status_code=404,
            code="NOT_FOUND",
            message=f"Unknown credit package: {body.package_id}",
            details={"package_id": body.package_id},
        )
    return _balance(service)


@router.post("/bonus", response_model=BalanceResponse)
def grant_bonus(
    body: BonusRequest, service: FrameScanService = Depends(get_service)
) -> BalanceResponse:
    service.add_bonus_credits(body.amount, body.reason)
    return _balance(service)
