"""
Payment endpoints. Payments are created by billing; this service only reads them.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Query
from pydantic import Field

from ...core.pools.models import Payment, PaymentStatus
from ..dependencies import AuthenticatedUser, RecordRepositoryDep, UserIdDep
from ..schemas import CamelModel

router = APIRouter()


class PaymentResponse(CamelModel):
    id: str
    client_id: str
    client_name: str = ""
    amount: float
    paid_on: date = Field(alias="date")
    status: PaymentStatus

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            client_id=payment.client_id,
            client_name=payment.client_name,
            amount=payment.amount,
            paid_on=payment.date,
            status=payment.status,
        )


@router.get(
    "",
    response_model=list[PaymentResponse],
    summary="List payments",
    description="Newest first. Filter by paid or pending.",
)
async def list_payments(
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
) -> list[PaymentResponse]:
    payments = repository.list_payments(user_id, status=payment_status)
    return [PaymentResponse.from_payment(p) for p in payments]
