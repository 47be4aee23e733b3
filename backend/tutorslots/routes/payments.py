# backend/tutorslots/routes/payments.py
"""
Payment routes for bookings.

Router Endpoints:
    POST /bookings/{booking_id}/payment - Open a checkout session (student)
    POST /bookings/{booking_id}/payment/reconcile - Pull the checkout outcome
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ..api.dependencies import get_current_actor, get_payment_service, require_party
from ..models.user import User
from ..schemas.payment import PaymentHandleResponse, PaymentInitiateRequest, ReconcileResponse
from ..services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings/{booking_id}/payment", tags=["payments"])


@router.post("", response_model=PaymentHandleResponse, status_code=status.HTTP_201_CREATED)
def initiate_payment(
    booking_id: str,
    payload: Optional[PaymentInitiateRequest] = None,
    actor: User = Depends(get_current_actor),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentHandleResponse:
    """Return the provider URL the student pays at."""
    booking = payment_service.booking_service.get(booking_id)
    if actor.id != booking.student_id and not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Only the booking's student can pay", "code": "FORBIDDEN"},
        )
    handle = payment_service.initiate(
        booking_id,
        success_url=payload.success_url if payload else None,
        cancel_url=payload.cancel_url if payload else None,
    )
    return PaymentHandleResponse(
        booking_id=handle.booking_id,
        session_id=handle.session_id,
        redirect_url=handle.redirect_url,
        amount_cents=handle.amount_cents,
        amount=handle.amount,
        currency=handle.currency,
    )


@router.post("/reconcile", response_model=ReconcileResponse)
def reconcile_payment(
    booking_id: str,
    actor: User = Depends(get_current_actor),
    payment_service: PaymentService = Depends(get_payment_service),
) -> ReconcileResponse:
    """Apply the provider's view of the checkout; safe to call repeatedly."""
    booking = payment_service.booking_service.get(booking_id)
    require_party(actor, booking.student_id, booking.tutor_id)
    payment_status = payment_service.reconcile(booking_id)
    booking = payment_service.booking_service.get(booking_id)
    return ReconcileResponse(
        booking_id=booking_id, payment_status=payment_status, status=booking.status
    )
