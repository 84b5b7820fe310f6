import logging
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.database import get_db
from app.middlewares.auth_middleware import get_current_user
from app.models.user import User
from app.schemas.payment_schemas import (
    PaymentInitialize,
    PaymentInitResponse,
    PaymentTransactionResponse,
    PaymentVerifyResponse,
)
from app.schemas.response import BaseResponse, ErrorBody, api_response, error_response
from app.schemas.subscription_schemas import SubscriptionResponse
from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post(
    "/initialize",
    response_model=BaseResponse[PaymentInitResponse],
    status_code=201,
    responses={400: {"model": ErrorBody}, 404: {"model": ErrorBody}, 409: {"model": ErrorBody}, 502: {"model": ErrorBody}},
)
async def initialize_payment(
    data: PaymentInitialize,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        transaction = await PaymentService.initialize(db, current_user, data)
        return BaseResponse(
            success=True,
            message="Payment initialized",
            data=PaymentInitResponse(
                reference=transaction.reference,
                authorization_url=transaction.authorization_url,
                amount=float(transaction.amount),
                currency=transaction.currency,
                purpose=transaction.purpose,
            ),
        )
    except HTTPException as e:
        return error_response(e)


@router.get(
    "/verify/{reference}",
    response_model=BaseResponse[PaymentVerifyResponse],
    responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}, 409: {"model": ErrorBody}, 502: {"model": ErrorBody}},
)
async def verify_payment(
    reference: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        transaction, subscription = await PaymentService.verify(db, current_user, reference)
        return BaseResponse(
            success=True,
            message=f"Payment {transaction.status}",
            data=PaymentVerifyResponse(
                transaction=PaymentTransactionResponse.model_validate(transaction),
                subscription=SubscriptionResponse.model_validate(subscription) if subscription else None,
            ),
        )
    except HTTPException as e:
        return error_response(e)


@router.post("/webhook", response_model=BaseResponse[dict], responses={400: {"model": ErrorBody}})
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db)
):
    try:
        payload = await request.body()
        result = await PaymentService.handle_webhook(db, payload, stripe_signature)
        return api_response(True, "Webhook received", result)
    except HTTPException as e:
        logger.warning(f"Webhook rejected: {e.detail}")
        return error_response(e)
