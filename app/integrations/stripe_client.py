import stripe
import logging
from decimal import Decimal
from app.config import settings
from app.exceptions import BusinessLogicError, ExternalServiceError
from typing import Dict, Any, Optional

logger = logging.getLogger("stripe_client")

# Configure Stripe
stripe.api_key = settings.stripe_secret_key


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


class StripeClient:
    @staticmethod
    def create_checkout_session(
            reference: str,
            amount: Decimal,
            currency: str,
            description: str,
            customer_email: str,
            metadata: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Create a one-off Stripe Checkout session for a subscription payment"""
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=[{
                    "price_data": {
                        "currency": currency.lower(),
                        "unit_amount": to_minor_units(amount),
                        "product_data": {"name": description},
                    },
                    "quantity": 1,
                }],
                customer_email=customer_email,
                client_reference_id=reference,
                metadata={"reference": reference, **(metadata or {})},
                success_url=settings.payment_success_url.format(reference=reference),
                cancel_url=settings.payment_cancel_url,
            )

            logger.info(f"Created checkout session {session.id} for payment {reference}")
            return {
                "session_id": session.id,
                "checkout_url": session.url,
            }
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session error: {e}")
            raise ExternalServiceError(
                detail=f"Payment provider error: {e.user_message or str(e)}",
                service_name="stripe"
            )

    @staticmethod
    def retrieve_checkout_session(session_id: str) -> Dict[str, Any]:
        """Fetch a checkout session and report whether it has been paid"""
        try:
            session = stripe.checkout.Session.retrieve(session_id)
            return {
                "session_id": session.id,
                "paid": session.payment_status == "paid",
                "status": session.status,
                "amount_total": session.amount_total,
                "currency": session.currency,
            }
        except stripe.InvalidRequestError:
            logger.warning(f"Checkout session not found: {session_id}")
            raise BusinessLogicError(detail="Unknown payment session")
        except stripe.StripeError as e:
            logger.error(f"Stripe retrieve session error: {e}")
            raise ExternalServiceError(
                detail=f"Payment provider error: {str(e)}",
                service_name="stripe"
            )

    @staticmethod
    def create_transfer(
            reference: str,
            amount: Decimal,
            currency: str,
            destination: str,
            metadata: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Pay a creator's connected account"""
        try:
            transfer = stripe.Transfer.create(
                amount=to_minor_units(amount),
                currency=currency.lower(),
                destination=destination,
                transfer_group=reference,
                metadata={"reference": reference, **(metadata or {})},
            )
            logger.info(f"Created transfer {transfer.id} for payout {reference}")
            return {"transfer_id": transfer.id}
        except stripe.StripeError as e:
            logger.error(f"Stripe transfer error: {e}")
            raise ExternalServiceError(
                detail=f"Payout provider error: {e.user_message or str(e)}",
                service_name="stripe"
            )

    @staticmethod
    def construct_webhook_event(payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
        """Verify the webhook signature and parse the event"""
        if not sig_header:
            logger.error("Missing Stripe signature header")
            raise BusinessLogicError(detail="Missing Stripe signature")
        try:
            event = stripe.Webhook.construct_event(
                payload, sig_header, settings.stripe_webhook_secret
            )
        except stripe.SignatureVerificationError as e:
            logger.error(f"Stripe webhook signature verification failed: {e}")
            raise BusinessLogicError(detail="Invalid webhook signature")
        except ValueError as e:
            logger.error(f"Invalid webhook payload: {e}")
            raise BusinessLogicError(detail="Invalid payload")

        logger.info(f"Received verified Stripe webhook: {event['type']} - {event['id']}")
        return event
