"""
Stripe boundary: PaymentIntent creation/retrieval, minor-unit conversion, and
mapping of provider error codes to remediation text shown to the payer.

The gateway is injected into the API through ``get_payment_gateway`` so tests
can substitute their own implementation.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from typing import Any, Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from config import settings
from schemas.payment import PaymentIntentInfo
from services.errors import PaymentProviderError
from utils.logger import get_logger

log = get_logger("payments")

# Currencies Stripe expects without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})

PAYMENT_ERROR_MESSAGES = {
    "authentication_required": "Your bank requires additional authentication. Please try a different card or contact your bank.",
    "card_declined": "Your card was declined. Please check your card details and try again, or use a different card.",
    "insufficient_funds": "Insufficient funds. Please use a different card or add funds to your account.",
    "incorrect_cvc": "The security code (CVC) is incorrect. Please check and try again.",
    "expired_card": "Your card has expired. Please use a different card.",
    "generic_decline": "Your card was declined. Please contact your bank for more information or use a different card.",
    "processing_error": "An error occurred while processing your card. Please try again in a moment.",
    "payment_intent_authentication_failure": "We could not authenticate your payment. Please try again or use a different card.",
}

DEFAULT_PAYMENT_ERROR = "Your payment could not be completed. Please try again or use a different payment method."

# Raw PaymentIntent / transfer states -> status stored on Payment rows
_INCOMPLETE_INTENT_STATES = {
    "requires_payment_method",
    "requires_action",
    "requires_confirmation",
    "incomplete",
    "canceled",
}


def payment_error_message(code: Optional[str], decline_code: Optional[str] = None, fallback: Optional[str] = None) -> str:
    """User-facing text for a provider error; the decline code wins when it is more specific."""
    for key in (decline_code, code):
        if key and key in PAYMENT_ERROR_MESSAGES:
            return PAYMENT_ERROR_MESSAGES[key]
    return fallback or DEFAULT_PAYMENT_ERROR


def map_payment_status(intent_status: Optional[str], transfer_succeeded: bool = False, current: str = "processing") -> str:
    if transfer_succeeded:
        return "paid"
    if intent_status in ("succeeded", "processing"):
        return "processing"
    if intent_status in _INCOMPLETE_INTENT_STATES:
        return "incomplete"
    if current == "completed":
        return "paid"
    return current


def to_minor_units(amount: Decimal | int | float | str, currency: str) -> int:
    """Convert a major-unit amount to the integer Stripe expects (pence, cents...)."""
    value = Decimal(str(amount))
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int, currency: str) -> Decimal:
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount_minor)
    return (Decimal(amount_minor) / 100).quantize(Decimal("0.01"))


class PaymentGateway:
    """Interface the services call; StripeGateway is the production implementation."""

    async def create_intent(
        self,
        amount_minor: int,
        currency: str,
        description: str,
        metadata: dict[str, str],
        idempotency_key: str,
        destination: Optional[str] = None,
    ) -> PaymentIntentInfo:
        raise NotImplementedError

    async def retrieve_intent(self, payment_intent_id: str) -> PaymentIntentInfo:
        raise NotImplementedError


class StripeGateway(PaymentGateway):
    def __init__(self, api_key: str):
        self.api_key = api_key

    def _check_configured(self) -> None:
        if not self.api_key:
            raise PaymentProviderError("Stripe is not configured (STRIPE_SECRET_KEY is empty)")

    async def create_intent(
        self,
        amount_minor: int,
        currency: str,
        description: str,
        metadata: dict[str, str],
        idempotency_key: str,
        destination: Optional[str] = None,
    ) -> PaymentIntentInfo:
        self._check_configured()
        params: dict[str, Any] = {
            "amount": amount_minor,
            "currency": currency.lower(),
            "description": description,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
            "api_key": self.api_key,
            "idempotency_key": idempotency_key,
        }
        if destination:
            params["transfer_data"] = {"destination": destination}
        try:
            intent = await run_in_threadpool(stripe.PaymentIntent.create, **params)
        except stripe.StripeError as e:
            log.error("[STRIPE] PaymentIntent create failed: %s", e.user_message or str(e))
            raise PaymentProviderError(
                payment_error_message(getattr(e, "code", None), fallback=e.user_message),
                code=getattr(e, "code", None),
            ) from e
        log.info("[STRIPE] PaymentIntent %s created for %s %s", intent.id, amount_minor, currency)
        return _intent_info(intent)

    async def retrieve_intent(self, payment_intent_id: str) -> PaymentIntentInfo:
        self._check_configured()
        try:
            intent = await run_in_threadpool(
                stripe.PaymentIntent.retrieve,
                payment_intent_id,
                api_key=self.api_key,
                expand=["latest_charge"],
            )
        except stripe.InvalidRequestError as e:
            raise PaymentProviderError(f"Unknown payment {payment_intent_id}", code=getattr(e, "code", None)) from e
        except stripe.StripeError as e:
            log.error("[STRIPE] PaymentIntent retrieve failed for %s: %s", payment_intent_id, e)
            raise PaymentProviderError("Payment provider temporarily unavailable", code=getattr(e, "code", None)) from e
        return _intent_info(intent)


def _intent_info(intent: Any) -> PaymentIntentInfo:
    charge = intent.get("latest_charge")
    transfer_succeeded = bool(
        isinstance(charge, dict) and charge.get("transfer") and charge.get("status") == "succeeded"
    )
    return PaymentIntentInfo(
        id=intent["id"],
        client_secret=intent.get("client_secret"),
        status=intent["status"],
        amount=intent["amount"],
        currency=intent["currency"],
        description=intent.get("description"),
        metadata=dict(intent.get("metadata") or {}),
        transfer_succeeded=transfer_succeeded,
    )


@lru_cache
def _default_gateway() -> StripeGateway:
    return StripeGateway(settings.stripe_secret_key)


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency; overridden in tests."""
    return _default_gateway()
