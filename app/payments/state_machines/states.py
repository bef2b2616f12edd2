"""
State enums for payment models.

These are Django TextChoices used as django-fsm field choices and by the
services that decide transitions.

State Machines Overview:

Payment States:
    created → pending → confirmed
    created/pending → expired   (ExpirationSweeper)
    created/pending → failed    (rejected charge, amount mismatch)
    confirmed, expired and failed are terminal.

Order States:
    pending_payment → paid
    pending_payment → expired
    paid and expired are terminal.

Gateway charge statuses are not a state machine of ours; ChargeStatus
groups the provider's values into the three outcomes the confirmation
engine understands (approved, still in flight, rejected).
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment lifecycle.

    State Flow:
        CREATED → PENDING → CONFIRMED
        CREATED/PENDING → EXPIRED
        CREATED/PENDING → FAILED
    """

    CREATED = "created", "Created"
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    EXPIRED = "expired", "Expired"
    FAILED = "failed", "Failed"

    @classmethod
    def active(cls) -> list[str]:
        """States a payment can still leave."""
        return [cls.CREATED, cls.PENDING]

    @classmethod
    def terminal(cls) -> list[str]:
        return [cls.CONFIRMED, cls.EXPIRED, cls.FAILED]


class OrderStatus(models.TextChoices):
    """
    States for the e-commerce Order lifecycle.

    PAID implies the order's payment is CONFIRMED.
    """

    PENDING_PAYMENT = "pending_payment", "Pending Payment"
    PAID = "paid", "Paid"
    EXPIRED = "expired", "Expired"

    @classmethod
    def terminal(cls) -> list[str]:
        return [cls.PAID, cls.EXPIRED]


class ChargeStatus(models.TextChoices):
    """
    Charge statuses reported by the gateway.

    APPROVED credits the merchant. IN_FLIGHT values leave the payment
    pending. Everything else fails it.
    """

    APPROVED = "approved", "Approved"
    AUTHORIZED = "authorized", "Authorized"
    PENDING = "pending", "Pending"
    IN_PROCESS = "in_process", "In Process"
    IN_MEDIATION = "in_mediation", "In Mediation"
    REJECTED = "rejected", "Rejected"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"
    CHARGED_BACK = "charged_back", "Charged Back"

    @classmethod
    def in_flight(cls) -> list[str]:
        return [cls.AUTHORIZED, cls.PENDING, cls.IN_PROCESS, cls.IN_MEDIATION]


class Currency(models.TextChoices):
    """Local currencies a payment can be priced in."""

    ARS = "ARS", "Argentine Peso"
    BRL = "BRL", "Brazilian Real"
    USD = "USD", "US Dollar"


class GatewayEventSource(models.TextChoices):
    """Where a GatewayEvent audit row came from."""

    CALLBACK = "callback", "Gateway Callback"
    CHARGE_FETCH = "charge_fetch", "Charge Fetch"
    DIRECT_CHARGE = "direct_charge", "Direct Charge"
    PREFERENCE = "preference", "Preference"
    ENGINE = "engine", "Confirmation Engine"


class MerchantEventType(models.TextChoices):
    """Event types merchants can subscribe their webhooks to."""

    PAYMENT_CONFIRMED = "payment.confirmed", "Payment Confirmed"
    PAYMENT_FAILED = "payment.failed", "Payment Failed"
