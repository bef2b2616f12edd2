"""
PreferenceIssuer: hosted checkout entry point.

Issues (or re-issues) the gateway checkout preference for a payment. The
payer is redirected to the gateway, and the outcome arrives later through
the gateway callback.

Flow:
    1. Reject expired payments (status expired, or expires_at passed)
    2. Move created → pending through the guard
    3. Return the stored preference if there is one
    4. Otherwise create it at the gateway and store it with a conditional
       update, so two concurrent requests keep a single preference

Usage:
    from payments.services import PreferenceIssuer

    result = PreferenceIssuer.issue(payment_id)
    redirect(result.redirect_url)
"""

from __future__ import annotations

import uuid

from django.db import transaction

from core.services import BaseService
from payments.adapters import GatewayAdapter, PreferenceResult
from payments.exceptions import ExpiredPayment, PaymentNotFoundError, PaymentValidationError
from payments.guards import IdempotencyGuard
from payments.models import GatewayEvent, Payment
from payments.state_machines import GatewayEventSource, PaymentStatus


class PreferenceIssuer(BaseService):
    """Creates and persists gateway checkout preferences."""

    @classmethod
    def issue(cls, payment_id: uuid.UUID, title: str | None = None) -> PreferenceResult:
        """
        Get the checkout preference for a payment, creating it if needed.

        Args:
            payment_id: Payment to collect
            title: Item title shown on the checkout page

        Returns:
            PreferenceResult (reused=True when no remote call was made)

        Raises:
            PaymentNotFoundError: Unknown payment
            ExpiredPayment: Payment expired
            PaymentValidationError: Payment already confirmed or failed
            GatewayUnavailable / GatewayRejected: From the gateway
        """
        logger = cls.get_logger()
        payment = Payment.objects.select_related("merchant").filter(pk=payment_id).first()
        if payment is None:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )

        cls._check_collectable(payment)
        if payment.status == PaymentStatus.CREATED:
            payment = cls._submit(payment)

        if payment.gateway_preference_id:
            logger.info(
                "Reusing stored preference",
                extra={"payment_id": str(payment.id), "preference_id": payment.gateway_preference_id},
            )
            return GatewayAdapter.create_preference(payment, title=title)

        preference = GatewayAdapter.create_preference(payment, title=title)

        updated = Payment.objects.filter(pk=payment.pk, gateway_preference_id__isnull=True).update(
            gateway_preference_id=preference.preference_id,
            gateway_redirect_url=preference.redirect_url,
            gateway_sandbox_redirect_url=preference.sandbox_redirect_url,
        )
        GatewayEvent.record(
            source=GatewayEventSource.PREFERENCE,
            event_type="preference.created",
            payload=preference.raw_response,
            payment=payment,
            order=payment.order,
        )

        if not updated:
            # A concurrent request stored its preference first; hand out that one.
            stored = Payment.objects.get(pk=payment.pk)
            logger.warning(
                "Preference created concurrently, returning stored one",
                extra={
                    "payment_id": str(payment.id),
                    "preference_id": stored.gateway_preference_id,
                    "discarded_preference_id": preference.preference_id,
                },
            )
            return PreferenceResult(
                preference_id=stored.gateway_preference_id,
                redirect_url=stored.gateway_redirect_url,
                sandbox_redirect_url=stored.gateway_sandbox_redirect_url,
                reused=True,
            )

        logger.info(
            "Preference issued",
            extra={"payment_id": str(payment.id), "preference_id": preference.preference_id},
        )
        return preference

    @staticmethod
    def _check_collectable(payment: Payment) -> None:
        if payment.status == PaymentStatus.EXPIRED or (
            payment.status in PaymentStatus.active() and payment.has_expired
        ):
            raise ExpiredPayment(
                f"Payment {payment.id} has expired",
                details={"payment_id": str(payment.id)},
            )
        if payment.status not in PaymentStatus.active():
            raise PaymentValidationError(
                f"Payment {payment.id} is {payment.status}",
                details={"payment_id": str(payment.id), "status": payment.status},
            )

    @staticmethod
    def _submit(payment: Payment) -> Payment:
        with transaction.atomic():
            guarded = IdempotencyGuard.acquire(
                Payment,
                payment.pk,
                target=PaymentStatus.PENDING,
                allowed_from=[PaymentStatus.CREATED],
            )
            if not guarded.is_noop:
                guarded.instance.submit()
                IdempotencyGuard.commit(guarded)
        locked = guarded.instance
        locked.merchant = payment.merchant
        return locked
