"""
IdempotencyGuard: compare-and-set discipline for status transitions.

Every state-mutating operation on a Payment or Order (confirm, fail,
expire, mark paid) goes through the same two steps inside one database
transaction:

1. acquire(): re-read the row (SELECT ... FOR UPDATE where the backend
   supports it) and classify the request against the current status:
     - already in the target state (or an equivalent one): no-op
     - in a different terminal state: ConflictingTransition
     - otherwise: proceed, remembering the observed (status, version)
2. commit(): write the new status and fields with one conditional
   UPDATE ... WHERE status = observed AND version = observed. Zero rows
   updated means another process won the race: StaleRecordError.

The django-fsm transition methods on the model decide which moves are
legal and fill in the fields; the guard decides whether to make the move
at all and persists it atomically.

Usage:
    with transaction.atomic():
        guarded = IdempotencyGuard.acquire(
            Payment, payment_id,
            target=PaymentStatus.EXPIRED,
            allowed_from=PaymentStatus.active(),
        )
        if guarded.is_noop:
            return
        guarded.instance.expire(expired_at=now)
        IdempotencyGuard.commit(guarded, "expired_at")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

from payments.exceptions import ConflictingTransition, PaymentNotFoundError, StaleRecordError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=models.Model)


@dataclass
class GuardedRecord(Generic[T]):
    """
    A row read under the guard.

    Attributes:
        instance: The locked model instance
        observed_status: Status seen by acquire()
        observed_version: Version seen by acquire()
        is_noop: True when the requested transition already happened
    """

    instance: T
    observed_status: str
    observed_version: int
    is_noop: bool = False


class IdempotencyGuard:
    """Status guard shared by the confirmation engine and the sweepers."""

    @staticmethod
    def acquire(
        model_class: type[T],
        pk: Any,
        *,
        target: str,
        allowed_from: Iterable[str],
        noop_from: Iterable[str] | None = None,
    ) -> GuardedRecord[T]:
        """
        Lock and classify a record for a transition to target.

        Args:
            model_class: Model with status and version fields
            pk: Primary key of the record
            target: Requested status
            allowed_from: Statuses the transition may start from
            noop_from: Statuses that already satisfy the request
                (defaults to the target itself)

        Returns:
            GuardedRecord; check is_noop before mutating

        Raises:
            PaymentNotFoundError: If the record does not exist
            ConflictingTransition: If the record sits in another terminal state
        """
        connection = transaction.get_connection()
        if not connection.in_atomic_block:
            raise transaction.TransactionManagementError(
                "IdempotencyGuard.acquire() must run inside transaction.atomic()"
            )

        instance = model_class.objects.select_for_update().filter(pk=pk).first()
        if instance is None:
            raise PaymentNotFoundError(
                f"{model_class.__name__} {pk} not found",
                details={"model": model_class.__name__, "pk": str(pk)},
            )

        current = instance.status
        noop_states = set(noop_from) if noop_from is not None else {target}
        if current in noop_states:
            logger.info(
                "Transition already applied",
                extra={"model": model_class.__name__, "pk": str(pk), "status": current, "target": target},
            )
            return GuardedRecord(instance, current, instance.version, is_noop=True)

        if current not in set(allowed_from):
            raise ConflictingTransition(
                f"{model_class.__name__} {pk} is {current}, cannot move to {target}",
                current_state=current,
                target_state=target,
                details={"model": model_class.__name__, "pk": str(pk)},
            )

        return GuardedRecord(instance, current, instance.version)

    @staticmethod
    def commit(guarded: GuardedRecord, *fields: str) -> None:
        """
        Persist the instance's new status and fields with compare-and-set.

        Args:
            guarded: Record returned by acquire(), already transitioned in memory
            fields: Additional field names to write alongside status

        Raises:
            StaleRecordError: If the row changed since acquire()
        """
        instance = guarded.instance
        model_class = type(instance)
        values: dict[str, Any] = {"status": instance.status}
        for name in fields:
            field = model_class._meta.get_field(name)
            values[field.attname] = getattr(instance, field.attname)

        updated = model_class.objects.filter(
            pk=instance.pk,
            status=guarded.observed_status,
            version=guarded.observed_version,
        ).update(**values, version=F("version") + 1, updated_at=timezone.now())

        if updated != 1:
            raise StaleRecordError(
                f"{model_class.__name__} {instance.pk} was modified by another process",
                details={
                    "pk": str(instance.pk),
                    "expected_status": guarded.observed_status,
                    "expected_version": guarded.observed_version,
                },
            )

        instance.version = guarded.observed_version + 1
        logger.info(
            "Transition committed",
            extra={
                "model": model_class.__name__,
                "pk": str(instance.pk),
                "from_status": guarded.observed_status,
                "to_status": instance.status,
            },
        )
