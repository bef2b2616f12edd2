"""
Gateway status-detail codes mapped to payer-facing reasons.

Used by the confirmation engine to store a failure reason and by the
direct charge entry point to answer the payer. Codes missing from the
table pass through verbatim so new gateway codes are never dropped.
"""

from __future__ import annotations

from django.utils.translation import gettext_lazy as _

STATUS_DETAIL_MESSAGES = {
    "accredited": _("Payment approved"),
    "cc_rejected_bad_filled_card_number": _("Incorrect card number"),
    "cc_rejected_bad_filled_date": _("Incorrect expiration date"),
    "cc_rejected_bad_filled_other": _("Incorrect card details"),
    "cc_rejected_bad_filled_security_code": _("Incorrect security code"),
    "cc_rejected_blacklist": _("Card not allowed"),
    "cc_rejected_call_for_authorize": _("You must authorize this payment with your bank"),
    "cc_rejected_card_disabled": _("Card disabled"),
    "cc_rejected_duplicated_payment": _("Duplicated payment"),
    "cc_rejected_high_risk": _("Payment rejected by fraud prevention"),
    "cc_rejected_insufficient_amount": _("Insufficient funds"),
    "cc_rejected_invalid_installments": _("Invalid number of installments"),
    "cc_rejected_max_attempts": _("Maximum number of attempts reached"),
    "cc_rejected_other_reason": _("Card declined"),
    "pending_contingency": _("Payment pending confirmation"),
    "pending_review_manual": _("Payment under review"),
    "pending_waiting_payment": _("Waiting for payment"),
    "amount_mismatch": _("Payment amount does not match the order"),
    "expired": _("Payment expired"),
}

GENERIC_FAILURE = _("The payment could not be completed")


def describe_status_detail(code: str | None) -> str:
    """
    Return the payer-facing reason for a status-detail code.

    Unknown codes are returned unchanged; an empty code gets the generic
    failure message.
    """
    if not code:
        return str(GENERIC_FAILURE)
    message = STATUS_DETAIL_MESSAGES.get(code)
    return str(message) if message is not None else code
