"""
Tests for payer-facing status-detail messages.
"""

import pytest

from payments.status_details import GENERIC_FAILURE, STATUS_DETAIL_MESSAGES, describe_status_detail


class TestDescribeStatusDetail:
    @pytest.mark.parametrize(
        "code,expected",
        [
            ("cc_rejected_insufficient_amount", "Insufficient funds"),
            ("cc_rejected_bad_filled_security_code", "Incorrect security code"),
            ("pending_contingency", "Payment pending confirmation"),
            ("expired", "Payment expired"),
        ],
    )
    def test_known_code(self, code, expected):
        assert describe_status_detail(code) == expected

    def test_unknown_code_passes_through(self):
        assert describe_status_detail("cc_rejected_new_reason") == "cc_rejected_new_reason"

    @pytest.mark.parametrize("code", ["", None])
    def test_empty_code_gets_generic_message(self, code):
        assert describe_status_detail(code) == str(GENERIC_FAILURE)

    def test_messages_are_plain_strings(self):
        for code in STATUS_DETAIL_MESSAGES:
            assert isinstance(describe_status_detail(code), str)
