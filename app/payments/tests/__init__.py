"""
Tests for the payments app.

Modules here cover the models, guards, locks, settlement math, the
confirmation engine, the checkout entry points, merchant webhooks, tasks
and the checkout API. Adapters, ledger, webhooks and workers keep their
tests in their own tests/ packages.

Usage:
    pytest payments/
    pytest payments/tests/test_confirmation_engine.py
"""
