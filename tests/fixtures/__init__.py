# tests/fixtures/__init__.py
"""Shared record types and builders for Strata tests."""
