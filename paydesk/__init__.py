"""Paydesk: staff/payroll admin backend (credential auth and session lifecycle)."""

__version__ = "0.1.0"
