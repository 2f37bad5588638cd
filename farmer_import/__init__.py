"""Bulk farmer onboarding: spreadsheet import, validation, review and commit."""

__version__ = "0.1.0"
