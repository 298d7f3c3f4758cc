"""Microfinance back-office core: loan schedules and dependent-record cleanup."""

__version__ = "0.1.0"
