"""Data-access collaborators for the microfinance core."""

from microfin.store.base import DataAccess, Filters, Row
from microfin.store.memory import InMemoryDataStore

__all__ = ["DataAccess", "Filters", "InMemoryDataStore", "Row"]
