"""Dictionary backends reachable by the search pipeline."""

from .base import BaseDictionaryBackend
from .http import HTTPDictionaryBackend

__all__ = ["BaseDictionaryBackend", "HTTPDictionaryBackend"]
