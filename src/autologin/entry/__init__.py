"""Credential entry stage."""

from .credentials import CredentialEntryResult, CredentialManager, EntryState
from .disclosure import FieldRevealWatcher

__all__ = ["CredentialEntryResult", "CredentialManager", "EntryState", "FieldRevealWatcher"]
