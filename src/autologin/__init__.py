"""Automatic detection, filling and verification of web login forms."""

from .core.config import AppConfig, load_configuration
from .core.models import DomainMode, FieldRole, LoginFormElements
from .detection.detector import LoginDetector
from .entry.credentials import CredentialManager
from .flow import LoginFlow
from .navigation.transition import PageTransitionDetector
from .verification.verifier import LoginVerifier, VerificationResult

__all__ = [
    "AppConfig",
    "CredentialManager",
    "DomainMode",
    "FieldRole",
    "LoginDetector",
    "LoginFlow",
    "LoginFormElements",
    "LoginVerifier",
    "PageTransitionDetector",
    "VerificationResult",
    "load_configuration",
]
