"""Login outcome verification."""

from .verifier import LoginVerifier, VerificationOutcome, VerificationResult
from .weights import PROBE_WEIGHTS, Probe

__all__ = ["LoginVerifier", "PROBE_WEIGHTS", "Probe", "VerificationOutcome", "VerificationResult"]
