"""Login form detection: candidate scoring and the strategy pipeline."""

from .detector import LoginDetector
from .scorer import MINIMUM_SCORE, ElementScorer
from .site_config import SiteConfigurationStore, SiteLoginConfiguration

__all__ = [
    "ElementScorer",
    "LoginDetector",
    "MINIMUM_SCORE",
    "SiteConfigurationStore",
    "SiteLoginConfiguration",
]
