"""Page transition tracking."""

from .transition import PageTransitionDetector, TransitionMode, TransitionResult

__all__ = ["PageTransitionDetector", "TransitionMode", "TransitionResult"]
