"""Request pacing — human-like delays and session breaks."""

from marketfetch.pacing.pacer import PacingDecision, RatePacer

__all__ = ["PacingDecision", "RatePacer"]
