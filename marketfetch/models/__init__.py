"""Public models for the monitoring API."""

from marketfetch.models.responses import ApiResponse

__all__ = ["ApiResponse"]
