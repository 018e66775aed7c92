"""Telemetry sink accepted by the synchronizer."""

from typing import Any, Dict, Optional, Protocol


class TelemetrySink(Protocol):
    """Receives operation telemetry; implementations forward it elsewhere."""

    def track_exception(
        self, exception: BaseException, properties: Optional[Dict[str, Any]] = None
    ) -> None:
        """Record a handled exception."""


def track_failure(
    telemetry: Optional[TelemetrySink],
    exception: BaseException,
    properties: Optional[Dict[str, Any]] = None,
) -> None:
    """Forward a handled exception to ``telemetry`` when one was supplied."""
    if telemetry is not None:
        telemetry.track_exception(exception, properties)
