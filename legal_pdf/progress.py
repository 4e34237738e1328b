"""
Progress Tracking

Named export stages with monotonically non-decreasing percentages.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


STAGE_INITIALIZING = "initializing"
STAGE_FORMATTING = "formatting"
STAGE_PARSING_SIGNATURES = "parsing_signatures"
STAGE_LAYOUT = "layout"
STAGE_RENDERING = "rendering"
STAGE_FINALIZING = "finalizing"
STAGE_COMPLETE = "complete"

# Stage -> percentage at which it starts
STAGE_PERCENTAGES = {
    STAGE_INITIALIZING: 0,
    STAGE_FORMATTING: 10,
    STAGE_PARSING_SIGNATURES: 20,
    STAGE_LAYOUT: 35,
    STAGE_RENDERING: 50,
    STAGE_FINALIZING: 95,
    STAGE_COMPLETE: 100,
}

RENDERING_END = 90


@dataclass
class ProgressEvent:
    """A single progress update"""
    stage: str
    percentage: float
    detail: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "percentage": self.percentage,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat(),
        }


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """
    Forwards export progress to an optional caller callback.

    Percentages never go backwards. A callback that raises is logged and
    ignored so it cannot abort generation.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.history: List[ProgressEvent] = []
        self._last_percentage = 0.0

    def report(self, stage: str, detail: str = "", percentage: Optional[float] = None):
        if percentage is None:
            percentage = STAGE_PERCENTAGES.get(stage, self._last_percentage)

        percentage = max(float(percentage), self._last_percentage)
        self._last_percentage = percentage

        event = ProgressEvent(stage=stage, percentage=percentage, detail=detail)
        self.history.append(event)
        logger.debug(f"Progress {percentage:.0f}% [{stage}] {detail}")

        if self.callback is None:
            return

        try:
            self.callback(event)
        except Exception as e:
            logger.warning(f"Progress callback error: {e}")

    def report_rendering(self, page: int, total_pages: int):
        """Spread rendering progress over 50-90% by page."""
        start = STAGE_PERCENTAGES[STAGE_RENDERING]
        fraction = min(page / max(total_pages, 1), 1.0)
        self.report(
            STAGE_RENDERING,
            detail=f"Rendering page {page} of {max(total_pages, page)}",
            percentage=start + (RENDERING_END - start) * fraction,
        )

    @property
    def last_percentage(self) -> float:
        return self._last_percentage
