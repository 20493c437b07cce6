"""
Liveness API for the Social Signal Bot.

Operational health check only: uptime, last poll check and the number
of signals sent. It never triggers or influences the pipeline.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI
from pydantic import BaseModel, Field


SERVICE_NAME = "social-signal-bot"
SERVICE_VERSION = "1.0.0"


def format_timestamp(dt: datetime) -> str:
    """Format datetime to ISO-8601 UTC."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# =============================================================================
# PYDANTIC MODELS - RESPONSE
# =============================================================================

class StatusResponse(BaseModel):
    status: str = "running"
    uptime_seconds: float = Field(..., ge=0)
    started_at: str
    last_check: Optional[str] = None
    signals_sent: int = Field(..., ge=0)


class HealthResponse(BaseModel):
    status: str = "healthy"
    service: str = SERVICE_NAME
    version: str = SERVICE_VERSION
    timestamp: str


# =============================================================================
# STATUS PROVIDER
# =============================================================================

class BotStatus:
    """
    Read-only view over the running bot's counters.

    The callables are evaluated per request so values are always live.
    """

    def __init__(
        self,
        last_check: Callable[[], Optional[datetime]],
        signals_sent: Callable[[], int],
        started_at: Optional[datetime] = None
    ):
        self._last_check = last_check
        self._signals_sent = signals_sent
        self.started_at = started_at or datetime.now(timezone.utc)

    def snapshot(self, now: Optional[datetime] = None) -> StatusResponse:
        if now is None:
            now = datetime.now(timezone.utc)

        last_check = self._last_check()
        return StatusResponse(
            uptime_seconds=round(max(0.0, (now - self.started_at).total_seconds()), 3),
            started_at=format_timestamp(self.started_at),
            last_check=format_timestamp(last_check) if last_check else None,
            signals_sent=self._signals_sent()
        )


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(status: BotStatus) -> FastAPI:
    """Create the liveness app bound to a BotStatus."""
    app = FastAPI(
        title="Social Signal Bot",
        description="Liveness endpoint for the social signal pipeline",
        version=SERVICE_VERSION
    )

    @app.get("/", response_model=StatusResponse)
    def get_status() -> StatusResponse:
        return status.snapshot()

    @app.get("/health", response_model=HealthResponse)
    def health_check() -> HealthResponse:
        return HealthResponse(timestamp=format_timestamp(datetime.now(timezone.utc)))

    return app
