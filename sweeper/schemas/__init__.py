"""
RTDB Sweeper — Pydantic response schemas.
"""

from pydantic import BaseModel


class Totals(BaseModel):
    deleted: int = 0
    kept: int = 0
    skipped: int = 0


class RootReportOut(Totals):
    root: str
    note: str | None = None


class InstanceResult(BaseModel):
    firebase: str
    report: list[RootReportOut]
    total: Totals


class SweepResponse(BaseModel):
    ok: bool = True
    report: list[RootReportOut]
    total: Totals


class MultiSweepResponse(BaseModel):
    ok: bool = True
    instances: dict[str, InstanceResult]


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str


class HealthResponse(BaseModel):
    ok: bool
    dbReady: bool
    instances: dict[str, bool] = {}
    sweepRunning: bool = False


def render_sweep(payload: dict) -> dict:
    """Validate a runner payload and drop absent optional fields (``note``)."""
    model = MultiSweepResponse if "instances" in payload else SweepResponse
    return model.model_validate(payload).model_dump(exclude_none=True)
