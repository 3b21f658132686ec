"""Decides whether a client's approximate server time can be trusted."""
from typing import Any
from pydantic import BaseModel, ConfigDict
import structlog
from ..punch_models import is_finite_number, round_half_up

log = structlog.get_logger()


class SkewDecision(BaseModel):
    """Outcome of evaluating a client-claimed time."""
    model_config = ConfigDict(frozen=True)

    accepted: bool
    epoch_ms: int
    skew_ms: int | None = None


def resolve(approx_server_ms: Any, authoritative_now: int, tolerance_ms: int) -> SkewDecision:
    """
    Pick the official epoch for a submission.

    Args:
        approx_server_ms: Client's estimate of our clock (may be absent or garbage)
        authoritative_now: Current authoritative time in epoch ms
        tolerance_ms: Largest accepted |client - authoritative| distance, inclusive

    Returns:
        Accepted decision carrying the rounded client value, or a rejected
        decision carrying authoritative_now
    """
    if not is_finite_number(approx_server_ms):
        return SkewDecision(accepted=False, epoch_ms=authoritative_now)

    diff = abs(approx_server_ms - authoritative_now)
    skew_ms = round_half_up(diff)
    if diff <= tolerance_ms:
        return SkewDecision(accepted=True, epoch_ms=round_half_up(approx_server_ms), skew_ms=skew_ms)
    return SkewDecision(accepted=False, epoch_ms=authoritative_now, skew_ms=skew_ms)


class SkewPolicy:
    """resolve() bound to a deployment tolerance, with decision logging."""

    def __init__(self, tolerance_ms: int):
        if tolerance_ms < 0:
            raise ValueError("Skew tolerance cannot be negative")
        self.tolerance_ms = tolerance_ms

    def evaluate(self, approx_server_ms: Any, authoritative_now: int) -> SkewDecision:
        decision = resolve(approx_server_ms, authoritative_now, self.tolerance_ms)
        if decision.skew_ms is None:
            log.debug("skew.no_client_time")
        elif not decision.accepted:
            log.info(
                "skew.rejected",
                skew_ms=decision.skew_ms,
                tolerance_ms=self.tolerance_ms,
                approx_server_ms=approx_server_ms,
            )
        return decision
