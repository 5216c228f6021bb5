"""Monthly quota decision."""
from __future__ import annotations

from dataclasses import dataclass

from chatmeter.core.errors import QuotaExceeded
from chatmeter.core.plans import Plan


@dataclass(frozen=True, slots=True)
class QuotaDecision:
    allowed: bool
    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def raise_for_denial(self, period: str) -> None:
        if not self.allowed:
            raise QuotaExceeded(
                "Monthly message quota exceeded",
                used=self.used,
                limit=self.limit,
                period=period,
            )


def admit(plan: Plan, used: int) -> QuotaDecision:
    """Allow while ``used`` is below the plan's monthly limit.

    Pure function over values read at call time. The gateway calls it before
    the upstream request and increments only afterwards, so concurrent requests
    admitted at ``limit - 1`` can all succeed: the limit is soft.
    """
    return QuotaDecision(allowed=used < plan.monthly_limit, used=used, limit=plan.monthly_limit)


__all__ = ["QuotaDecision", "admit"]
