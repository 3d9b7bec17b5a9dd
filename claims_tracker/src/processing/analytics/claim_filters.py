from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple
import structlog
from pydantic import BaseModel, Field

from ...api.models.claim_models import Claim, ClaimStatus, Priority, RiskLevel

logger = structlog.get_logger(__name__)

SUPPORTED_PERIODS = ("7d", "30d", "90d", "1y")
DEFAULT_PERIOD = "30d"


_PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90}


def period_window(period: Optional[str], today: Optional[date] = None, default: str = DEFAULT_PERIOD) -> Tuple[date, date]:
    """Returns (start, end) for a reporting period. Unknown periods fall back to `default`."""
    end = today or date.today()
    key = (period or default).strip().lower()
    if key not in SUPPORTED_PERIODS:
        logger.debug("Unknown stats period, using default", period=period, default=default)
        key = default if default in SUPPORTED_PERIODS else DEFAULT_PERIOD
    if key == "1y":
        try:
            start = end.replace(year=end.year - 1)
        except ValueError:  # Feb 29
            start = end.replace(year=end.year - 1, day=28)
    else:
        start = end - timedelta(days=_PERIOD_DAYS[key])
    return start, end


def filter_by_period(
    claims: Iterable[Claim], period: Optional[str], today: Optional[date] = None, default: str = DEFAULT_PERIOD
) -> List[Claim]:
    """Keeps claims whose service date falls on or after the start of the period. Claims without a service date are dropped."""
    start, _ = period_window(period, today, default)
    return [c for c in claims if c.service_date is not None and c.service_date >= start]


class ClaimFilter(BaseModel):
    statuses: List[ClaimStatus] = Field(default_factory=list)
    priorities: List[Priority] = Field(default_factory=list)
    payer: Optional[str] = None
    service_date_start: Optional[date] = None
    service_date_end: Optional[date] = None
    risk_levels: List[RiskLevel] = Field(default_factory=list)
    search: Optional[str] = None

    def matches(self, claim: Claim) -> bool:
        if self.statuses and claim.status not in self.statuses:
            return False
        if self.priorities and claim.priority not in self.priorities:
            return False
        if self.payer and self.payer.lower() not in (claim.payer_name or "").lower():
            return False
        if self.risk_levels and claim.risk_level not in self.risk_levels:
            return False
        if self.service_date_start or self.service_date_end:
            if claim.service_date is None:
                return False
            if self.service_date_start and claim.service_date < self.service_date_start:
                return False
            if self.service_date_end and claim.service_date > self.service_date_end:
                return False
        if self.search:
            term = self.search.lower()
            haystacks = (claim.claim_number, claim.patient_name or "", claim.payer_name or "")
            if not any(term in h.lower() for h in haystacks):
                return False
        return True

    def apply(self, claims: Iterable[Claim]) -> List[Claim]:
        return [c for c in claims if self.matches(c)]
