import re

from sqlalchemy import select
from sqlalchemy.orm import Session

from posledger.models.billing import Estimate

ESTIMATE_PREFIX = "EST-"
_ESTIMATE_NUMBER = re.compile(rf"^{ESTIMATE_PREFIX}(\d+)$")


def parse_estimate_number(value: str | None) -> int | None:
    match = _ESTIMATE_NUMBER.match((value or "").strip())
    return int(match.group(1)) if match else None


def next_estimate_number(db: Session, start: int) -> str:
    """Return the next ``EST-<n>`` number after the highest one issued."""
    issued = db.scalars(select(Estimate.estimate_no).where(Estimate.estimate_no.like(f"{ESTIMATE_PREFIX}%"))).all()
    numbers = [n for n in (parse_estimate_number(value) for value in issued) if n is not None]
    number = max(numbers) + 1 if numbers else start
    return f"{ESTIMATE_PREFIX}{max(number, start)}"
