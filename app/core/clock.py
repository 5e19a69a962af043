"""Time source for the ledger: naive UTC timestamps, calendar days in the ledger timezone."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


class Clock:
    """System clock. Services take a Clock so day rollover can be simulated in tests."""

    def __init__(self, tz_name: str = "UTC"):
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        # Stored timestamps are naive UTC, matching what MongoDB hands back
        return datetime.now(timezone.utc).replace(tzinfo=None)

    def day_of(self, moment: datetime) -> date:
        """Calendar day of a stored (naive UTC) timestamp in the ledger timezone."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz).date()

    def today(self) -> date:
        return self.day_of(self.now())
