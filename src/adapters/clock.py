from datetime import datetime


class SystemClock:
    """Local wall clock; cache ages and report directory names use local time."""

    def now(self) -> datetime:
        return datetime.now()

    def timestamp(self) -> float:
        """Current time as a unix timestamp, the unit of rrdtool --start/--end."""
        return self.now().timestamp()
