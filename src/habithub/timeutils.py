# src/habithub/timeutils.py
import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

_HOURS = re.compile(r"(\d+)h")
_MINUTES = re.compile(r"(\d+)m")


# -------------------------------
# DURATION TEXT
# -------------------------------
def format_minutes(minutes: int) -> str:
    """125 -> '2h 5m', 45 -> '45m'."""
    hours, mins = divmod(int(minutes), 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def parse_time_string(text: str) -> int:
    """Parse strings like '1h 30m' or '45m' back into minutes."""
    hours = _HOURS.search(text or "")
    mins = _MINUTES.search(text or "")
    return (int(hours.group(1)) if hours else 0) * 60 + (int(mins.group(1)) if mins else 0)


def parse_duration(text: str) -> int:
    """Form input to minutes: a bare number is minutes, otherwise '1h 30m' style."""
    text = (text or "").strip().lower()
    if text.isdigit():
        return int(text)
    return parse_time_string(text)


def format_elapsed(seconds) -> str:
    """Live timer text: HH:MM:SS once past an hour, MM:SS before."""
    seconds = max(0, int(seconds))
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


# -------------------------------
# CALENDAR DAYS
# -------------------------------
def get_zone(name: str = "UTC") -> ZoneInfo:
    return ZoneInfo(name or "UTC")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_date(moment: datetime, tz: ZoneInfo) -> date:
    """Calendar day of an instant in the owner's zone."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


def local_today(tz: ZoneInfo, now: datetime = None) -> date:
    return local_date(now or utc_now(), tz)


def day_bounds_utc(day: date, tz: ZoneInfo):
    """[start, end) of a local calendar day, as UTC instants."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
