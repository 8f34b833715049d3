"""Turns raw log lines into Log items using configured regular expressions."""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

from nodeproblem.types import Log

logger = logging.getLogger(__name__)

TIMESTAMP_KEY = "timestamp"
MESSAGE_KEY = "message"
TIMESTAMP_FORMAT_KEY = "timestampFormat"

_MONTHS_LONG = ["January", "February", "March", "April", "May", "June", "July",
                "August", "September", "October", "November", "December"]
_MONTHS_SHORT = [m[:3] for m in _MONTHS_LONG]
_DAYS_LONG = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
_DAYS_SHORT = [d[:3] for d in _DAYS_LONG]

# Layout elements, longest first where one is a prefix of another.
_TOKENS: list[tuple[str, str, str]] = [
    ("January", "month_long", "|".join(_MONTHS_LONG)),
    ("Jan", "month_short", "|".join(_MONTHS_SHORT)),
    ("Monday", "ignore", "|".join(_DAYS_LONG)),
    ("Mon", "ignore", "|".join(_DAYS_SHORT)),
    ("MST", "zone_abbr", r"[A-Z]{3,5}|[+-]\d+"),
    ("2006", "year", r"\d{4}"),
    ("-07:00:00", "offset", r"[+-]\d{2}:\d{2}:\d{2}"),
    ("-07:00", "offset", r"[+-]\d{2}:\d{2}"),
    ("-0700", "offset", r"[+-]\d{4}"),
    ("-07", "offset", r"[+-]\d{2}"),
    ("Z07:00:00", "offset", r"Z|[+-]\d{2}:\d{2}:\d{2}"),
    ("Z07:00", "offset", r"Z|[+-]\d{2}:\d{2}"),
    ("Z0700", "offset", r"Z|[+-]\d{4}"),
    ("Z07", "offset", r"Z|[+-]\d{2}"),
    ("002", "ignore", r"\d{3}"),
    ("01", "month", r"\d{2}"),
    ("02", "day", r"\d{2}"),
    ("_2", "day", r" ?\d{1,2}"),
    ("03", "hour12", r"\d{2}"),
    ("04", "minute", r"\d{2}"),
    ("05", "second", r"\d{2}"),
    ("06", "year2", r"\d{2}"),
    ("15", "hour", r"\d{1,2}"),
    ("1", "month", r"\d{1,2}"),
    ("2", "day", r"\d{1,2}"),
    ("3", "hour12", r"\d{1,2}"),
    ("4", "minute", r"\d{1,2}"),
    ("5", "second", r"\d{1,2}"),
    ("PM", "ampm", "AM|PM"),
    ("pm", "ampm", "am|pm"),
]

_FRACTION = re.compile(r"[.,](0+|9+)(?!\d)")


class TranslationError(ValueError):
    """Raised when a log line or timestamp cannot be translated."""


def _compile_layout(layout: str) -> tuple[re.Pattern, list[tuple[str, str]]]:
    parts: list[str] = []
    fields: list[tuple[str, str]] = []
    i = 0
    while i < len(layout):
        rest = layout[i:]
        frac = _FRACTION.match(rest)
        if frac:
            group = f"g{len(fields)}"
            digits = frac.group(1)
            if digits[0] == "0":
                parts.append(rf"[.,](?P<{group}>\d{{{len(digits)}}})")
            else:
                parts.append(rf"(?:[.,](?P<{group}>\d+))?")
            fields.append((group, "fraction"))
            i += len(frac.group(0))
            continue
        for token, name, pattern in _TOKENS:
            if rest.startswith(token):
                group = f"g{len(fields)}"
                parts.append(f"(?P<{group}>{pattern})")
                fields.append((group, name))
                i += len(token)
                break
        else:
            parts.append(re.escape(layout[i]))
            i += 1
    return re.compile("".join(parts)), fields


def _parse_offset(text: str) -> timezone:
    if text == "Z":
        return timezone.utc
    sign = -1 if text[0] == "-" else 1
    digits = text[1:].replace(":", "")
    hours = int(digits[0:2])
    minutes = int(digits[2:4] or 0)
    seconds = int(digits[4:6] or 0)
    return timezone(sign * timedelta(hours=hours, minutes=minutes, seconds=seconds))


def parse_go_time(layout: str, value: str) -> datetime:
    """Parse ``value`` with a reference-time layout such as ``Jan _2 15:04:05``.

    Values without a zone are taken as local time; a layout without a year
    yields a time in the current year.
    """
    regex, fields = _compile_layout(layout)
    found = regex.fullmatch(value)
    if found is None:
        raise TranslationError(f"cannot parse {value!r} as {layout!r}")
    year: Optional[int] = None
    month = day = 1
    hour = minute = second = microsecond = 0
    pm: Optional[bool] = None
    tz = None
    zone_abbr: Optional[str] = None
    for group, name in fields:
        text = found.group(group)
        if text is None or name == "ignore":
            continue
        if name == "year":
            year = int(text)
        elif name == "year2":
            short = int(text)
            year = 1900 + short if short >= 69 else 2000 + short
        elif name == "month":
            month = int(text)
        elif name == "month_long":
            month = _MONTHS_LONG.index(text) + 1
        elif name == "month_short":
            month = _MONTHS_SHORT.index(text) + 1
        elif name == "day":
            day = int(text.strip())
        elif name == "hour":
            hour = int(text)
        elif name == "hour12":
            hour = int(text)
            if hour > 12:
                raise TranslationError(f"hour out of range in {value!r}")
        elif name == "minute":
            minute = int(text)
        elif name == "second":
            second = int(text)
        elif name == "fraction":
            microsecond = int(text[:6].ljust(6, "0"))
        elif name == "ampm":
            pm = text.upper() == "PM"
        elif name == "offset":
            tz = _parse_offset(text)
        elif name == "zone_abbr":
            zone_abbr = text
    if pm is not None:
        hour = hour % 12 + (12 if pm else 0)
    if year is None:
        year = datetime.now().year
    try:
        naive = datetime(year, month, day, hour, minute, second, microsecond)
    except ValueError as err:
        raise TranslationError(f"cannot parse {value!r} as {layout!r}: {err}") from None
    if tz is not None:
        return naive.replace(tzinfo=tz)
    if zone_abbr is not None:
        if zone_abbr in ("UTC", "GMT"):
            return naive.replace(tzinfo=timezone.utc)
        if zone_abbr[0] in "+-":
            return naive.replace(tzinfo=timezone(timedelta(hours=int(zone_abbr))))
        if zone_abbr in time.tzname:
            return naive.astimezone()
        return naive.replace(tzinfo=timezone.utc)
    return naive.astimezone()


def validate_plugin_config(config: Mapping[str, str]) -> None:
    """Raise ValueError if a required plugin configuration key is empty."""
    if not config.get(TIMESTAMP_KEY):
        raise ValueError("unexpected empty timestamp regular expression")
    if not config.get(MESSAGE_KEY):
        raise ValueError("unexpected empty message regular expression")
    if not config.get(TIMESTAMP_FORMAT_KEY):
        raise ValueError("unexpected empty timestamp format string")


def _last_submatch(found: re.Match) -> str:
    if found.re.groups == 0:
        return found.group(0)
    return found.group(found.re.groups) or ""


class Translator:
    """Extracts timestamp and message from a line; the last submatch of each wins."""

    def __init__(self, plugin_config: Mapping[str, str]) -> None:
        try:
            validate_plugin_config(plugin_config)
        except ValueError as err:
            logger.error("Failed to validate plugin configuration %r: %s", plugin_config, err)
        self.timestamp_regexp = re.compile(plugin_config.get(TIMESTAMP_KEY, ""))
        self.message_regexp = re.compile(plugin_config.get(MESSAGE_KEY, ""))
        self.timestamp_format = plugin_config.get(TIMESTAMP_FORMAT_KEY, "")

    def translate(self, line: str) -> Log:
        """Translate one log line; raise TranslationError if it does not fit."""
        found = self.timestamp_regexp.search(line)
        if found is None:
            raise TranslationError(
                f"no timestamp found in line {line!r} with regular expression "
                f"{self.timestamp_regexp.pattern}"
            )
        timestamp = parse_go_time(self.timestamp_format, _last_submatch(found))
        found = self.message_regexp.search(line)
        if found is None:
            raise TranslationError(
                f"no message found in line {line!r} with regular expression "
                f"{self.message_regexp.pattern}"
            )
        return Log(timestamp=timestamp, message=_last_submatch(found))