"""Syslog packet model and RFC 5424 rendering."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

SEVERITIES = {
    "emerg": 0,
    "panic": 0,
    "alert": 1,
    "crit": 2,
    "err": 3,
    "error": 3,
    "warn": 4,
    "warning": 4,
    "notice": 5,
    "info": 6,
    "debug": 7,
}

FACILITIES = {
    "kern": 0,
    "user": 1,
    "mail": 2,
    "daemon": 3,
    "auth": 4,
    "syslog": 5,
    "lpr": 6,
    "news": 7,
    "uucp": 8,
    "cron": 9,
    "authpriv": 10,
    "ftp": 11,
    "ntp": 12,
    "security": 13,
    "console": 14,
    "solaris-cron": 15,
    "local0": 16,
    "local1": 17,
    "local2": 18,
    "local3": 19,
    "local4": 20,
    "local5": 21,
    "local6": 22,
    "local7": 23,
}


def parse_severity(name: str) -> int:
    try:
        return SEVERITIES[name.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown severity {name!r}") from None


def parse_facility(name: str) -> int:
    try:
        return FACILITIES[name.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown facility {name!r}") from None


def rfc3339(ts: datetime) -> str:
    """Second-precision RFC 3339 timestamp, ``Z`` for UTC."""
    if ts.tzinfo is None:
        ts = ts.astimezone()
    text = ts.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


@dataclass(frozen=True)
class Packet:
    severity: int
    facility: int
    hostname: str
    tag: str
    message: str
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def priority(self) -> int:
        return self.facility * 8 + self.severity

    def generate(self, max_size: int = 0) -> str:
        """Render as ``<PRI>1 TIMESTAMP HOST TAG - - - MSG``.

        When *max_size* is positive the result is cut to that many UTF-8
        bytes.
        """
        msg = (
            f"<{self.priority}>1 {rfc3339(self.time)} {self.hostname} "
            f"{self.tag} - - - {self.message}"
        )
        if max_size > 0:
            encoded = msg.encode("utf-8")
            if len(encoded) > max_size:
                msg = encoded[:max_size].decode("utf-8", errors="ignore")
        return msg
