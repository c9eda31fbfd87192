"""iCalendar export of vesting events."""

from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from equityplan.models.results import AggregatedVestingEvent, VestingEvent

TEMPLATE_DIR = Path(__file__).parent / "templates"

CRLF = "\r\n"
MAX_LINE_OCTETS = 75


def ics_escape(value: object) -> str:
    """Escape TEXT per RFC 5545 section 3.3.11."""
    text = str(value)
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def format_shares(shares: Decimal) -> str:
    if shares == shares.to_integral_value():
        return str(int(shares))
    return str(shares.normalize())


def format_money(amount: Decimal) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def _fold(line: str) -> list[str]:
    """Split a content line into 75-octet chunks; continuations start with a space."""
    if len(line.encode("utf-8")) <= MAX_LINE_OCTETS:
        return [line]
    parts: list[str] = []
    current = ""
    for char in line:
        if len((current + char).encode("utf-8")) > MAX_LINE_OCTETS:
            parts.append(current)
            current = " "
        current += char
    parts.append(current)
    return parts


def _describe(event: VestingEvent) -> str:
    lines = [
        f"{format_shares(event.shares)} shares of {event.ticker} ({event.grant_type})",
        f"Gross value: {format_money(event.gross_value)}",
        f"Tax gap: {format_money(event.tax_gap)}",
    ]
    if event.amt_exposure > 0:
        lines.append(f"AMT exposure: {format_money(event.amt_exposure)}")
    if isinstance(event, AggregatedVestingEvent):
        lines.insert(0, f"Client: {event.client_name}")
    return "\n".join(lines)


class CalendarExporter:
    """Renders vesting events as iCalendar (.ics) text."""

    def __init__(self) -> None:
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
        )
        self.env.filters["ics_escape"] = ics_escape
        self.env.filters["shares"] = format_shares

    def render(self, event: VestingEvent, as_of: date) -> str:
        """One VCALENDAR containing a single all-day VEVENT for the vest date."""
        return self.render_many([event], as_of)

    def render_many(self, events: Iterable[VestingEvent], as_of: date) -> str:
        """One VCALENDAR with a VEVENT per event.

        DTSTAMP is taken from as_of so identical inputs render identically.
        """
        template = self.env.get_template("vesting_event.ics")
        rendered = template.render(
            events=list(events),
            dtstamp=as_of.strftime("%Y%m%dT000000Z"),
            next_day=lambda d: d + timedelta(days=1),
            describe=_describe,
        )
        lines = [folded for line in rendered.splitlines() if line for folded in _fold(line)]
        return CRLF.join(lines) + CRLF

    @staticmethod
    def filename(event: VestingEvent) -> str:
        return f"vesting_{event.ticker}_{event.vest_date.isoformat()}.ics"
