"""Calendar arithmetic shared by the engines."""

import calendar
from datetime import date, timedelta
from decimal import Decimal

DAYS_PER_MONTH = Decimal("30.4375")  # 365.25 / 12


def add_months(d: date, months: int) -> date:
    """Shift by whole months, clamping to the last day of the target month."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return d.replace(year=year, month=month, day=day)


def add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # Feb 29 into a non-leap year
        return d.replace(year=d.year + years, day=28)


def one_year_before(d: date) -> date:
    """Long-term holding cutoff: tranches dated before this are long-term."""
    return d - timedelta(days=365)
