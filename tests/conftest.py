"""Shared test fixtures for equityplan."""

from datetime import date
from decimal import Decimal

import pytest

from equityplan.engines.rates import RateTable
from equityplan.engines.tax import TaxEngine
from equityplan.models.client import Client, PlannedExercise
from equityplan.models.enums import FilingStatus
from equityplan.models.grant import ESPPGrant, ISOGrant, NSOGrant, RSUGrant


@pytest.fixture
def rates_2024() -> RateTable:
    return RateTable.for_year(2024)


@pytest.fixture
def tax_engine(rates_2024: RateTable) -> TaxEngine:
    return TaxEngine(rates_2024)


@pytest.fixture
def rsu_grant() -> RSUGrant:
    """4,800-share cliff grant: 1,200 at the cliff, then 300 per quarter."""
    return RSUGrant(
        id="rsu-001",
        ticker="ACME",
        company_name="Acme Corp",
        total_shares=Decimal("4800"),
        grant_date=date(2022, 3, 15),
        current_price=Decimal("100.00"),
        grant_price=Decimal("80.00"),
        withholding_rate=Decimal("22"),
    )


@pytest.fixture
def iso_grant() -> ISOGrant:
    """4,000-share cliff ISO: 1,000 at the cliff (2024-01-01), then 250 per quarter."""
    return ISOGrant(
        id="iso-001",
        ticker="ACME",
        company_name="Acme Corp",
        total_shares=Decimal("4000"),
        grant_date=date(2023, 1, 1),
        current_price=Decimal("50.00"),
        strike_price=Decimal("10.00"),
    )


@pytest.fixture
def nso_grant() -> NSOGrant:
    return NSOGrant(
        id="nso-001",
        ticker="ACME",
        total_shares=Decimal("1600"),
        grant_date=date(2023, 6, 1),
        vesting_schedule="standard_4y_quarterly",
        current_price=Decimal("50.00"),
        strike_price=Decimal("20.00"),
    )


@pytest.fixture
def espp_grant() -> ESPPGrant:
    return ESPPGrant(
        id="espp-001",
        ticker="ACME",
        total_shares=Decimal("100"),
        grant_date=date(2024, 1, 1),
        current_price=Decimal("60.00"),
        purchase_price=Decimal("34.00"),
        discount_percent=Decimal("15"),
        offering_start_date=date(2024, 1, 1),
        offering_end_date=date(2024, 6, 30),
        fmv_at_offering_start=Decimal("40.00"),
        fmv_at_purchase=Decimal("50.00"),
    )


@pytest.fixture
def ca_client(rsu_grant: RSUGrant, iso_grant: ISOGrant) -> Client:
    """Single CA filer in the 35% bracket.

    Ordinary = 35% + 13.3% + 3.8% = 52.1%; LTCG = 20% + 13.3% + 3.8% = 37.1%.
    """
    return Client(
        id="client-001",
        name="Jane Doe",
        state="CA",
        filing_status=FilingStatus.SINGLE,
        tax_bracket=Decimal("35"),
        estimated_income=Decimal("400000"),
        grants=[rsu_grant, iso_grant],
    )


@pytest.fixture
def tx_client() -> Client:
    """Single TX filer in the 24% bracket: no state tax, 15% LTCG."""
    return Client(
        id="client-002",
        name="Sam Roe",
        state="TX",
        tax_bracket=Decimal("24"),
    )


@pytest.fixture
def planned_exercise() -> PlannedExercise:
    return PlannedExercise(
        id="ex-001",
        grant_id="iso-001",
        grant_ticker="ACME",
        shares=Decimal("1000"),
        exercise_date=date(2024, 2, 1),
        exercise_price=Decimal("10.00"),
        fmv_at_exercise=Decimal("50.00"),
        amt_exposure=Decimal("40000"),
        estimated_cost=Decimal("10000"),
    )
