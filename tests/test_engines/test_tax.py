"""Tests for the flat-rate tax engine."""

import logging
from decimal import Decimal

from equityplan.engines.rates import RateTable
from equityplan.engines.tax import TaxEngine
from equityplan.models.client import Client
from equityplan.models.enums import TaxRegime, WarningCategory


class TestEffectiveRates:
    def test_table_rates(self, tax_engine: TaxEngine, ca_client: Client):
        rates = tax_engine.get_effective_rates(ca_client)
        assert rates.fed_ordinary_rate == Decimal("0.35")
        assert rates.fed_ltcg_rate == Decimal("0.20")
        assert rates.state_rate == Decimal("0.133")
        assert rates.niit_rate == Decimal("0.038")
        assert rates.warnings == []

    def test_overrides_win(self, tax_engine: TaxEngine):
        client = Client(
            id="c",
            name="Override",
            state="CA",
            tax_bracket=Decimal("32"),
            custom_state_tax_rate=Decimal("5"),
            custom_ltcg_tax_rate=Decimal("18"),
        )
        rates = tax_engine.get_effective_rates(client)
        assert rates.state_rate == Decimal("0.05")
        assert rates.fed_ltcg_rate == Decimal("0.18")

    def test_unknown_state_defaults_to_zero_with_warning(self, tax_engine: TaxEngine):
        client = Client(id="c", name="Nowhere", state="ZZ", tax_bracket=Decimal("24"))
        rates = tax_engine.get_effective_rates(client)
        assert rates.state_rate == Decimal("0")
        assert [w.category for w in rates.warnings] == [WarningCategory.MISSING_STATE_RATE]

    def test_unset_state_warns(self, tax_engine: TaxEngine):
        client = Client(id="c", name="Blank", tax_bracket=Decimal("24"))
        rates = tax_engine.get_effective_rates(client)
        assert rates.warnings[0].category == WarningCategory.MISSING_STATE_RATE

    def test_combined_rates(self, tax_engine: TaxEngine, ca_client: Client):
        assert tax_engine.combined_rate(ca_client, TaxRegime.ORDINARY) == Decimal("0.521")
        assert tax_engine.combined_rate(ca_client, TaxRegime.LTCG) == Decimal("0.371")


class TestCompute:
    def test_ordinary_breakdown(self, tax_engine: TaxEngine, ca_client: Client):
        """$10,000 ordinary in CA at 35%.

        fed = 3,500; state = 1,330; NIIT = 380; total = 5,210
        """
        result = tax_engine.compute(Decimal("10000"), ca_client, TaxRegime.ORDINARY)
        assert result.fed_amount == Decimal("3500.00")
        assert result.state_amount == Decimal("1330.000")
        assert result.niit_amount == Decimal("380.000")
        assert result.total_tax == Decimal("5210")
        assert result.effective_rate == Decimal("0.521")

    def test_ltcg_breakdown(self, tax_engine: TaxEngine, ca_client: Client):
        result = tax_engine.compute(Decimal("10000"), ca_client, TaxRegime.LTCG)
        assert result.fed_amount == Decimal("2000")
        assert result.total_tax == Decimal("3710")

    def test_default_regime_is_ordinary(self, tax_engine: TaxEngine, tx_client: Client):
        result = tax_engine.compute(Decimal("1000"), tx_client)
        assert result.regime == TaxRegime.ORDINARY
        assert result.total_tax == Decimal("1000") * Decimal("0.278")

    def test_non_positive_amount_owes_nothing(self, tax_engine: TaxEngine, ca_client: Client):
        for amount in (Decimal("0"), Decimal("-500")):
            result = tax_engine.compute(amount, ca_client)
            assert result.total_tax == Decimal("0")
            assert result.taxable_amount == Decimal("0")
            assert result.fed_rate == Decimal("0.35")

    def test_total_is_sum_of_parts(self, tax_engine: TaxEngine, ca_client: Client):
        result = tax_engine.compute(Decimal("12345.67"), ca_client, TaxRegime.LTCG)
        assert result.total_tax == result.fed_amount + result.state_amount + result.niit_amount

    def test_breakdowns_add(self, tax_engine: TaxEngine, ca_client: Client):
        a = tax_engine.compute(Decimal("1000"), ca_client)
        b = tax_engine.compute(Decimal("2000"), ca_client)
        combined = a + b
        assert combined.taxable_amount == Decimal("3000")
        assert combined.total_tax == a.total_tax + b.total_tax

    def test_missing_state_logged_at_warning(self, tax_engine: TaxEngine, caplog):
        client = Client(id="c", name="Nowhere", state="ZZ", tax_bracket=Decimal("24"))
        with caplog.at_level(logging.WARNING, logger="equityplan.engines.tax"):
            tax_engine.compute(Decimal("1000"), client)
        assert any("No 2024 state rate for 'ZZ'" in r.getMessage() for r in caplog.records)
        assert all(r.levelno == logging.WARNING for r in caplog.records)

    def test_missing_ltcg_logged_at_warning(self, caplog):
        table = RateTable.for_year(2024).model_copy(update={"ltcg_by_bracket": [(Decimal("30"), Decimal("0.20"))]})
        client = Client(id="c", name="Low", state="TX", tax_bracket=Decimal("12"))
        with caplog.at_level(logging.WARNING, logger="equityplan.engines.tax"):
            rates = TaxEngine(table).get_effective_rates(client)
        assert rates.fed_ltcg_rate == Decimal("0")
        assert [w.category for w in rates.warnings] == [WarningCategory.MISSING_LTCG_RATE]
        assert any("12% bracket" in r.getMessage() for r in caplog.records)


class TestRateTableSelection:
    def setup_method(self):
        self.client = Client(id="c", name="Denver", state="CO", tax_bracket=Decimal("24"))

    def test_default_engine_uses_latest_table(self):
        assert TaxEngine().rates_for().tax_year == RateTable.latest().tax_year

    def test_tax_year_picks_that_years_table(self):
        """CO: 4.25% in the 2024 table, 4.4% in 2025."""
        engine = TaxEngine()
        assert engine.get_effective_rates(self.client, 2024).state_rate == Decimal("0.0425")
        assert engine.get_effective_rates(self.client, 2025).state_rate == Decimal("0.044")
        assert engine.compute(Decimal("1000"), self.client, tax_year=2024).state_amount == Decimal("42.5")

    def test_injected_table_wins_over_tax_year(self, rates_2024: RateTable):
        engine = TaxEngine(rates_2024)
        assert engine.rates_for(2025) is rates_2024
        # 24% + 4.25% + 3.8%
        assert engine.combined_rate(self.client, TaxRegime.ORDINARY, 2025) == Decimal("0.3205")
