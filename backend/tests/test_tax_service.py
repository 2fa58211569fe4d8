# Overview: Pytest coverage for sales and excise tax math.

from decimal import Decimal

import pytest

from cannasaas.errors import ValidationError
from cannasaas.services import tax_service

CONFIG = {
    "DEFAULT_TAX_JURISDICTION": "NY",
    "TAX_JURISDICTIONS": {
        "NY": {"sales": "0.08875", "excise": "0.09"},
        "NJ": {"sales": "0.06625", "excise": "0.0"},
    },
}


class TestComputeTaxes:

    def test_new_york_rates_on_ninety_dollars(self):
        tax, excise = tax_service.compute_taxes(9000, Decimal("0.08875"), Decimal("0.09"))
        assert (tax, excise) == (799, 810)
        assert tax_service.compute_total(9000, tax, excise) == 10609

    def test_half_cent_rounds_up(self):
        """100 cents at 0.5% is exactly half a cent."""
        assert tax_service.compute_taxes(100, Decimal("0.005"), Decimal("0")) == (1, 0)

    def test_below_half_cent_rounds_down(self):
        assert tax_service.compute_taxes(100, Decimal("0.0049"), Decimal("0")) == (0, 0)

    def test_string_rates_accepted(self):
        assert tax_service.compute_taxes(9000, "0.08875", "0.09") == (799, 810)

    def test_zero_subtotal(self):
        assert tax_service.compute_taxes(0, Decimal("0.08875"), Decimal("0.09")) == (0, 0)


class TestComputeTotal:

    def test_discount_is_subtracted(self):
        assert tax_service.compute_total(9000, 799, 810, 1000) == 9609

    def test_negative_input_rejected(self):
        with pytest.raises(ValidationError):
            tax_service.compute_total(-1, 0, 0)

    def test_discount_larger_than_order_rejected(self):
        with pytest.raises(ValidationError):
            tax_service.compute_total(1000, 0, 0, 5000)


class TestRatesFor:

    def test_explicit_jurisdiction(self):
        rates = tax_service.rates_for("NJ", CONFIG)
        assert rates.jurisdiction == "NJ"
        assert rates.sales == Decimal("0.06625")
        assert rates.excise == Decimal("0.0")

    def test_default_jurisdiction_when_unset(self):
        rates = tax_service.rates_for(None, CONFIG)
        assert rates.jurisdiction == "NY"
        assert rates.excise == Decimal("0.09")

    def test_unknown_jurisdiction_is_validation_error(self):
        with pytest.raises(ValidationError) as exc:
            tax_service.rates_for("ZZ", CONFIG)
        assert exc.value.details["jurisdiction"] == "ZZ"

    def test_negative_rate_rejected(self):
        config = {"DEFAULT_TAX_JURISDICTION": "XX", "TAX_JURISDICTIONS": {"XX": {"sales": "-0.01", "excise": "0"}}}
        with pytest.raises(ValidationError):
            tax_service.rates_for(None, config)
