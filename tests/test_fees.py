"""Unit tests for the fee calculator."""

import pytest
from pydantic import ValidationError

from app.core.errors import InvalidAmount
from app.core.fees import FeeSchedule, calculate_fees, format_amount

SCHEDULE = FeeSchedule(processor_bps=290, processor_flat=30, platform_bps=500)


class TestCalculateFees:
    def test_reference_donation(self):
        fees = calculate_fees(5000, "usd", SCHEDULE)
        assert fees.processor_fee == 175
        assert fees.platform_fee == 250
        assert fees.net_amount == 4575
        assert fees.total_fees == 425
        assert fees.total_charge == 5425

    def test_currency_is_lowercased(self):
        assert calculate_fees(1000, "USD", SCHEDULE).currency == "usd"

    @pytest.mark.parametrize("gross", [1, 2, 29, 30, 31, 33, 99, 100, 101, 1234, 99_999, 10_000_000])
    def test_parts_sum_to_gross(self, gross):
        fees = calculate_fees(gross, "usd", SCHEDULE)
        assert fees.processor_fee + fees.platform_fee + fees.net_amount == gross

    def test_fees_and_net_never_decrease(self):
        previous = calculate_fees(1, "usd", SCHEDULE)
        for gross in range(2, 20_000):
            current = calculate_fees(gross, "usd", SCHEDULE)
            assert current.net_amount >= previous.net_amount, gross
            assert current.processor_fee >= previous.processor_fee, gross
            assert current.platform_fee >= previous.platform_fee, gross
            previous = current

    def test_small_amounts_never_go_negative(self):
        fees = calculate_fees(10, "usd", SCHEDULE)
        assert fees.net_amount == 0
        assert fees.processor_fee == 10
        assert fees.platform_fee == 0

    def test_zero_rate_schedule(self):
        fees = calculate_fees(
            1000, "usd", FeeSchedule(processor_bps=0, processor_flat=0, platform_bps=0)
        )
        assert fees.net_amount == 1000
        assert fees.total_charge == 1000

    def test_uses_configured_schedule_by_default(self):
        assert calculate_fees(5000).processor_fee == 175

    @pytest.mark.parametrize("amount", [0, -1, -5000, 10.5, 50.0, "5000", None, True])
    def test_rejects_invalid_amounts(self, amount):
        with pytest.raises(InvalidAmount):
            calculate_fees(amount, "usd", SCHEDULE)


class TestFeeSchedule:
    @pytest.mark.parametrize(
        "overrides",
        [{"processor_flat": -30}, {"processor_bps": -1}, {"platform_bps": -500}],
    )
    def test_rejects_negative_rates(self, overrides):
        with pytest.raises(ValidationError):
            FeeSchedule(**overrides)

    def test_rejects_combined_rate_over_100_percent(self):
        with pytest.raises(ValidationError):
            FeeSchedule(processor_bps=6000, platform_bps=5000)

    def test_full_rate_leaves_nothing_but_never_negative(self):
        fees = calculate_fees(
            1000, "usd", FeeSchedule(processor_bps=5000, processor_flat=30, platform_bps=5000)
        )
        assert fees.net_amount == 0
        assert fees.processor_fee + fees.platform_fee == 1000


class TestFormatAmount:
    @pytest.mark.parametrize(
        "cents, text",
        [(0, "0.00"), (5, "0.05"), (5425, "54.25"), (100000, "1000.00"), (-250, "-2.50")],
    )
    def test_formats_minor_units(self, cents, text):
        assert format_amount(cents) == text
