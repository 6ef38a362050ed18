"""Tests for quantity coercion, DTO parsing and the clock helpers."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from production_kernel.domain.clock import DeterministicClock, local_day_bounds, resolve_timezone
from production_kernel.domain.dtos import ConsumptionLine, RequirementLine
from production_kernel.domain.quantities import as_utc, to_quantity
from production_kernel.exceptions import InvalidConsumptionQuantityError


class TestToQuantity:

    def test_float_goes_through_str(self):
        assert to_quantity(0.1) == Decimal("0.1000")

    def test_rounds_to_four_places(self):
        assert to_quantity("1.23456") == Decimal("1.2346")

    @pytest.mark.parametrize("value", [None, True, "abc", "NaN", "Infinity", object()])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            to_quantity(value)

    def test_as_utc_marks_naive_values(self):
        naive = datetime(2024, 1, 1, 8, 0)
        assert as_utc(naive) == datetime(2024, 1, 1, 8, 0, tzinfo=UTC)
        assert as_utc(None) is None


class TestConsumptionLineParse:

    def test_mapping_with_string_values(self):
        supply_id = uuid4()
        line = ConsumptionLine.parse({"supply_id": str(supply_id), "quantity": "4"})
        assert line == ConsumptionLine(supply_id=supply_id, quantity=Decimal("4"))

    def test_zero_is_allowed(self):
        line = ConsumptionLine.parse({"supply_id": uuid4(), "quantity": 0})
        assert line.quantity == 0

    @pytest.mark.parametrize("quantity", [-1, "-0.5", "lots", None])
    def test_negative_or_non_numeric_rejected(self, quantity):
        with pytest.raises(InvalidConsumptionQuantityError):
            ConsumptionLine.parse({"supply_id": uuid4(), "quantity": quantity})

    def test_more_than_four_places_rejected(self):
        with pytest.raises(InvalidConsumptionQuantityError):
            ConsumptionLine.parse({"supply_id": uuid4(), "quantity": "0.00004"})

    @pytest.mark.parametrize("quantity", ["1.2345", "2.50000", 0.25])
    def test_four_places_or_fewer_accepted(self, quantity):
        line = ConsumptionLine.parse({"supply_id": uuid4(), "quantity": quantity})
        assert line.quantity == Decimal(str(quantity))

    def test_malformed_supply_id_rejected(self):
        with pytest.raises(InvalidConsumptionQuantityError):
            ConsumptionLine.parse({"supply_id": "not-a-uuid", "quantity": 1})


class TestRequirementLine:

    def test_remaining_never_negative(self):
        line = RequirementLine(
            supply_id=uuid4(),
            name="Cordones",
            unit="u",
            required=Decimal("100"),
            available=Decimal("400"),
            total_consumed=Decimal("120"),
            min_stock=Decimal("0"),
        )
        assert line.remaining == 0
        assert line.used == 0


class TestClock:

    def test_deterministic_clock_requires_aware_time(self):
        with pytest.raises(ValueError):
            DeterministicClock(datetime(2024, 1, 1))

    def test_tick_advances_one_second(self):
        clock = DeterministicClock()
        start = clock.now()
        assert clock.tick() == start + timedelta(seconds=1)

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            resolve_timezone("Mars/Olympus_Mons")

    def test_day_bounds_in_utc(self):
        start, end = local_day_bounds(datetime(2024, 1, 1, 12, 0, tzinfo=UTC), UTC)
        assert start == datetime(2024, 1, 1, tzinfo=UTC)
        assert end == datetime(2024, 1, 2, tzinfo=UTC)

    def test_day_bounds_follow_local_midnight(self):
        bogota = resolve_timezone("America/Bogota")
        # 02:00 UTC on Jan 2 is still Jan 1 in Bogota (UTC-5)
        start, end = local_day_bounds(datetime(2024, 1, 2, 2, 0, tzinfo=UTC), bogota)
        assert start == datetime(2024, 1, 1, 5, 0, tzinfo=UTC)
        assert end == datetime(2024, 1, 2, 5, 0, tzinfo=UTC)
