"""Tests for SupplyService provisioning and reads."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from production_kernel.exceptions import SupplyNotFoundError
from production_kernel.services.supply_service import SYSTEM_ACTOR_ID


class TestProvisioning:

    def test_get_or_create_uses_settings_defaults(self, supply_service):
        info = supply_service.get_or_create_supply("Hilo Encerado", "m")

        assert info.stock == 0
        assert info.initial_stock == 0
        assert info.min_stock == 0
        assert info.is_low

    def test_existing_supply_returned_unchanged(self, supply_service):
        first = supply_service.get_or_create_supply("Hebilla", "u", starting_stock=Decimal("30"))
        again = supply_service.get_or_create_supply("Hebilla", "u", starting_stock=Decimal("999"))

        assert again.id == first.id
        assert again.stock == Decimal("30")

    def test_created_by_system_actor(self, supply_service):
        supply, created = supply_service.get_or_create_supply_item("Ojalillo", "u")
        assert created
        assert supply.created_by_id == SYSTEM_ACTOR_ID

    def test_same_name_different_unit_is_distinct(self, supply_service):
        a = supply_service.get_or_create_supply("Cuero", "m²")
        b = supply_service.get_or_create_supply("Cuero", "dm²")
        assert a.id != b.id

    def test_register_duplicate_fails(self, supply_service, test_actor_id):
        supply_service.register_supply("Pegamento", "l", Decimal("5"), test_actor_id)
        with pytest.raises(IntegrityError):
            supply_service.register_supply("Pegamento", "l", Decimal("5"), test_actor_id)

    @pytest.mark.parametrize(
        "name, unit, stock, min_stock",
        [
            ("", "u", "1", None),
            ("Tinte", " ", "1", None),
            ("Tinte", "l", "-1", None),
            ("Tinte", "l", "1", "-2"),
        ],
    )
    def test_invalid_input(self, supply_service, test_actor_id, name, unit, stock, min_stock):
        with pytest.raises(ValueError):
            supply_service.register_supply(
                name,
                unit,
                Decimal(stock),
                test_actor_id,
                min_stock=Decimal(min_stock) if min_stock else None,
            )


class TestReads:

    def test_get_unknown_supply(self, supply_service):
        with pytest.raises(SupplyNotFoundError):
            supply_service.get_supply(uuid4())

    def test_list_sorted_by_name(self, supply_service, test_actor_id):
        for name in ("Suela", "Cordón", "Forro"):
            supply_service.register_supply(name, "u", Decimal("10"), test_actor_id)

        assert [s.name for s in supply_service.list_supplies()] == ["Cordón", "Forro", "Suela"]

    def test_low_stock_threshold_is_inclusive(self, supply_service, test_actor_id):
        supply_service.register_supply("A", "u", Decimal("5"), test_actor_id, min_stock=Decimal("5"))
        supply_service.register_supply("B", "u", Decimal("6"), test_actor_id, min_stock=Decimal("5"))

        assert [s.name for s in supply_service.low_stock_supplies()] == ["A"]

    def test_find_supply(self, supply_service, test_actor_id):
        supply_service.register_supply("Tacón", "u", Decimal("3"), test_actor_id)
        assert supply_service.find_supply("Tacón", "u").stock == Decimal("3")
        assert supply_service.find_supply("Tacón", "kg") is None
