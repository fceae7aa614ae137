"""
Tests para el módulo de precios

Cubren:
- Resolución de descuentos en cascata y sus casos inválidos
- Cálculo del snapshot (bruto, descuentos por línea, descuento global)
- Invariantes total <= neto <= bruto para secuencias arbitrarias
- Endpoints de carrito y vista previa de cascata
"""

import random
from decimal import Decimal

import pytest

from pdv_core.common.exceptions import InvalidDiscount, InvalidQuantity, LineNotFound
from pdv_core.modules.pricing.cascade import equivalent_percent, resolve
from pdv_core.modules.pricing.engine import (
    CartLine, DiscountKind, DiscountSpec, Product, SaleDraft,
    compute_global_discount_amount, compute_item_discount_amount, compute_snapshot
)


# ===== FIXTURES =====

@pytest.fixture
def racao():
    return Product(product_id="P-001", name="Ração Premium 1kg", unit_price=Decimal("10.00"))


@pytest.fixture
def coleira():
    return Product(product_id="P-002", name="Coleira", unit_price=Decimal("25.50"))


@pytest.fixture
def draft():
    return SaleDraft()


# ===== TESTS DE CASCATA =====

class TestCascadeResolver:
    """Tests para la resolución de descuentos en cascata"""

    def test_cascade_is_not_a_sum(self):
        result = resolve("10+10")
        assert result.valid
        assert result.equivalent_percent == Decimal("19")
        assert result.equivalent_percent != Decimal("20")

    def test_single_percent(self):
        result = resolve("10")
        assert result.valid
        assert result.equivalent_percent == Decimal("10")
        assert not result.is_cascade

    def test_step_by_step_breakdown(self):
        steps = resolve("10+10").breakdown(Decimal("10.00"))
        assert len(steps) == 2
        assert steps[0].base == Decimal("10.00")
        assert steps[0].discount == Decimal("1.00")
        assert steps[0].result == Decimal("9.00")
        assert steps[1].base == Decimal("9.00")
        assert steps[1].discount == Decimal("0.90")
        assert steps[1].result == Decimal("8.10")

    def test_apply_rounds_only_at_the_end(self):
        assert resolve("10+10").apply(Decimal("10.00")) == Decimal("8.10")
        # 33.33 * 0.9 * 0.95 = 28.497... -> 28.50
        assert resolve("10+5").apply(Decimal("33.33")) == Decimal("28.50")

    def test_three_steps(self):
        assert resolve("50+50+50").equivalent_percent == Decimal("87.5")

    def test_comma_and_whitespace(self):
        result = resolve(" 10,5 + 2 ")
        assert result.valid
        assert result.percentages == (Decimal("10.5"), Decimal("2"))

    def test_full_discount(self):
        assert resolve("100+10").equivalent_percent == Decimal("100")

    @pytest.mark.parametrize("expression", [
        "", "   ", "10+150", "150", "-5", "10+-5", "+10", "10+", "10++5", "abc", "10+x", "nan", "inf",
        "1_0", "1e1", "10+1E2", "0x10",
    ])
    def test_invalid_expressions(self, expression):
        result = resolve(expression)
        assert not result.valid
        assert result.error
        assert result.equivalent_percent is None
        assert result.breakdown(Decimal("10")) == []

    def test_non_string_is_invalid(self):
        assert not resolve(None).valid
        assert equivalent_percent("10+") is None


# ===== TESTS DE DESCUENTOS =====

class TestDiscountSpec:

    def test_percent_from_cascade_stores_equivalent(self):
        spec = DiscountSpec.percent("10+10")
        assert spec.kind == DiscountKind.PERCENT
        assert spec.value == Decimal("19")
        assert spec.expression == "10+10"

    def test_percent_from_invalid_expression(self):
        with pytest.raises(InvalidDiscount):
            DiscountSpec.percent("10+")

    def test_validate_rejects_negative_fixed(self):
        with pytest.raises(InvalidDiscount):
            DiscountSpec.fixed("-1").validate()

    def test_validate_rejects_percent_over_100(self):
        with pytest.raises(InvalidDiscount):
            DiscountSpec(kind=DiscountKind.PERCENT, value=Decimal("100.01")).validate()

    def test_item_discount_amount(self):
        line = CartLine(product_id="A", name="A", unit_price=Decimal("10.00"), quantity=2,
                        discount=DiscountSpec.percent(10))
        assert compute_item_discount_amount(line) == Decimal("2.00")

    def test_global_discount_amount(self):
        assert compute_global_discount_amount(None, Decimal("90")) == Decimal("0")
        assert compute_global_discount_amount(DiscountSpec.percent(10), Decimal("90.00")) == Decimal("9.00")
        assert compute_global_discount_amount(DiscountSpec.fixed("5"), Decimal("90.00")) == Decimal("5.00")


# ===== TESTS DEL CARRITO =====

class TestSaleDraft:

    def test_same_product_increments_quantity(self, draft, racao):
        draft.add_item(racao)
        snapshot = draft.add_item(racao)

        assert len(snapshot.lines) == 1
        assert snapshot.lines[0].quantity == 2
        assert snapshot.gross == Decimal("20.00")
        assert snapshot.item_count == 2

    def test_touched_line_moves_to_end(self, draft, racao, coleira):
        draft.add_item(racao)
        draft.add_item(coleira)
        snapshot = draft.add_item(racao)
        assert [line.product_id for line in snapshot.lines] == ["P-002", "P-001"]

    def test_add_with_quantity_and_mapping_product(self, draft):
        snapshot = draft.add_item({"product_id": "X", "name": "Vaso", "unit_price": "7,50"}, quantity=3)
        assert snapshot.gross == Decimal("22.50")

    def test_invalid_quantity(self, draft, racao):
        with pytest.raises(InvalidQuantity):
            draft.add_item(racao, quantity=0)

    def test_remove_absent_is_noop(self, draft, racao):
        draft.add_item(racao)
        snapshot = draft.remove_item("nope")
        assert len(snapshot.lines) == 1

    def test_set_quantity_zero_removes_line(self, draft, racao):
        draft.add_item(racao)
        assert draft.set_quantity("P-001", 0).is_empty

    def test_set_quantity_unknown_product(self, draft):
        with pytest.raises(LineNotFound):
            draft.set_quantity("nope", 2)

    def test_item_discount_unknown_product(self, draft):
        with pytest.raises(LineNotFound):
            draft.set_item_discount("nope", DiscountSpec.percent(5))

    def test_setter_rejects_negative_fixed(self, draft, racao):
        draft.add_item(racao)
        with pytest.raises(InvalidDiscount):
            draft.set_item_discount("P-001", DiscountSpec.fixed("-2"))
        with pytest.raises(InvalidDiscount):
            draft.set_global_discount(DiscountSpec(kind=DiscountKind.FIXED, value=Decimal("-0.01")))
        assert draft.compute_snapshot().total == Decimal("10.00")

    def test_cascade_item_discount(self, draft, racao):
        draft.add_item(racao)
        snapshot = draft.set_item_discount("P-001", DiscountSpec.percent("10+10"))
        assert snapshot.item_discount_total == Decimal("1.90")
        assert snapshot.total == Decimal("8.10")
        assert snapshot.lines[0].discount.value == Decimal("19")

    def test_global_discount_compounds_after_item_discounts(self, draft):
        draft.add_item(Product(product_id="A", name="A", unit_price=Decimal("100.00")))
        draft.set_item_discount("A", DiscountSpec.percent(10))
        snapshot = draft.set_global_discount(DiscountSpec.percent(10))

        assert snapshot.gross == Decimal("100.00")
        assert snapshot.net_after_item_discounts == Decimal("90.00")
        assert snapshot.global_discount_amount == Decimal("9.00")
        assert snapshot.total == Decimal("81.00")
        assert snapshot.total_discounts == Decimal("19.00")
        assert snapshot.savings_percent == Decimal("19.00")

    def test_new_global_discount_replaces_old(self, draft, racao):
        draft.add_item(racao)
        draft.set_global_discount(DiscountSpec.percent(50))
        snapshot = draft.set_global_discount(DiscountSpec.fixed("1.00"))
        assert snapshot.total == Decimal("9.00")
        assert draft.set_global_discount(None).total == Decimal("10.00")

    def test_fixed_item_discount_may_exceed_line_gross(self, draft, racao, coleira):
        draft.add_item(racao)
        draft.add_item(coleira)
        snapshot = draft.set_item_discount("P-001", DiscountSpec.fixed("15.00"))

        # El descuento no se limita en la línea; sólo el neto de la línea llega a 0
        assert snapshot.lines[0].discount_amount == Decimal("15.00")
        assert snapshot.lines[0].net == Decimal("0")
        assert snapshot.item_discount_total == Decimal("15.00")
        assert snapshot.net_after_item_discounts == Decimal("25.50")
        assert snapshot.total == Decimal("25.50")

    def test_global_fixed_larger_than_net_clamps_total(self, draft, racao):
        draft.add_item(racao)
        snapshot = draft.set_global_discount(DiscountSpec.fixed("50"))
        assert snapshot.total == Decimal("0")
        assert snapshot.global_discount_amount == Decimal("50.00")

    def test_empty_draft(self, draft):
        snapshot = draft.compute_snapshot()
        assert snapshot.is_empty
        assert snapshot.total == Decimal("0")
        assert snapshot.savings_percent == Decimal("0")

    def test_compute_snapshot_is_idempotent(self, draft, racao, coleira):
        draft.add_item(racao)
        draft.add_item(coleira)
        draft.set_item_discount("P-002", DiscountSpec.percent("5+5"))
        draft.set_global_discount(DiscountSpec.fixed("2"))
        assert draft.compute_snapshot() == draft.compute_snapshot()
        assert compute_snapshot(draft.lines, draft.global_discount) == draft.compute_snapshot()

    def test_snapshot_is_a_value(self, draft, racao):
        before = draft.add_item(racao)
        draft.add_item(racao)
        assert before.total == Decimal("10.00")
        assert before.lines[0].quantity == 1

    def test_lines_are_copies(self, draft, racao):
        draft.add_item(racao)
        draft.lines[0].quantity = 99
        assert draft.get_line("P-001").quantity == 1

    def test_clear(self, draft, racao):
        draft.add_item(racao)
        draft.set_global_discount(DiscountSpec.percent(5))
        assert draft.clear().is_empty
        assert draft.global_discount is None


class TestPricingInvariants:
    """total <= neto tras descuentos por línea <= bruto, todos >= 0"""

    def _random_spec(self, rng):
        if rng.random() < 0.5:
            expression = "+".join(str(rng.randint(0, 100)) for _ in range(rng.randint(1, 3)))
            return DiscountSpec.percent(expression)
        return DiscountSpec.fixed(Decimal(rng.randint(0, 5000)) / 100)

    @pytest.mark.parametrize("seed", range(25))
    def test_random_sequences(self, seed):
        rng = random.Random(seed)
        draft = SaleDraft()
        products = [
            Product(product_id=f"P{i}", name=f"Produto {i}", unit_price=Decimal(rng.randint(1, 9999)) / 100)
            for i in range(6)
        ]

        for _ in range(40):
            action = rng.random()
            product = rng.choice(products)
            if action < 0.4:
                snapshot = draft.add_item(product, rng.randint(1, 3))
            elif action < 0.5:
                snapshot = draft.remove_item(product.product_id)
            elif action < 0.8 and not draft.is_empty:
                target = rng.choice(draft.lines).product_id
                spec = None if rng.random() < 0.2 else self._random_spec(rng)
                snapshot = draft.set_item_discount(target, spec)
            else:
                spec = None if rng.random() < 0.2 else self._random_spec(rng)
                snapshot = draft.set_global_discount(spec)

            assert snapshot.total >= 0
            assert snapshot.net_after_item_discounts >= 0
            assert snapshot.gross >= 0
            assert snapshot.total <= snapshot.net_after_item_discounts <= snapshot.gross
            assert snapshot.total == snapshot.total.quantize(Decimal("0.01"))


# ===== TESTS DE ENDPOINTS =====

class TestPricingEndpoints:

    def test_cascade_preview(self, client):
        response = client.post("/api/v1/pricing/cascade/resolve", json={"expression": "10+10", "base": "10.00"})
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert Decimal(data["equivalent_percent"]) == Decimal("19")
        assert [Decimal(s["result"]) for s in data["steps"]] == [Decimal("9.00"), Decimal("8.10")]
        assert Decimal(data["final_value"]) == Decimal("8.10")

    def test_cascade_preview_invalid_is_not_an_error(self, client):
        response = client.post("/api/v1/pricing/cascade/resolve", json={"expression": "10+150"})
        assert response.status_code == 200
        assert response.json()["valid"] is False

    def test_long_expression_is_resolved_not_rejected(self, client):
        response = client.post("/api/v1/pricing/cascade/resolve", json={"expression": "1+" * 60})
        assert response.status_code == 200
        assert response.json()["valid"] is False

        response = client.post("/api/v1/pricing/cascade/resolve", json={"expression": "+".join(["1"] * 60)})
        assert response.status_code == 200
        assert response.json()["valid"] is True

    def test_draft_flow(self, client):
        draft_id = client.post("/api/v1/drafts/").json()["id"]
        item = {"product_id": "P-001", "name": "Ração", "unit_price": "10.00"}

        client.post(f"/api/v1/drafts/{draft_id}/items", json=item)
        response = client.post(f"/api/v1/drafts/{draft_id}/items", json=item)
        snapshot = response.json()["snapshot"]
        assert len(snapshot["lines"]) == 1
        assert snapshot["lines"][0]["quantity"] == 2

        response = client.put(f"/api/v1/drafts/{draft_id}/items/P-001/discount",
                              json={"kind": "percent", "value": "10+10"})
        assert Decimal(response.json()["snapshot"]["total"]) == Decimal("16.20")

        response = client.put(f"/api/v1/drafts/{draft_id}/discount", json={"kind": "fixed", "value": "1.20"})
        assert Decimal(response.json()["snapshot"]["total"]) == Decimal("15.00")

        response = client.delete(f"/api/v1/drafts/{draft_id}/items/P-001")
        assert response.json()["snapshot"]["lines"] == []

    def test_invalid_discount_is_422(self, client):
        draft_id = client.post("/api/v1/drafts/").json()["id"]
        client.post(f"/api/v1/drafts/{draft_id}/items",
                    json={"product_id": "A", "unit_price": "5.00"})
        response = client.put(f"/api/v1/drafts/{draft_id}/items/A/discount",
                              json={"kind": "percent", "value": "10+"})
        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_DISCOUNT"

    def test_discount_on_missing_line_is_404(self, client):
        draft_id = client.post("/api/v1/drafts/").json()["id"]
        response = client.put(f"/api/v1/drafts/{draft_id}/items/nope/discount",
                              json={"kind": "fixed", "value": "1"})
        assert response.status_code == 404
        assert response.json()["code"] == "LINE_NOT_FOUND"
