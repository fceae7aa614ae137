"""
Tests para el cierre de venta

Cubren:
- Plan de pagos: cambio, saldo pendiente, cuotas y tolerancia
- Terminal.complete_sale: registro SALE en la caja y copia por valor
- Ventas guardadas (pré-venda / orçamento)
- Flujo completo por API
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from pdv_core.common.exceptions import (
    EmptyCart, InvalidPayment, PaymentIncomplete, SavedSaleNotFound, SessionNotOpen
)
from pdv_core.modules.cash.domain import MovementType
from pdv_core.modules.checkout.payments import PaymentMethod, PaymentPlan
from pdv_core.modules.checkout.terminal import SavedSaleKind, SavedSalesBook, Terminal
from pdv_core.modules.pricing.engine import DiscountSpec, Product, SaleDraft


# ===== FIXTURES =====

@pytest.fixture
def draft():
    draft = SaleDraft()
    draft.add_item(Product(product_id="P-001", name="Ração", unit_price=Decimal("45.00")))
    draft.add_item(Product(product_id="P-002", name="Petisco", unit_price=Decimal("12.50")), quantity=2)
    return draft  # total 70.00


@pytest.fixture
def open_session(ledger):
    return ledger.open(Decimal("100.00"))


@pytest.fixture
def terminal(draft, ledger):
    return Terminal(draft, ledger, SavedSalesBook())


# ===== TESTS DEL PLAN DE PAGOS =====

class TestPaymentPlan:

    def test_change(self):
        plan = PaymentPlan(Decimal("81.00"))
        plan.add("money", Decimal("100"))

        assert plan.is_complete
        assert plan.remaining == Decimal("0")
        assert plan.change == Decimal("19.00")

    def test_remaining(self):
        plan = PaymentPlan(Decimal("81.00"))
        plan.add(PaymentMethod.PIX, "30,00")

        assert not plan.is_complete
        assert plan.remaining == Decimal("51.00")
        assert plan.change == Decimal("0")

    def test_split_payment_with_installments(self):
        plan = PaymentPlan(Decimal("81.00"))
        plan.add("pix", "50")
        credit = plan.add("credit", "31", installments=3)

        assert plan.is_complete
        assert credit.installments == 3
        assert plan.total_paid == Decimal("81.00")

    def test_one_cent_tolerance(self):
        plan = PaymentPlan(Decimal("81.00"))
        plan.add("debit", "80.99")
        assert plan.is_complete

        plan = PaymentPlan(Decimal("81.00"))
        plan.add("debit", "80.98")
        assert not plan.is_complete

    def test_installments_defaults(self):
        plan = PaymentPlan(Decimal("10"))
        assert plan.add("credit", "5").installments == 1
        assert plan.add("money", "5", installments=1).installments is None

    @pytest.mark.parametrize("method,amount,installments", [
        ("bitcoin", "10", None),
        ("money", "0", None),
        ("money", "-5", None),
        ("pix", "abc", None),
        ("debit", "10", 2),
        ("credit", "10", 13),
        ("credit", "10", 0),
    ])
    def test_invalid_payments(self, method, amount, installments):
        plan = PaymentPlan(Decimal("10"))
        with pytest.raises(InvalidPayment):
            plan.add(method, amount, installments)
        assert plan.payments == ()

    def test_remove(self):
        plan = PaymentPlan(Decimal("10"))
        payment = plan.add("money", "10")
        plan.remove(payment.id)
        assert plan.payments == ()
        assert plan.remaining == Decimal("10.00")


# ===== TESTS DEL TERMINAL =====

class TestCompleteSale:

    def test_records_sale_and_clears_draft(self, terminal, ledger, open_session, draft):
        sale = terminal.complete_sale([("money", Decimal("100.00"))])

        assert sale.total == Decimal("70.00")
        assert sale.change == Decimal("30.00")
        assert sale.session_id == open_session.id
        assert draft.is_empty

        movements = ledger.movements(open_session.id)
        assert len(movements) == 1
        assert movements[0].type == MovementType.SALE
        assert movements[0].amount == Decimal("70.00")
        assert movements[0].id == sale.movement_id

        # El cambio no entra en la caja: sólo el total de la venta
        assert ledger.current_expected_balance(open_session.id) == Decimal("170.00")

    def test_discounts_reach_the_ledger(self, terminal, ledger, open_session, draft):
        draft.set_item_discount("P-001", DiscountSpec.percent("10+10"))
        draft.set_global_discount(DiscountSpec.fixed("5"))
        # 45.00 - 8.55 = 36.45; + 25.00 = 61.45; - 5.00 = 56.45
        sale = terminal.complete_sale([("pix", "56.45")])

        assert sale.total == Decimal("56.45")
        assert ledger.current_expected_balance(open_session.id) == Decimal("156.45")

    def test_completed_sale_is_a_value_copy(self, terminal, open_session, draft):
        sale = terminal.complete_sale([("money", "70")])
        draft.add_item(Product(product_id="P-003", name="Brinquedo", unit_price=Decimal("99.00")))

        assert sale.total == Decimal("70.00")
        assert [line.product_id for line in sale.snapshot.lines] == ["P-001", "P-002"]

    def test_empty_cart(self, ledger, open_session):
        with pytest.raises(EmptyCart):
            Terminal(SaleDraft(), ledger).complete_sale([("money", "10")])

    def test_requires_open_session(self, terminal, draft):
        with pytest.raises(SessionNotOpen):
            terminal.complete_sale([("money", "70")])
        assert not draft.is_empty

    def test_incomplete_payment_changes_nothing(self, terminal, ledger, open_session, draft):
        with pytest.raises(PaymentIncomplete):
            terminal.complete_sale([("money", "50"), ("pix", "19.98")])

        assert ledger.movements(open_session.id) == []
        assert draft.compute_snapshot().total == Decimal("70.00")

    def test_zero_total_sale_records_no_movement(self, terminal, ledger, open_session, draft):
        draft.set_global_discount(DiscountSpec.percent(100))
        sale = terminal.complete_sale([])

        assert sale.total == Decimal("0")
        assert sale.movement_id is None
        assert ledger.movements(open_session.id) == []

    def test_receipt_data(self, terminal, open_session):
        sale = terminal.complete_sale([("credit", "70", 2)])
        data = sale.as_receipt_data()

        assert data["total"] == Decimal("70.00")
        assert data["sale_id"] == sale.id
        assert data["payments"] == [{"method": "credit", "amount": Decimal("70.00"), "installments": 2}]
        assert len(data["lines"]) == 2


class TestSavedSales:

    def test_save_and_load(self, terminal, draft):
        draft.set_item_discount("P-002", DiscountSpec.percent(10))
        saved = terminal.save_draft(SavedSaleKind.QUOTE, client_name=" Maria ")

        assert draft.is_empty
        assert saved.kind == SavedSaleKind.QUOTE
        assert saved.client_name == "Maria"
        assert saved.total == Decimal("67.50")
        assert terminal.list_saved(SavedSaleKind.QUOTE) == [saved]
        assert terminal.list_saved(SavedSaleKind.PRESALE) == []

        snapshot = terminal.load_saved(saved.id)
        assert snapshot.total == Decimal("67.50")
        assert draft.get_line("P-002").quantity == 2
        assert terminal.list_saved() == []

    def test_load_replaces_current_cart(self, terminal, draft):
        saved = terminal.save_draft()
        draft.add_item(Product(product_id="X", name="X", unit_price=Decimal("1.00")))

        terminal.load_saved(saved.id)
        assert [line.product_id for line in draft.lines] == ["P-001", "P-002"]

    def test_save_empty_cart(self, ledger):
        with pytest.raises(EmptyCart):
            Terminal(SaleDraft(), ledger).save_draft()

    def test_delete_and_unknown(self, terminal):
        saved = terminal.save_draft()
        terminal.delete_saved(saved.id)

        with pytest.raises(SavedSaleNotFound):
            terminal.load_saved(saved.id)
        with pytest.raises(SavedSaleNotFound):
            terminal.delete_saved(uuid4())


# ===== TESTS DE ENDPOINTS =====

class TestCheckoutEndpoints:

    def _draft_with_items(self, client):
        draft_id = client.post("/api/v1/drafts/").json()["id"]
        client.post(f"/api/v1/drafts/{draft_id}/items",
                    json={"product_id": "P-001", "name": "Ração", "unit_price": "45.00"})
        client.post(f"/api/v1/drafts/{draft_id}/items",
                    json={"product_id": "P-002", "name": "Petisco", "unit_price": "12.50", "quantity": 2})
        return draft_id

    def test_complete_sale_flow(self, client):
        session_id = client.post("/api/v1/cash-sessions/open", json={"opening_float": "100.00"}).json()["id"]
        draft_id = self._draft_with_items(client)

        response = client.post(f"/api/v1/drafts/{draft_id}/complete", json={
            "payments": [
                {"method": "money", "amount": "50.00"},
                {"method": "credit", "amount": "30.00", "installments": 3},
            ]
        })
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["snapshot"]["total"]) == Decimal("70.00")
        assert Decimal(data["change"]) == Decimal("10.00")
        assert data["session_id"] == session_id
        assert len(data["payments"]) == 2

        summary = client.get(f"/api/v1/cash-sessions/{session_id}/summary").json()
        assert Decimal(summary["total_sales"]) == Decimal("70.00")
        assert summary["sale_count"] == 1

        draft = client.get(f"/api/v1/drafts/{draft_id}").json()
        assert draft["snapshot"]["lines"] == []

    def test_complete_without_session_is_409(self, client):
        draft_id = self._draft_with_items(client)
        response = client.post(f"/api/v1/drafts/{draft_id}/complete",
                               json={"payments": [{"method": "money", "amount": "70"}]})
        assert response.status_code == 409
        assert response.json()["code"] == "SESSION_NOT_OPEN"

    def test_incomplete_payment_is_409(self, client):
        client.post("/api/v1/cash-sessions/open", json={})
        draft_id = self._draft_with_items(client)
        response = client.post(f"/api/v1/drafts/{draft_id}/complete",
                               json={"payments": [{"method": "pix", "amount": "69.00"}]})
        assert response.status_code == 409
        assert response.json()["code"] == "PAYMENT_INCOMPLETE"

    def test_installments_only_on_credit(self, client):
        draft_id = self._draft_with_items(client)
        response = client.post(f"/api/v1/drafts/{draft_id}/complete",
                               json={"payments": [{"method": "debit", "amount": "70", "installments": 2}]})
        assert response.status_code == 422

    def test_unknown_draft_is_404(self, client):
        response = client.post(f"/api/v1/drafts/{uuid4()}/complete", json={"payments": []})
        assert response.status_code == 404
        assert response.json()["code"] == "DRAFT_NOT_FOUND"

    def test_saved_sales_flow(self, client):
        draft_id = self._draft_with_items(client)

        response = client.post(f"/api/v1/drafts/{draft_id}/save",
                               json={"kind": "presale", "client_name": "João"})
        assert response.status_code == 201
        sale_id = response.json()["id"]
        assert Decimal(response.json()["total"]) == Decimal("70.00")

        listed = client.get("/api/v1/saved-sales/", params={"kind": "presale"}).json()
        assert [s["id"] for s in listed] == [sale_id]

        other_draft = client.post("/api/v1/drafts/").json()["id"]
        response = client.post(f"/api/v1/saved-sales/{sale_id}/load", params={"draft_id": other_draft})
        assert response.status_code == 200
        assert Decimal(response.json()["snapshot"]["total"]) == Decimal("70.00")

        response = client.delete(f"/api/v1/saved-sales/{sale_id}")
        assert response.status_code == 404
        assert response.json()["code"] == "SAVED_SALE_NOT_FOUND"
