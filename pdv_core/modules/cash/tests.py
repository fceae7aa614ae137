"""
Tests para el ledger de caja

Cubren:
- Apertura, movimientos y cierre con arqueo
- Saldo esperado recalculado desde el historial
- Rechazo de sangrías sin saldo y de movimientos en caja cerrada
- Detección de historiales corruptos
- Ambos repositorios (memoria y SQLAlchemy) con el mismo comportamiento
- Endpoints de caja
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from pdv_core.common.exceptions import (
    InsufficientBalance, InvalidAmount, LedgerCorrupted, SessionAlreadyOpen,
    SessionNotFound, SessionNotOpen, StaleLedger
)
from pdv_core.modules.cash.domain import (
    CashMovement, CashSession, MovementType, SessionStatus
)
from pdv_core.modules.cash.ledger import replay_balance


NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _movement(session_id, sequence, type, amount):
    return CashMovement(
        id=uuid4(),
        session_id=session_id,
        sequence=sequence,
        type=type,
        amount=Decimal(amount),
        created_at=NOW
    )


# ===== TESTS DEL LEDGER =====

class TestCashLedger:
    """Comportamiento del ledger sobre ambos repositorios"""

    def test_open_creates_open_session(self, ledger):
        session = ledger.open(Decimal("100.00"), operator=" Ana ")

        assert session.is_open
        assert session.opening_float == Decimal("100.00")
        assert session.operator == "Ana"
        assert ledger.current_session().id == session.id
        assert ledger.current_expected_balance(session.id) == Decimal("100.00")

    def test_double_open_is_rejected(self, ledger):
        ledger.open(Decimal("50"))
        with pytest.raises(SessionAlreadyOpen):
            ledger.open(Decimal("10"))

    def test_negative_opening_float(self, ledger):
        with pytest.raises(InvalidAmount):
            ledger.open(Decimal("-1"))
        assert ledger.current_session() is None

    def test_sale_and_sangria_update_expected_balance(self, ledger):
        session = ledger.open(Decimal("100.00"))
        ledger.record_sale(session.id, Decimal("50.00"))
        ledger.record_movement(session.id, MovementType.SANGRIA, Decimal("30.00"), reason="deposito")

        assert ledger.current_expected_balance(session.id) == Decimal("120.00")

    def test_suprimento_adds_to_balance(self, ledger):
        session = ledger.open(Decimal("0"))
        ledger.record_movement(session.id, "suprimento", "25,00")
        assert ledger.current_expected_balance(session.id) == Decimal("25.00")

    def test_sangria_above_balance_is_rejected(self, ledger):
        session = ledger.open(Decimal("100.00"))
        ledger.record_sale(session.id, Decimal("50.00"))

        with pytest.raises(InsufficientBalance):
            ledger.record_movement(session.id, MovementType.SANGRIA, Decimal("200.00"))

        assert ledger.current_expected_balance(session.id) == Decimal("150.00")
        assert len(ledger.movements(session.id)) == 1

    def test_sangria_of_entire_balance(self, ledger):
        session = ledger.open(Decimal("40.00"))
        ledger.record_movement(session.id, MovementType.SANGRIA, Decimal("40.00"))
        assert ledger.current_expected_balance(session.id) == Decimal("0")

    @pytest.mark.parametrize("amount", ["0", "-5", "abc"])
    def test_non_positive_amounts_are_rejected(self, ledger, amount):
        session = ledger.open(Decimal("100"))
        with pytest.raises(InvalidAmount):
            ledger.record_movement(session.id, MovementType.SUPRIMENTO, amount)
        with pytest.raises(InvalidAmount):
            ledger.record_sale(session.id, amount)

    def test_sale_is_not_a_manual_movement(self, ledger):
        session = ledger.open(Decimal("100"))
        with pytest.raises(InvalidAmount):
            ledger.record_movement(session.id, MovementType.SALE, Decimal("10"))
        with pytest.raises(InvalidAmount):
            ledger.record_movement(session.id, "estorno", Decimal("10"))

    def test_movements_keep_insertion_order(self, ledger):
        session = ledger.open(Decimal("100"))
        ledger.record_sale(session.id, Decimal("10"))
        ledger.record_movement(session.id, MovementType.SUPRIMENTO, Decimal("5"))
        ledger.record_movement(session.id, MovementType.SANGRIA, Decimal("7"))

        movements = ledger.movements(session.id)
        assert [m.type for m in movements] == [MovementType.SALE, MovementType.SUPRIMENTO, MovementType.SANGRIA]
        assert [m.sequence for m in movements] == [1, 2, 3]
        assert [m.signed_amount for m in movements] == [Decimal("10"), Decimal("5"), Decimal("-7")]

    @pytest.mark.parametrize("counted,difference,flags", [
        ("115.00", "-5.00", (True, False, False)),
        ("125.00", "5.00", (False, True, False)),
        ("120.00", "0", (False, False, True)),
    ])
    def test_close_reports_difference(self, ledger, counted, difference, flags):
        session = ledger.open(Decimal("100.00"))
        ledger.record_sale(session.id, Decimal("50.00"))
        ledger.record_movement(session.id, MovementType.SANGRIA, Decimal("30.00"))

        closing = ledger.close(session.id, Decimal(counted), observations="  ")

        assert closing.expected == Decimal("120.00")
        assert closing.counted == Decimal(counted)
        assert closing.difference == Decimal(difference)
        assert (closing.is_shortage, closing.is_overage, closing.is_balanced) == flags
        assert closing.observations is None

    def test_closed_session_is_terminal(self, ledger):
        session = ledger.open(Decimal("100"))
        ledger.close(session.id, Decimal("100"))

        assert ledger.current_session() is None
        assert ledger.get_session(session.id).status == SessionStatus.CLOSED
        assert ledger.get_session(session.id).closed_at is not None

        with pytest.raises(SessionNotOpen):
            ledger.record_sale(session.id, Decimal("10"))
        with pytest.raises(SessionNotOpen):
            ledger.record_movement(session.id, MovementType.SUPRIMENTO, Decimal("10"))
        with pytest.raises(SessionNotOpen):
            ledger.close(session.id, Decimal("100"))

        # El historial sigue consultable
        assert ledger.current_expected_balance(session.id) == Decimal("100")
        assert ledger.get_closing(session.id).difference == Decimal("0")

    def test_reopen_after_close_creates_new_session(self, ledger):
        first = ledger.open(Decimal("100"))
        ledger.close(first.id, Decimal("100"))
        second = ledger.open(Decimal("20"))

        assert second.id != first.id
        assert ledger.current_expected_balance(second.id) == Decimal("20")
        assert len(ledger.list_sessions()) == 2
        assert [s.id for s in ledger.list_sessions(status=SessionStatus.OPEN)] == [second.id]

    def test_unknown_session(self, ledger):
        with pytest.raises(SessionNotFound):
            ledger.get_session(uuid4())
        with pytest.raises(SessionNotFound):
            ledger.record_sale(uuid4(), Decimal("10"))

    def test_timestamps_stay_in_utc(self, ledger):
        session = ledger.open(Decimal("10.00"))
        movement = ledger.record_sale(session.id, Decimal("5.00"))
        closing = ledger.close(session.id, Decimal("15.00"))

        reread = ledger.get_session(session.id)
        assert reread.opened_at.tzinfo is not None
        assert reread.opened_at == session.opened_at
        assert reread.closed_at.tzinfo is not None
        assert reread.closed_at == closing.closed_at
        assert ledger.movements(session.id)[0].created_at == movement.created_at
        assert ledger.movements(session.id)[0].created_at.tzinfo is not None
        assert ledger.get_closing(session.id).closed_at.tzinfo is not None

    def test_summary(self, ledger):
        session = ledger.open(Decimal("100.00"))
        ledger.record_sale(session.id, Decimal("50.00"))
        ledger.record_sale(session.id, Decimal("19.90"))
        ledger.record_movement(session.id, MovementType.SANGRIA, Decimal("30.00"))
        ledger.record_movement(session.id, MovementType.SUPRIMENTO, Decimal("10.00"))

        summary = ledger.summary(session.id)
        assert summary.opening_float == Decimal("100.00")
        assert summary.total_sales == Decimal("69.90")
        assert summary.total_sangrias == Decimal("30.00")
        assert summary.total_suprimentos == Decimal("10.00")
        assert summary.expected_balance == Decimal("149.90")
        assert summary.movement_count == 4
        assert summary.sale_count == 2
        assert summary.closing is None

        ledger.close(session.id, Decimal("150.00"))
        assert ledger.summary(session.id).closing.difference == Decimal("0.10")


class TestRepositories:
    """Restricciones que el almacenamiento impone aunque se saltee el ledger"""

    def test_duplicate_sequence_is_stale(self, ledger):
        session = ledger.open(Decimal("100"))
        ledger.record_sale(session.id, Decimal("10"))

        with pytest.raises(StaleLedger):
            ledger.repository.append_movement(_movement(session.id, 1, MovementType.SALE, "5"))
        assert ledger.current_expected_balance(session.id) == Decimal("110")

    def test_store_rejects_second_open_session(self, ledger):
        ledger.open(Decimal("100"))
        other = CashSession(id=uuid4(), opened_at=NOW, opening_float=Decimal("0"))

        with pytest.raises(SessionAlreadyOpen):
            ledger.repository.create_session(other)
        assert len(ledger.list_sessions()) == 1


# ===== TESTS DE REPLAY =====

class TestReplayBalance:

    @pytest.fixture
    def session(self):
        return CashSession(id=uuid4(), opened_at=NOW, opening_float=Decimal("10.00"))

    def test_empty_history(self, session):
        assert replay_balance(session, []) == Decimal("10.00")

    def test_replay(self, session):
        movements = [
            _movement(session.id, 1, MovementType.SALE, "5.00"),
            _movement(session.id, 2, MovementType.SANGRIA, "12.00"),
            _movement(session.id, 3, MovementType.SUPRIMENTO, "1.50"),
        ]
        assert replay_balance(session, movements) == Decimal("4.50")

    def test_negative_running_balance_is_corruption(self, session):
        movements = [
            _movement(session.id, 1, MovementType.SANGRIA, "15.00"),
            _movement(session.id, 2, MovementType.SALE, "20.00"),
        ]
        with pytest.raises(LedgerCorrupted):
            replay_balance(session, movements)

    @pytest.mark.parametrize("amount", ["0", "-3"])
    def test_non_positive_amount_is_corruption(self, session, amount):
        with pytest.raises(LedgerCorrupted):
            replay_balance(session, [_movement(session.id, 1, MovementType.SALE, amount)])

    def test_foreign_movement_is_corruption(self, session):
        with pytest.raises(LedgerCorrupted):
            replay_balance(session, [_movement(uuid4(), 1, MovementType.SALE, "1")])

    def test_unknown_type_is_corruption(self, session):
        with pytest.raises(LedgerCorrupted):
            replay_balance(session, [_movement(session.id, 1, "estorno", "1")])


# ===== TESTS DE ENDPOINTS =====

class TestCashEndpoints:

    def _open(self, client, opening_float="100.00"):
        response = client.post("/api/v1/cash-sessions/open", json={"opening_float": opening_float})
        assert response.status_code == 201
        return response.json()["id"]

    def test_open_and_current(self, client):
        session_id = self._open(client)

        response = client.get("/api/v1/cash-sessions/current")
        assert response.status_code == 200
        assert response.json()["id"] == session_id
        assert response.json()["status"] == "open"

    def test_open_uses_configured_defaults(self, client):
        response = client.post("/api/v1/cash-sessions/open", json={})
        assert response.status_code == 201
        assert Decimal(response.json()["opening_float"]) == Decimal("0")

    def test_current_without_session_is_404(self, client):
        response = client.get("/api/v1/cash-sessions/current")
        assert response.status_code == 404
        assert response.json()["code"] == "NO_OPEN_SESSION"

    def test_double_open_is_409(self, client):
        self._open(client)
        response = client.post("/api/v1/cash-sessions/open", json={"opening_float": "10"})
        assert response.status_code == 409
        assert response.json()["code"] == "SESSION_ALREADY_OPEN"

    def test_movements_and_summary(self, client):
        session_id = self._open(client)

        response = client.post(f"/api/v1/cash-sessions/{session_id}/movements",
                               json={"type": "suprimento", "amount": "20.00", "reason": "troco"})
        assert response.status_code == 201
        assert Decimal(response.json()["signed_amount"]) == Decimal("20.00")

        response = client.post(f"/api/v1/cash-sessions/{session_id}/movements",
                               json={"type": "sangria", "amount": "50.00"})
        assert Decimal(response.json()["signed_amount"]) == Decimal("-50.00")

        response = client.get(f"/api/v1/cash-sessions/{session_id}/movements")
        assert len(response.json()["movements"]) == 2
        assert Decimal(response.json()["expected_balance"]) == Decimal("70.00")

        summary = client.get(f"/api/v1/cash-sessions/{session_id}/summary").json()
        assert Decimal(summary["total_suprimentos"]) == Decimal("20.00")
        assert Decimal(summary["total_sangrias"]) == Decimal("50.00")
        assert Decimal(summary["expected_balance"]) == Decimal("70.00")

    def test_sangria_without_balance_is_409(self, client):
        session_id = self._open(client, "10.00")
        response = client.post(f"/api/v1/cash-sessions/{session_id}/movements",
                               json={"type": "sangria", "amount": "10.01"})
        assert response.status_code == 409
        assert response.json()["code"] == "INSUFFICIENT_BALANCE"

    def test_sale_type_cannot_be_posted(self, client):
        session_id = self._open(client)
        response = client.post(f"/api/v1/cash-sessions/{session_id}/movements",
                               json={"type": "sale", "amount": "10"})
        assert response.status_code == 422

    def test_close_flow(self, client):
        session_id = self._open(client)

        response = client.post(f"/api/v1/cash-sessions/{session_id}/close",
                               json={"counted": "95.00", "observations": "Faltou troco"})
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["difference"]) == Decimal("-5.00")
        assert data["is_shortage"] is True

        summary = client.get(f"/api/v1/cash-sessions/{session_id}/summary").json()
        assert summary["closing"]["closed_at"] == data["closed_at"]
        assert summary["session"]["closed_at"] == data["closed_at"]

        response = client.post(f"/api/v1/cash-sessions/{session_id}/movements",
                               json={"type": "suprimento", "amount": "1"})
        assert response.status_code == 409
        assert response.json()["code"] == "SESSION_NOT_OPEN"

        sessions = client.get("/api/v1/cash-sessions/", params={"status": "closed"}).json()["sessions"]
        assert [s["id"] for s in sessions] == [session_id]

    def test_unknown_session_is_404(self, client):
        response = client.get(f"/api/v1/cash-sessions/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["code"] == "SESSION_NOT_FOUND"
