"""Tests for pick recording."""

import json

import pytest

from garment_erp.models import BatchStatus, OrderStatus
from garment_erp.services.errors import ConflictError, NotFoundError, QuantityOutOfRangeError
from garment_erp.services.ledger import LedgerLoader
from garment_erp.services.picking_service import PickingService, pick_bounds
from garment_erp.services.qc_service import QCService


def test_pick_bounds():
    assert pick_bounds(10, 0, 0) == (0, 10)
    # rejected units come back into the pool, reviewed ones cannot be un-picked
    assert pick_bounds(10, 4, 2) == (6, 12)


class TestRecordPick:

    def test_increments_picked(self, db_session, make_order, batch_a, distribute):
        order = make_order({"M": 10})
        assignment = distribute(order, {batch_a.id: {"M": 10}})[batch_a.id]
        service = PickingService(db_session, policy="clamp")

        service.record_pick(assignment.id, "M", 4)
        result = service.record_pick(assignment.id, "M", 3)

        assert result.picked == 7
        assert result.clamped is False
        assert result.remaining_to_pick == 3
        assert assignment.size_row("M").picked_quantity == 7

    def test_clamped_to_allocation(self, db_session, make_order, batch_a, distribute):
        order = make_order({"M": 5})
        assignment = distribute(order, {batch_a.id: {"M": 5}})[batch_a.id]

        result = PickingService(db_session, policy="clamp").record_pick(assignment.id, "M", 8)

        assert result.requested == 8
        assert result.picked == 5
        assert result.clamped is True
        assert result.remaining_to_pick == 0

    def test_clamped_at_zero(self, db_session, make_order, batch_a, distribute):
        order = make_order({"M": 5})
        assignment = distribute(order, {batch_a.id: {"M": 5}})[batch_a.id]

        result = PickingService(db_session, policy="clamp").record_pick(assignment.id, "M", -3)

        assert result.picked == 0
        assert result.clamped is True

    def test_reject_policy_raises(self, db_session, make_order, batch_a, distribute):
        order = make_order({"M": 5})
        assignment = distribute(order, {batch_a.id: {"M": 5}})[batch_a.id]

        with pytest.raises(QuantityOutOfRangeError) as exc:
            PickingService(db_session, policy="reject").record_pick(assignment.id, "M", 8)

        assert (exc.value.lower, exc.value.upper, exc.value.requested) == (0, 5, 8)
        db_session.refresh(assignment.size_row("M"))
        assert assignment.size_row("M").picked_quantity == 0

    def test_reviewed_units_cannot_be_unpicked(self, db_session, make_order, batch_a, distribute, pick):
        order = make_order({"M": 5})
        assignment = distribute(order, {batch_a.id: {"M": 5}})[batch_a.id]
        pick(assignment, "M", 5)
        QCService(db_session).submit_review(assignment.id, "M", approved=3, rejected=0)

        result = pick(assignment, "M", -5)
        assert result.picked == 3

    def test_repick_after_rejection(self, db_session, make_order, batch_a, distribute, pick):
        order = make_order({"M": 5})
        assignment = distribute(order, {batch_a.id: {"M": 5}})[batch_a.id]
        pick(assignment, "M", 5)
        QCService(db_session).submit_review(assignment.id, "M", approved=3, rejected=2, remarks="Torn seam")

        sheet = PickingService(db_session).get_pick_sheet(assignment.id)
        assert sheet["sizes"][0]["remaining_to_pick"] == 2
        assert sheet["has_outstanding_work"] is True

        result = pick(assignment, "M", 4)
        assert result.picked == 7
        assert result.clamped is True
        assert result.remaining_to_pick == 0

        ledger = LedgerLoader(db_session).assignment_ledger(assignment.id)["M"]
        assert ledger.effective_picked == 5
        assert ledger.awaiting_review == 2

    def test_unknown_size(self, db_session, make_order, batch_a, distribute, pick):
        order = make_order({"M": 5})
        assignment = distribute(order, {batch_a.id: {"M": 5}})[batch_a.id]
        with pytest.raises(NotFoundError):
            pick(assignment, "XL", 1)

    def test_unknown_assignment(self, db_session):
        with pytest.raises(NotFoundError):
            PickingService(db_session).record_pick(9999, "M", 1)

    def test_stale_version(self, db_session, make_order, batch_a, distribute):
        order = make_order({"M": 5})
        assignment = distribute(order, {batch_a.id: {"M": 5}})[batch_a.id]
        service = PickingService(db_session, policy="clamp")
        first = service.record_pick(assignment.id, "M", 1, expected_version=1)
        assert first.version == 2

        with pytest.raises(ConflictError):
            service.record_pick(assignment.id, "M", 1, expected_version=1)
        db_session.refresh(assignment.size_row("M"))
        assert assignment.size_row("M").picked_quantity == 1

    def test_moves_order_into_production(self, db_session, make_order, batch_a, distribute, pick):
        order = make_order({"M": 5})
        assignment = distribute(order, {batch_a.id: {"M": 5}})[batch_a.id]
        pick(assignment, "M", 2)
        db_session.refresh(order)
        assert order.status == OrderStatus.IN_PRODUCTION


class TestLegacyPickedNotes:

    def _legacy_assignment(self, db_session, make_order, batch_a, distribute):
        order = make_order({"M": 6, "L": 2})
        assignment = distribute(order, {batch_a.id: {"M": 6, "L": 2}})[batch_a.id]
        for row in assignment.size_distributions:
            row.picked_quantity = None
        assignment.notes = json.dumps({"picked_by_size": {"M": 4, "L": "n/a"}})
        db_session.commit()
        return assignment

    def test_notes_are_read_when_column_is_null(self, db_session, make_order, batch_a, distribute):
        assignment = self._legacy_assignment(db_session, make_order, batch_a, distribute)
        ledgers = LedgerLoader(db_session).assignment_ledger(assignment.id)
        assert ledgers["M"].picked == 4
        assert ledgers["L"].picked == 0

    def test_pick_writes_column(self, db_session, make_order, batch_a, distribute, pick):
        assignment = self._legacy_assignment(db_session, make_order, batch_a, distribute)
        result = pick(assignment, "M", 1)
        assert result.picked == 5
        assert assignment.size_row("M").picked_quantity == 5

    def test_malformed_notes_ignored(self, db_session, make_order, batch_a, distribute):
        assignment = self._legacy_assignment(db_session, make_order, batch_a, distribute)
        assignment.notes = "picked 4 of M"
        db_session.commit()
        assert LedgerLoader(db_session).assignment_ledger(assignment.id)["M"].picked == 0


class TestBatchSummary:

    def test_totals_per_active_batch(self, db_session, make_order, make_batch, batch_a, batch_b, distribute, pick):
        make_batch(batch_name="Retired", status=BatchStatus.INACTIVE)
        first = make_order({"M": 6})
        second = make_order({"L": 4})
        a1 = distribute(first, {batch_a.id: {"M": 4}, batch_b.id: {"M": 2}})[batch_a.id]
        a2 = distribute(second, {batch_a.id: {"L": 4}})[batch_a.id]
        pick(a1, "M", 4)
        pick(a2, "L", 1)
        QCService(db_session).submit_review(a1.id, "M", approved=3, rejected=1, remarks="Stain")

        summary = {s["batch_name"]: s for s in PickingService(db_session).batch_pick_summary()}

        assert set(summary) == {"Batch A", "Batch B"}
        a = summary["Batch A"]
        assert a["assigned_orders"] == 2
        assert a["assigned_quantity"] == 8
        assert a["picked_quantity"] == 5
        assert a["rejected_quantity"] == 1
        assert a["effective_picked"] == 4
        assert a["has_outstanding_work"] is True
        assert summary["Batch B"]["picked_quantity"] == 0

    def test_no_outstanding_work_when_fully_picked(self, db_session, make_order, batch_a, distribute, pick):
        order = make_order({"S": 2})
        assignment = distribute(order, {batch_a.id: {"S": 2}})[batch_a.id]
        pick(assignment, "S", 2)
        summary = PickingService(db_session).batch_pick_summary()
        assert summary[0]["has_outstanding_work"] is False


def test_pick_sheet_in_size_order(db_session, make_order, batch_a, distribute):
    order = make_order({"XL": 1, "S": 2, "M": 3})
    assignment = distribute(order, {batch_a.id: {"XL": 1, "S": 2, "M": 3}})[batch_a.id]
    sheet = PickingService(db_session).get_pick_sheet(assignment.id)
    assert [s["size_name"] for s in sheet["sizes"]] == ["S", "M", "XL"]
    assert sheet["batch_name"] == "Batch A"
    assert all(s["version"] == 1 for s in sheet["sizes"])
