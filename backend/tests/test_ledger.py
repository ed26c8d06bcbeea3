"""Tests for the quantity ledger reducer."""

import pytest

from garment_erp.services.ledger import (
    Allocated,
    Dispatched,
    LedgerTotals,
    Ordered,
    Picked,
    QuantityLedger,
    Reviewed,
    ledger_rows,
    reduce_ledger,
)


class TestReduceLedger:

    def test_empty_log(self):
        assert reduce_ledger([]) == {}

    def test_accumulates_per_size(self):
        ledgers = reduce_ledger([
            Ordered("M", 10),
            Ordered("L", 5),
            Allocated("M", 6),
            Allocated("M", 4),
            Picked("M", 10),
            Reviewed("M", 8, 2),
            Dispatched("M", 5),
        ])
        m = ledgers["M"]
        assert (m.ordered, m.allocated, m.picked, m.approved, m.rejected, m.dispatched) == (
            10, 10, 10, 8, 2, 5,
        )
        assert ledgers["L"] == QuantityLedger("L", ordered=5)

    def test_reviews_add_up(self):
        ledgers = reduce_ledger([Picked("S", 6), Reviewed("S", 2, 0), Reviewed("S", 1, 3)])
        assert ledgers["S"].approved == 3
        assert ledgers["S"].rejected == 3
        assert ledgers["S"].qc_complete

    def test_unknown_event_rejected(self):
        with pytest.raises(TypeError):
            QuantityLedger("M").apply(("M", 1))

    def test_ledger_is_immutable(self):
        ledger = QuantityLedger("M")
        updated = ledger.apply(Picked("M", 3))
        assert ledger.picked == 0
        assert updated.picked == 3


class TestDerivedQuantities:

    def test_undistributed(self):
        assert QuantityLedger("L", ordered=5, allocated=3).undistributed == 2

    def test_effective_picked_never_negative(self):
        assert QuantityLedger("M", picked=2, rejected=5).effective_picked == 0
        assert QuantityLedger("M", picked=10, rejected=3).effective_picked == 7

    def test_shippable(self):
        assert QuantityLedger("M", approved=8, dispatched=3).shippable == 5
        assert QuantityLedger("M", approved=8, dispatched=8).shippable == 0

    def test_qc_complete_requires_picks(self):
        assert not QuantityLedger("M").qc_complete
        assert not QuantityLedger("M", picked=4, approved=3).qc_complete
        assert QuantityLedger("M", picked=4, approved=3, rejected=1).qc_complete

    def test_rejected_then_repicked(self):
        events = [Allocated("M", 10), Picked("M", 10), Reviewed("M", 7, 3)]
        ledger = reduce_ledger(events)["M"]
        assert ledger.effective_picked == 7
        assert ledger.awaiting_review == 0
        assert ledger.remaining_to_pick == 3

        ledger = reduce_ledger(events + [Picked("M", 3)])["M"]
        assert ledger.picked == 13
        assert ledger.effective_picked == 10
        assert ledger.unapproved == 6
        # The three rejected units were already reviewed once
        assert ledger.awaiting_review == 3
        assert ledger.remaining_to_pick == 0


class TestTotals:

    def test_totals_across_sizes(self):
        ledgers = reduce_ledger([
            Picked("M", 4), Picked("XL", 6), Reviewed("M", 4, 0), Reviewed("XL", 5, 1),
        ])
        totals = LedgerTotals.of(ledgers)
        assert totals.picked == 10
        assert totals.approved == 9
        assert totals.rejected == 1
        assert totals.qc_complete
        assert totals.sizes == ["M", "XL"]

    def test_rows_in_size_order(self):
        ledgers = reduce_ledger([Ordered("XL", 1), Ordered("S", 1), Ordered("M", 1)])
        assert [row["size_name"] for row in ledger_rows(ledgers)] == ["S", "M", "XL"]
