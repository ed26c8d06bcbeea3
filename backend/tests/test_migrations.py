"""Tests for the picked_quantity backfill migration."""

import importlib.util
import json
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations

from garment_erp.models import OrderBatchSizeDistribution

VERSIONS = Path(__file__).resolve().parents[1] / "alembic" / "versions"


@pytest.fixture(scope="module")
def backfill():
    spec = importlib.util.spec_from_file_location(
        "backfill_picked_quantity", VERSIONS / "002_backfill_picked_quantity.py"
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def run_upgrade(engine, migration):
    with engine.begin() as conn:
        context = MigrationContext.configure(conn)
        with Operations.context(context):
            migration.upgrade()


def legacy_rows(db_session, assignment, notes, keep=()):
    """Mark *assignment* as written by an old client: notes JSON and NULL picked counts."""
    assignment.notes = notes
    for row in assignment.size_distributions:
        if row.size_name not in keep:
            row.picked_quantity = None
    db_session.commit()


def picked_by_size(db_session, assignment_id):
    rows = (
        db_session.query(OrderBatchSizeDistribution)
        .filter(OrderBatchSizeDistribution.order_batch_assignment_id == assignment_id)
        .all()
    )
    return {r.size_name: r.picked_quantity for r in rows}


class TestLegacyNotes:

    def test_reads_picked_by_size(self, backfill):
        assert backfill._legacy_picked('{"picked_by_size": {"M": 4}}') == {"M": 4}

    @pytest.mark.parametrize("notes", [None, "", "not json", "[1, 2]", '{"picked_by_size": [4]}', '{"other": 1}'])
    def test_unusable_notes_read_as_empty(self, backfill, notes):
        assert backfill._legacy_picked(notes) == {}


class TestBackfillUpgrade:

    def test_fills_column_from_notes(self, db_engine, db_session, backfill, make_order, batch_a, distribute):
        order = make_order({"M": 6, "L": 3, "XL": 2})
        assignment = distribute(order, {batch_a.id: {"M": 6, "L": 3, "XL": 2}})[batch_a.id]
        notes = json.dumps({"picked_by_size": {"M": 4, "L": "n/a"}})
        legacy_rows(db_session, assignment, notes)

        run_upgrade(db_engine, backfill)

        db_session.expire_all()
        # XL has no entry and L is not a number
        assert picked_by_size(db_session, assignment.id) == {"M": 4, "L": 0, "XL": 0}

    def test_malformed_notes_become_zero(self, db_engine, db_session, backfill, make_order, batch_a, distribute):
        order = make_order({"M": 5})
        assignment = distribute(order, {batch_a.id: {"M": 5}})[batch_a.id]
        legacy_rows(db_session, assignment, "{picked_by_size: M=4")

        run_upgrade(db_engine, backfill)

        db_session.expire_all()
        assert picked_by_size(db_session, assignment.id) == {"M": 0}

    def test_negative_legacy_count_floors_at_zero(self, db_engine, db_session, backfill, make_order, batch_a, distribute):
        order = make_order({"M": 5})
        assignment = distribute(order, {batch_a.id: {"M": 5}})[batch_a.id]
        legacy_rows(db_session, assignment, json.dumps({"picked_by_size": {"M": -3}}))

        run_upgrade(db_engine, backfill)

        db_session.expire_all()
        assert picked_by_size(db_session, assignment.id) == {"M": 0}

    def test_existing_counts_are_kept(self, db_engine, db_session, backfill, make_order, batch_a, distribute, pick):
        order = make_order({"M": 5, "L": 5})
        assignment = distribute(order, {batch_a.id: {"M": 5, "L": 5}})[batch_a.id]
        pick(assignment, "M", 2)
        legacy_rows(db_session, assignment, json.dumps({"picked_by_size": {"M": 5, "L": 1}}), keep={"M"})

        run_upgrade(db_engine, backfill)

        db_session.expire_all()
        assert picked_by_size(db_session, assignment.id) == {"M": 2, "L": 1}
