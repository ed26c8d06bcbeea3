"""Writers racing on the same order from separate sessions."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from garment_erp.db.base import Base
from garment_erp.models import Batch, Order, OrderBatchAssignment, OrderSizeQuantity, OrderType
from garment_erp.services.distribution_service import DistributionService
from garment_erp.services.errors import ConflictError, NotFoundError
from garment_erp.services.picking_service import PickingService


@pytest.fixture
def make_session(tmp_path):
    """Sessions on one file database, each with its own connection."""
    engine = create_engine(f"sqlite:///{tmp_path / 'erp.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    sessions = []

    def _make() -> Session:
        session = factory()
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session.close()
    engine.dispose()


@pytest.fixture
def distributed(make_session):
    """Order of 10 M allocated to Batch A; returns (order_id, assignment_id, batch_b_id)."""
    db = make_session()
    batch_a = Batch(batch_name="Batch A", batch_code="BA", tailor_type="stitching", max_capacity=500)
    batch_b = Batch(batch_name="Batch B", batch_code="BB", tailor_type="stitching", max_capacity=500)
    order = Order(order_number="ORD-0001", customer_name="Test Customer", order_type=OrderType.CUSTOM)
    order.sizes.append(OrderSizeQuantity(size_name="M", total_quantity=10))
    db.add_all([batch_a, batch_b, order])
    db.commit()

    assignment = DistributionService(db).save_distribution(order.id, {batch_a.id: {"M": 10}})[0]
    ids = order.id, assignment.id, batch_b.id
    db.close()
    return ids


def assignments_of(db: Session, order_id: int):
    return (
        db.query(OrderBatchAssignment)
        .filter(OrderBatchAssignment.order_id == order_id)
        .order_by(OrderBatchAssignment.id)
        .all()
    )


class TestPickRaces:

    def test_redistribute_after_concurrent_pick(self, make_session, distributed):
        order_id, assignment_id, batch_b_id = distributed
        planner = DistributionService(make_session())
        planner.loader.get_order(order_id)  # planner is looking at the unpicked order

        PickingService(make_session(), policy="clamp").record_pick(assignment_id, "M", 3)

        with pytest.raises(ConflictError):
            planner.save_distribution(order_id, {batch_b_id: {"M": 10}})

        rows = assignments_of(make_session(), order_id)
        assert [a.id for a in rows] == [assignment_id]
        assert rows[0].size_row("M").picked() == 3

    def test_reassign_after_concurrent_pick(self, make_session, distributed):
        order_id, assignment_id, batch_b_id = distributed
        planner = DistributionService(make_session())
        planner.loader.get_assignment(assignment_id)

        PickingService(make_session(), policy="clamp").record_pick(assignment_id, "M", 6)

        with pytest.raises(ConflictError):
            planner.reassign(assignment_id, batch_b_id, {"M": 8})

        rows = assignments_of(make_session(), order_id)
        assert [a.id for a in rows] == [assignment_id]
        row = rows[0].size_row("M")
        assert (row.quantity, row.picked()) == (10, 6)

    def test_pick_on_replaced_assignment_is_refused(self, make_session, distributed):
        order_id, assignment_id, batch_b_id = distributed
        picker = PickingService(make_session(), policy="clamp")
        picker.loader.get_assignment(assignment_id)

        DistributionService(make_session()).save_distribution(order_id, {batch_b_id: {"M": 10}})

        with pytest.raises(NotFoundError):
            picker.record_pick(assignment_id, "M", 2)

        rows = assignments_of(make_session(), order_id)
        assert [a.batch_id for a in rows] == [batch_b_id]
        assert rows[0].size_row("M").picked() == 0
