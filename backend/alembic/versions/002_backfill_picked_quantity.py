"""002: Backfill picked_quantity from legacy notes JSON.

Older clients stored picked counts in ``order_batch_assignments.notes`` as
``{"picked_by_size": {"M": 4}}``. This copies them into
``order_batch_size_distributions.picked_quantity`` for every row where the
column is still NULL, then sets the remaining NULLs to 0.
"""

import json
import logging

from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

logger = logging.getLogger("alembic.runtime.migration")


def _legacy_picked(notes):
    try:
        data = json.loads(notes) if notes else {}
    except (TypeError, ValueError):
        return {}
    picked = data.get("picked_by_size") if isinstance(data, dict) else None
    return picked if isinstance(picked, dict) else {}


def upgrade() -> None:
    conn = op.get_bind()
    rows = conn.execute(sa.text(
        "SELECT d.id, d.size_name, a.notes "
        "FROM order_batch_size_distributions d "
        "JOIN order_batch_assignments a ON a.id = d.order_batch_assignment_id "
        "WHERE d.picked_quantity IS NULL"
    )).fetchall()

    backfilled = 0
    for row_id, size_name, notes in rows:
        value = _legacy_picked(notes).get(size_name)
        try:
            picked = max(0, int(value)) if value is not None else 0
        except (TypeError, ValueError):
            picked = 0
        conn.execute(
            sa.text("UPDATE order_batch_size_distributions SET picked_quantity = :p WHERE id = :id"),
            {"p": picked, "id": row_id},
        )
        backfilled += 1 if picked else 0

    logger.info(f"Backfilled picked_quantity on {backfilled} of {len(rows)} legacy rows")


def downgrade() -> None:
    # The notes JSON is left untouched by upgrade, so there is nothing to restore
    pass
