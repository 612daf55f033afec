from uuid import uuid4

import pytest

from stockflow.core.errors import NotFoundError, ValidationError
from stockflow.models import StockAdjustment, StockMovement
from stockflow.schemas.stock import StockAdjustmentCreate, StockAdjustmentUpdate
from stockflow.services import StockAdjustmentService, StockService


def _adjust(db, seed, kind="add", quantity=10, **overrides):
    data = StockAdjustmentCreate(
        warehouse_id=overrides.get("warehouse_id", seed.warehouse_a),
        product_id=overrides.get("product_id", seed.product_1),
        quantity=quantity,
        adjustment_kind=kind,
        notes=overrides.get("notes")
    )
    return StockAdjustmentService.create_adjustment(db, data)


def _ledger(db, adjustment_id):
    return db.query(StockMovement).filter(
        StockMovement.reference_id == str(adjustment_id)
    ).order_by(StockMovement.id).all()


def test_add_and_subtract(db, seed):
    added = _adjust(db, seed, "add", 10, notes="Opening count").unwrap()
    _adjust(db, seed, "subtract", 4).unwrap()

    assert StockService.get_quantity(db, seed.product_1, seed.warehouse_a) == 6
    assert added.company_id == seed.company_id

    [movement] = _ledger(db, added.id)
    assert (movement.quantity, movement.movement_kind, movement.reference_kind) == (10, "adjustment", "adjustment")
    assert movement.remark == "Opening count"


@pytest.mark.parametrize("quantity", [0, -3])
def test_quantity_must_be_positive(db, seed, quantity):
    result = _adjust(db, seed, quantity=quantity)

    assert isinstance(result.error, ValidationError)
    assert db.query(StockAdjustment).count() == 0


def test_unknown_product_is_rejected(db, seed):
    result = _adjust(db, seed, product_id=uuid4())

    assert isinstance(result.error, ValidationError)


def test_update_applies_only_the_difference(db, seed):
    adjustment = _adjust(db, seed, "add", 10).unwrap()

    StockAdjustmentService.update_adjustment(db, adjustment.id, StockAdjustmentUpdate(quantity=4)).unwrap()
    assert StockService.get_quantity(db, seed.product_1, seed.warehouse_a) == 4

    updated = StockAdjustmentService.update_adjustment(
        db, adjustment.id, StockAdjustmentUpdate(adjustment_kind="subtract")
    ).unwrap()
    assert StockService.get_quantity(db, seed.product_1, seed.warehouse_a) == -4
    assert (updated.quantity, updated.adjustment_kind) == (4, "subtract")

    deltas = [(m.reference_kind, m.quantity) for m in _ledger(db, adjustment.id)]
    assert deltas == [("adjustment", 10), ("adjustment_update", -6), ("adjustment_update", -8)]


def test_notes_only_update_writes_no_movement(db, seed):
    adjustment = _adjust(db, seed).unwrap()

    updated = StockAdjustmentService.update_adjustment(
        db, adjustment.id, StockAdjustmentUpdate(notes="recounted")
    ).unwrap()

    assert updated.notes == "recounted"
    assert len(_ledger(db, adjustment.id)) == 1


def test_delete_reverses_and_links(db, seed):
    adjustment = _adjust(db, seed, "subtract", 3).unwrap()

    StockAdjustmentService.delete_adjustment(db, adjustment.id).unwrap()

    assert StockService.get_quantity(db, seed.product_1, seed.warehouse_a) == 0
    assert StockAdjustmentService.get_adjustment(db, adjustment.id) is None
    original, reversal = _ledger(db, adjustment.id)
    assert (reversal.quantity, reversal.reference_kind) == (3, "adjustment_delete")
    assert reversal.reverses_movement_id == original.id
    assert StockService.reconcile(db) == []


def test_delete_after_update_links_latest_movement(db, seed):
    adjustment = _adjust(db, seed, "add", 5).unwrap()
    StockAdjustmentService.update_adjustment(db, adjustment.id, StockAdjustmentUpdate(quantity=8)).unwrap()

    StockAdjustmentService.delete_adjustment(db, adjustment.id).unwrap()

    assert StockService.get_quantity(db, seed.product_1, seed.warehouse_a) == 0
    created, updated, reversal = _ledger(db, adjustment.id)
    assert [(m.quantity, m.reference_kind) for m in (created, updated, reversal)] == [
        (5, "adjustment"), (3, "adjustment_update"), (-8, "adjustment_delete")
    ]
    assert reversal.reverses_movement_id == updated.id
    assert StockService.reconcile(db) == []


def test_delete_missing_adjustment(db):
    assert isinstance(StockAdjustmentService.delete_adjustment(db, uuid4()).error, NotFoundError)


def test_list_by_warehouse(db, seed):
    _adjust(db, seed).unwrap()
    _adjust(db, seed, warehouse_id=seed.warehouse_b).unwrap()

    adjustments, total = StockAdjustmentService.get_adjustments(db, warehouse_id=seed.warehouse_b)

    assert total == 1
    assert adjustments[0].warehouse_id == seed.warehouse_b
    assert StockAdjustmentService.get_adjustments(db)[1] == 2
