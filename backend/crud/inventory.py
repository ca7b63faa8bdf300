"""
Inventory ledger: the transaction recorder and the read-only reporting queries.

`record_transaction` is the only path that changes `Material.stock_qty`. It
locks the material row, checks that stock stays non-negative, writes the new
quantity and appends one `InventoryHistory` row in a single unit of work.
Handlers that need several movements in one unit of work (returns, transfers)
call `apply_transaction` inside `unit_of_work`.
"""
import logging
import math
from contextlib import contextmanager
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from exceptions import (
    InsufficientStock,
    InvalidTransaction,
    InventoryError,
    LedgerEntryNotFound,
    MaterialNotFound,
    PersistenceFailure,
)
from models.inventory_history import InventoryHistory, TransactionType
from models.materials import Material
from models.projects import Project
from utils import APP_TIMEZONE, local_now

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
# Scale of the Numeric(12, 3) quantity columns
QUANTITY_PLACES = 3


def to_quantity(value, field: str = "quantity", places: int = QUANTITY_PLACES) -> Decimal:
    """Convert an int / Decimal / numeric string to a finite Decimal.

    Values with more than `places` decimals are rejected rather than rounded
    by the database.
    """
    if isinstance(value, bool):
        raise InvalidTransaction(f"{field} must be numeric, got {value!r}")
    try:
        quantity = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidTransaction(f"{field} must be numeric, got {value!r}")
    if not quantity.is_finite():
        raise InvalidTransaction(f"{field} must be a finite number, got {value!r}")
    try:
        exact = quantity == quantity.quantize(Decimal(1).scaleb(-places))
    except InvalidOperation:
        raise InvalidTransaction(f"{field} is out of range, got {value!r}")
    if not exact:
        raise InvalidTransaction(f"{field} allows at most {places} decimal places, got {value!r}")
    return quantity


def to_transaction_type(value: Union[TransactionType, str]) -> TransactionType:
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(str(value).upper())
    except ValueError:
        allowed = ", ".join(t.value for t in TransactionType)
        raise InvalidTransaction(f"Unknown transaction type {value!r}. Expected one of: {allowed}")


@contextmanager
def unit_of_work(db: Session, action: str):
    """Commit on success; roll back on any failure.

    Domain errors propagate unchanged. Storage errors are re-raised as
    PersistenceFailure chained to the original SQLAlchemy exception.
    """
    try:
        yield
        db.commit()
    except InventoryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Persistence failure while trying to {action}: {e}")
        raise PersistenceFailure(f"Failed to {action}") from e


def lock_material(db: Session, material_id: int) -> Material:
    """Load a material with SELECT ... FOR UPDATE, refreshing any cached copy."""
    material = (
        db.query(Material)
        .filter(Material.id == material_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if material is None:
        raise MaterialNotFound(material_id)
    return material


def create_history_entry(db: Session, **fields) -> InventoryHistory:
    """Stage a ledger row in the current unit of work (no commit)."""
    entry = InventoryHistory(**fields)
    db.add(entry)
    return entry


def apply_transaction(
    db: Session,
    *,
    material_id: int,
    transaction_type: Union[TransactionType, str],
    quantity_change,
    performed_by_user_id: int,
    project_id: Optional[int] = None,
    transaction_id: Optional[int] = None,
    reference_number: Optional[str] = None,
    description: Optional[str] = None,
    location: Optional[str] = None,
):
    """Apply one stock movement inside the caller's unit of work.

    Locks the material row, validates the resulting quantity, writes the new
    stock and flushes the ledger row. The caller commits or rolls back.

    Returns:
        (Material, InventoryHistory)

    Raises:
        InvalidTransaction: unknown type, non-numeric or zero delta.
        MaterialNotFound: no such (non-deleted) material.
        InsufficientStock: the delta would make stock negative.
    """
    transaction_type = to_transaction_type(transaction_type)
    quantity_change = to_quantity(quantity_change, "quantity_change")
    if quantity_change == 0:
        raise InvalidTransaction("quantity_change must be non-zero")

    material = lock_material(db, material_id)

    quantity_before = Decimal(material.stock_qty or 0)
    quantity_after = quantity_before + quantity_change
    if quantity_after < 0:
        logger.warning(
            f"Rejected {transaction_type.value} on material {material.id}: "
            f"available {quantity_before}, requested {abs(quantity_change)}"
        )
        raise InsufficientStock(material.id, quantity_before, abs(quantity_change), material.name)

    material.stock_qty = quantity_after
    entry = create_history_entry(
        db,
        material_id=material.id,
        project_id=project_id,
        transaction_type=transaction_type,
        transaction_id=transaction_id,
        quantity_change=quantity_change,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        reference_number=reference_number,
        description=description,
        location=location,
        performed_by_user_id=performed_by_user_id,
        transaction_date=local_now(),
    )
    db.flush()
    return material, entry


def record_transaction(
    db: Session,
    *,
    material_id: int,
    transaction_type: Union[TransactionType, str],
    quantity_change,
    performed_by_user_id: int,
    project_id: Optional[int] = None,
    transaction_id: Optional[int] = None,
    reference_number: Optional[str] = None,
    description: Optional[str] = None,
    location: Optional[str] = None,
):
    """Record one inventory transaction and update the material's stock.

    All-or-nothing: on success exactly one material row is updated and one
    ledger row appended; on any failure neither is persisted.

    Returns:
        (Material, InventoryHistory)
    """
    action = f"record {getattr(transaction_type, 'value', transaction_type)} transaction for material {material_id}"
    with unit_of_work(db, action):
        material, entry = apply_transaction(
            db,
            material_id=material_id,
            transaction_type=transaction_type,
            quantity_change=quantity_change,
            performed_by_user_id=performed_by_user_id,
            project_id=project_id,
            transaction_id=transaction_id,
            reference_number=reference_number,
            description=description,
            location=location,
        )
    logger.info(
        f"Recorded {entry.transaction_type.value} #{entry.id} on material {material_id}: "
        f"{entry.quantity_before} -> {entry.quantity_after} by user {performed_by_user_id}"
    )
    return material, entry


def get_ledger_entry(db: Session, history_id: int) -> InventoryHistory:
    entry = db.query(InventoryHistory).filter(InventoryHistory.id == history_id).first()
    if entry is None:
        raise LedgerEntryNotFound(history_id)
    return entry


def _paginate_history(query, limit: int, offset: int) -> dict:
    if limit < 1:
        raise InvalidTransaction("limit must be at least 1")
    if offset < 0:
        raise InvalidTransaction("offset must not be negative")

    count = query.count()
    history = (
        query.options(joinedload(InventoryHistory.material), joinedload(InventoryHistory.performed_by))
        .order_by(InventoryHistory.transaction_date.desc(), InventoryHistory.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {
        "history": history,
        "pagination": {
            "total_items": count,
            "total_pages": math.ceil(count / limit),
            "current_page": offset // limit + 1,
            "items_per_page": limit,
        },
    }


def get_inventory_history(
    db: Session,
    material_id: int,
    project_id: Optional[int] = None,
    transaction_type: Optional[Union[TransactionType, str]] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> dict:
    """Ledger entries for one material, newest first."""
    query = db.query(InventoryHistory).filter(InventoryHistory.material_id == material_id)
    if project_id is not None:
        query = query.filter(InventoryHistory.project_id == project_id)
    if transaction_type:
        query = query.filter(InventoryHistory.transaction_type == to_transaction_type(transaction_type))
    return _paginate_history(query, limit, offset)


def get_project_inventory_history(
    db: Session,
    project_id: int,
    transaction_type: Optional[Union[TransactionType, str]] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> dict:
    """Ledger entries booked against one project, newest first."""
    query = db.query(InventoryHistory).filter(InventoryHistory.project_id == project_id)
    if transaction_type:
        query = query.filter(InventoryHistory.transaction_type == to_transaction_type(transaction_type))
    return _paginate_history(query, limit, offset)


def get_current_stock_levels(db: Session, project_id: Optional[int] = None):
    query = db.query(Material)
    if project_id is not None:
        query = query.filter(Material.project_id == project_id)
    return query.order_by(Material.name.asc(), Material.id.asc()).all()


def get_low_stock_alerts(db: Session, project_id: Optional[int] = None):
    """Materials at or below their reorder point, most critical first."""
    query = db.query(Material).filter(Material.stock_qty <= Material.reorder_point)
    if project_id is not None:
        query = query.filter(Material.project_id == project_id)
    return query.order_by(Material.stock_qty.asc(), Material.id.asc()).all()


def _as_local_datetime(value: Union[date, datetime], end_of_day: bool = False) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.max if end_of_day else time.min)
    if value.tzinfo is None:
        value = APP_TIMEZONE.localize(value)
    return value


def get_restock_history(
    db: Session,
    material_id: Optional[int] = None,
    project_id: Optional[int] = None,
    date_from: Optional[Union[date, datetime]] = None,
    date_to: Optional[Union[date, datetime]] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> dict:
    """PURCHASE ledger entries, newest first. A bare `date_to` covers the whole day."""
    query = db.query(InventoryHistory).filter(InventoryHistory.transaction_type == TransactionType.PURCHASE)
    if material_id is not None:
        query = query.filter(InventoryHistory.material_id == material_id)
    if project_id is not None:
        query = query.filter(InventoryHistory.project_id == project_id)
    if date_from:
        query = query.filter(InventoryHistory.transaction_date >= _as_local_datetime(date_from))
    if date_to:
        query = query.filter(InventoryHistory.transaction_date <= _as_local_datetime(date_to, end_of_day=True))
    return _paginate_history(query, limit, offset)


def calculate_consumption(db: Session, project_id: Optional[int] = None) -> dict:
    """Consumed quantity per (project, material): net issued minus returned.

    Issue reversals are ISSUE entries with a positive change, so they net out
    of `total_issued`. Only materials still registered are reported.
    """
    total_issued = func.sum(
        case(
            (InventoryHistory.transaction_type == TransactionType.ISSUE, -InventoryHistory.quantity_change),
            else_=0,
        )
    )
    total_returned = func.sum(
        case(
            (InventoryHistory.transaction_type == TransactionType.RETURN, InventoryHistory.quantity_change),
            else_=0,
        )
    )
    query = db.query(
        InventoryHistory.project_id,
        InventoryHistory.material_id,
        total_issued.label("total_issued"),
        total_returned.label("total_returned"),
    ).filter(InventoryHistory.project_id.isnot(None))
    if project_id is not None:
        query = query.filter(InventoryHistory.project_id == project_id)
    rows = query.group_by(InventoryHistory.project_id, InventoryHistory.material_id).all()

    material_ids = {row.material_id for row in rows}
    project_ids = {row.project_id for row in rows}
    materials = {m.id: m for m in db.query(Material).filter(Material.id.in_(material_ids)).all()} if material_ids else {}
    projects = {p.id: p for p in db.query(Project).filter(Project.id.in_(project_ids)).all()} if project_ids else {}

    consumptions = []
    for row in rows:
        material = materials.get(row.material_id)
        if material is None:
            continue
        issued = Decimal(str(row.total_issued or 0))
        returned = Decimal(str(row.total_returned or 0))
        consumed = issued - returned
        if consumed <= 0:
            continue
        cost_per_unit = Decimal(material.cost_per_unit) if material.cost_per_unit is not None else None
        project = projects.get(row.project_id)
        consumptions.append({
            "project_id": row.project_id,
            "project_name": project.name if project else None,
            "material_id": material.id,
            "material_name": material.name,
            "material_type": material.type,
            "material_unit": material.unit,
            "total_issued": issued,
            "total_returned": returned,
            "consumed_quantity": consumed,
            "cost_per_unit": cost_per_unit,
            "total_cost": consumed * (cost_per_unit or Decimal("0")),
        })

    consumptions.sort(key=lambda c: (c["project_id"], c["material_name"], c["material_id"]))
    return {
        "consumptions": consumptions,
        "summary": {
            "total_materials": len(consumptions),
            "total_consumed_quantity": sum((c["consumed_quantity"] for c in consumptions), Decimal("0")),
            "total_cost": sum((c["total_cost"] for c in consumptions), Decimal("0")),
        },
    }
