"""
Stock movement handlers.

Each handler turns a business event (issue, return, transfer, settlement,
restock) into signed deltas and books them through the ledger in
crud.inventory. None of them writes Material.stock_qty directly.
"""
import logging
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from crud.inventory import (
    apply_transaction,
    get_ledger_entry,
    lock_material,
    record_transaction,
    to_quantity,
    unit_of_work,
)
from exceptions import InvalidTransaction, InventoryError
from models.inventory_history import InventoryHistory, TransactionType
from utils import local_now

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "Store"


def _positive_quantity(value, field: str = "quantity") -> Decimal:
    quantity = to_quantity(value, field)
    if quantity <= 0:
        raise InvalidTransaction(f"{field} must be greater than zero")
    return quantity


def _timestamp_reference(prefix: str) -> str:
    return f"{prefix}-{local_now().strftime('%Y%m%d%H%M%S%f')}"


def issue_material(
    db: Session,
    *,
    material_id: int,
    project_id: int,
    quantity,
    performed_by_user_id: int,
    transaction_id: Optional[int] = None,
    purpose: Optional[str] = None,
    location: Optional[str] = None,
):
    """Issue material from store to a project site (negative ISSUE delta)."""
    quantity = _positive_quantity(quantity)
    reference = f"ISSUE-{transaction_id}" if transaction_id else _timestamp_reference("ISSUE")
    return record_transaction(
        db,
        material_id=material_id,
        project_id=project_id,
        transaction_type=TransactionType.ISSUE,
        transaction_id=transaction_id,
        quantity_change=-quantity,
        reference_number=reference,
        description=f"Material issued: {purpose or 'No description'}",
        location=location,
        performed_by_user_id=performed_by_user_id,
    )


def reverse_issue(db: Session, *, history_id: int, performed_by_user_id: int, reason: Optional[str] = None):
    """Cancel an issue by booking the compensating positive ISSUE entry.

    The original ledger row is left untouched. Each issue entry can be
    reversed once; the check runs under the material lock.
    """
    original = get_ledger_entry(db, history_id)
    if original.transaction_type != TransactionType.ISSUE or original.quantity_change >= 0:
        raise InvalidTransaction(f"Inventory history entry {history_id} is not a stock issue and cannot be reversed")

    reference = f"ISSUE-CANCEL-{original.id}"
    with unit_of_work(db, f"reverse issue entry {history_id}"):
        lock_material(db, original.material_id)
        already_reversed = (
            db.query(InventoryHistory.id)
            .filter(
                InventoryHistory.material_id == original.material_id,
                InventoryHistory.transaction_type == TransactionType.ISSUE,
                InventoryHistory.quantity_change > 0,
                InventoryHistory.reference_number == reference,
            )
            .first()
        )
        if already_reversed:
            raise InvalidTransaction(f"Issue entry {history_id} has already been reversed")
        material, entry = apply_transaction(
            db,
            material_id=original.material_id,
            project_id=original.project_id,
            transaction_type=TransactionType.ISSUE,
            transaction_id=original.transaction_id,
            quantity_change=-original.quantity_change,
            reference_number=reference,
            description=f"Material issue cancelled - stock restored{': ' + reason if reason else ''}",
            location=original.location,
            performed_by_user_id=performed_by_user_id,
        )
    logger.info(f"Reversed issue entry {history_id} with entry {entry.id}")
    return material, entry


def return_materials(
    db: Session,
    *,
    project_id: int,
    lines: Iterable[dict],
    performed_by_user_id: int,
    transaction_id: Optional[int] = None,
    remarks: Optional[str] = None,
    location: Optional[str] = None,
):
    """Return materials from a project site to store.

    Books one positive RETURN entry per line. All lines share one unit of
    work, so a missing material rejects the whole return.
    """
    parsed = [(line["material_id"], _positive_quantity(line["quantity"])) for line in lines]
    if not parsed:
        raise InvalidTransaction("At least one material is required")

    reference = f"RETURN-{transaction_id}" if transaction_id else _timestamp_reference("RETURN")
    entries = []
    with unit_of_work(db, f"return materials to store from project {project_id}"):
        # Ascending material id keeps lock order consistent across requests
        for material_id, quantity in sorted(parsed, key=lambda item: item[0]):
            _, entry = apply_transaction(
                db,
                material_id=material_id,
                project_id=project_id,
                transaction_type=TransactionType.RETURN,
                transaction_id=transaction_id,
                quantity_change=quantity,
                reference_number=reference,
                description=f"Material returned: {remarks or 'No description'}",
                location=location or DEFAULT_LOCATION,
                performed_by_user_id=performed_by_user_id,
            )
            entries.append(entry)
    logger.info(f"Recorded return {reference} with {len(entries)} line(s) for project {project_id}")
    return entries


def transfer_material(
    db: Session,
    *,
    material_id: int,
    from_project_id: int,
    to_project_id: int,
    quantity,
    performed_by_user_id: int,
    to_material_id: Optional[int] = None,
    reason: Optional[str] = None,
    location: Optional[str] = None,
):
    """Move stock between project sites.

    Debit on the source and credit on the destination are booked in one unit
    of work, so a failing credit leaves the debit unapplied.

    Returns:
        (source Material, destination Material, [debit entry, credit entry])
    """
    quantity = _positive_quantity(quantity)
    destination_id = to_material_id or material_id
    if destination_id == material_id and from_project_id == to_project_id:
        raise InvalidTransaction("Source and destination of a transfer must differ")

    reference = _timestamp_reference("TRANSFER")
    note = reason or "No description"
    with unit_of_work(db, f"transfer material {material_id} from project {from_project_id} to {to_project_id}"):
        for locked_id in sorted({material_id, destination_id}):
            lock_material(db, locked_id)
        source, debit = apply_transaction(
            db,
            material_id=material_id,
            project_id=from_project_id,
            transaction_type=TransactionType.TRANSFER,
            quantity_change=-quantity,
            reference_number=reference,
            description=f"Transferred to project {to_project_id}: {note}",
            location=location,
            performed_by_user_id=performed_by_user_id,
        )
        destination, credit = apply_transaction(
            db,
            material_id=destination_id,
            project_id=to_project_id,
            transaction_type=TransactionType.TRANSFER,
            quantity_change=quantity,
            reference_number=reference,
            description=f"Transferred from project {from_project_id}: {note}",
            location=location,
            performed_by_user_id=performed_by_user_id,
        )
    logger.info(f"Transfer {reference}: {quantity} of material {material_id} -> material {destination_id}")
    return source, destination, [debit, credit]


def settle_stock(
    db: Session,
    *,
    material_id: int,
    counted_quantity,
    performed_by_user_id: int,
    remarks: Optional[str] = None,
    location: Optional[str] = None,
):
    """Reconcile recorded stock with a physical count.

    Books an ADJUSTMENT for (counted - recorded). When the count matches, no
    ledger row is written and the entry returned is None.
    """
    counted = to_quantity(counted_quantity, "counted_quantity")
    if counted < 0:
        raise InvalidTransaction("counted_quantity must not be negative")

    entry = None
    with unit_of_work(db, f"settle stock for material {material_id}"):
        material = lock_material(db, material_id)
        recorded = Decimal(material.stock_qty or 0)
        difference = counted - recorded
        if difference != 0:
            material, entry = apply_transaction(
                db,
                material_id=material_id,
                project_id=material.project_id,
                transaction_type=TransactionType.ADJUSTMENT,
                quantity_change=difference,
                reference_number=_timestamp_reference("SETTLEMENT"),
                description=f"Stock settlement: counted {counted}, recorded {recorded}"
                + (f". {remarks}" if remarks else ""),
                location=location or material.location,
                performed_by_user_id=performed_by_user_id,
            )
    if entry is None:
        logger.info(f"Stock settlement for material {material_id}: count matches recorded {counted}")
    return material, entry


def restock_material(
    db: Session,
    *,
    material_id: int,
    quantity,
    performed_by_user_id: int,
    cost_per_unit=None,
    supplier: Optional[str] = None,
    reference_number: Optional[str] = None,
    notes: Optional[str] = None,
    location: Optional[str] = None,
):
    """Receive stock into store (PURCHASE) and optionally update cost and supplier."""
    quantity = _positive_quantity(quantity)
    if cost_per_unit is not None:
        cost_per_unit = to_quantity(cost_per_unit, "cost_per_unit", places=2)
        if cost_per_unit < 0:
            raise InvalidTransaction("cost_per_unit must not be negative")

    with unit_of_work(db, f"restock material {material_id}"):
        material = lock_material(db, material_id)
        material, entry = apply_transaction(
            db,
            material_id=material_id,
            project_id=material.project_id,
            transaction_type=TransactionType.PURCHASE,
            quantity_change=quantity,
            reference_number=reference_number or _timestamp_reference("RESTOCK"),
            description=f"Material restocked: {notes or 'No notes'}",
            location=location or material.location or DEFAULT_LOCATION,
            performed_by_user_id=performed_by_user_id,
        )
        # Set after apply_transaction: its locking read reloads the row
        if cost_per_unit is not None:
            material.cost_per_unit = cost_per_unit
        if supplier:
            material.supplier = supplier
    return material, entry


def bulk_restock(
    db: Session,
    *,
    restocks: Iterable[dict],
    performed_by_user_id: int,
    reference_number: Optional[str] = None,
    notes: Optional[str] = None,
    location: Optional[str] = None,
) -> dict:
    """Restock several materials; each line commits on its own.

    A failing line is reported in `errors` and does not undo the others.
    """
    reference = reference_number or _timestamp_reference("BULK-RESTOCK")
    results = []
    errors = []
    for line in restocks:
        try:
            material, _ = restock_material(
                db,
                material_id=line["material_id"],
                quantity=line["quantity"],
                performed_by_user_id=performed_by_user_id,
                cost_per_unit=line.get("cost_per_unit"),
                supplier=line.get("supplier"),
                reference_number=reference,
                notes=notes,
                location=location,
            )
        except InventoryError as e:
            logger.warning(f"Bulk restock line for material {line.get('material_id')} failed: {e.message}")
            errors.append({"material_id": line.get("material_id"), "error": e.message})
            continue
        results.append({
            "material_id": material.id,
            "material_name": material.name,
            "restock_quantity": to_quantity(line["quantity"]),
            "new_stock": Decimal(material.stock_qty),
        })
    return {
        "message": f"Bulk restock completed. {len(results)} materials restocked successfully.",
        "results": results,
        "errors": errors,
    }
