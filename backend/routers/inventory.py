from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

import crud.inventory as crud_inventory
import crud.stock_operations as crud_stock
from database import get_db
from exceptions import (
    InsufficientStock,
    InvalidTransaction,
    InventoryError,
    LedgerEntryNotFound,
    LedgerImmutableError,
    MaterialNotFound,
    PersistenceFailure,
)
from models.inventory_history import TransactionType
from models.users import User
from schemas.inventory_history import ConsumptionReport, InventoryHistoryPage
from schemas.materials import StockLevel
from schemas.stock_operations import (
    BulkRestockCreate,
    BulkRestockResult,
    IssueCreate,
    IssueReverse,
    RestockCreate,
    ReturnCreate,
    ReturnResult,
    SettlementCreate,
    StockOperationResult,
    TransferCreate,
    TransferResult,
)
from utils.auth_utils import ADMIN_GROUP, get_acting_user, get_current_user, require_group

# --- Logging Configuration (import and get logger) ---
import logging
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/inventory",
    tags=["Inventory"],
    dependencies=[Depends(get_current_user)]
)

MAX_PAGE_SIZE = 500


def to_http_exception(e: InventoryError) -> HTTPException:
    """Map a ledger exception to the HTTP error the client sees."""
    if isinstance(e, (MaterialNotFound, LedgerEntryNotFound)):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, (InsufficientStock, InvalidTransaction)):
        return HTTPException(status_code=400, detail=e.message)
    if isinstance(e, LedgerImmutableError):
        return HTTPException(status_code=409, detail=e.message)
    if isinstance(e, PersistenceFailure):
        return HTTPException(status_code=500, detail="Internal server error while updating inventory.")
    logger.error(f"Unmapped inventory error {e.code}: {e.message}")
    return HTTPException(status_code=500, detail="Internal server error.")


def _offset(page: int, limit: int) -> int:
    return (page - 1) * limit


# --- History and reports ---

@router.get("/history/{material_id}", response_model=InventoryHistoryPage)
def read_material_history(
    material_id: int,
    project_id: Optional[int] = None,
    transaction_type: Optional[TransactionType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(crud_inventory.DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    try:
        return crud_inventory.get_inventory_history(
            db,
            material_id=material_id,
            project_id=project_id,
            transaction_type=transaction_type,
            limit=limit,
            offset=_offset(page, limit),
        )
    except InventoryError as e:
        raise to_http_exception(e)


@router.get("/history/project/{project_id}", response_model=InventoryHistoryPage)
def read_project_history(
    project_id: int,
    transaction_type: Optional[TransactionType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(crud_inventory.DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    try:
        return crud_inventory.get_project_inventory_history(
            db,
            project_id=project_id,
            transaction_type=transaction_type,
            limit=limit,
            offset=_offset(page, limit),
        )
    except InventoryError as e:
        raise to_http_exception(e)


@router.get("/stock-levels", response_model=List[StockLevel])
def read_stock_levels(project_id: Optional[int] = None, db: Session = Depends(get_db)):
    return crud_inventory.get_current_stock_levels(db, project_id=project_id)


@router.get("/low-stock-alerts", response_model=List[StockLevel])
def read_low_stock_alerts(project_id: Optional[int] = None, db: Session = Depends(get_db)):
    alerts = crud_inventory.get_low_stock_alerts(db, project_id=project_id)
    logger.info(f"{len(alerts)} material(s) at or below reorder point")
    return alerts


@router.get("/restock/history", response_model=InventoryHistoryPage)
def read_restock_history(
    material_id: Optional[int] = None,
    project_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(crud_inventory.DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=400, detail="date_from must not be after date_to")
    try:
        return crud_inventory.get_restock_history(
            db,
            material_id=material_id,
            project_id=project_id,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=_offset(page, limit),
        )
    except InventoryError as e:
        raise to_http_exception(e)


@router.get("/consumptions/calculate", response_model=ConsumptionReport)
def read_consumption(project_id: Optional[int] = None, db: Session = Depends(get_db)):
    return crud_inventory.calculate_consumption(db, project_id=project_id)


# --- Stock movements ---

@router.post("/issue", response_model=StockOperationResult)
def issue_material(
    issue: IssueCreate,
    db: Session = Depends(get_db),
    acting_user: User = Depends(get_acting_user),
):
    try:
        material, entry = crud_stock.issue_material(
            db,
            material_id=issue.material_id,
            project_id=issue.project_id,
            quantity=issue.quantity,
            performed_by_user_id=acting_user.id,
            transaction_id=issue.transaction_id,
            purpose=issue.purpose,
            location=issue.location,
        )
    except InventoryError as e:
        raise to_http_exception(e)
    return {"material": material, "entry": entry}


@router.post("/issue/{history_id}/reverse", response_model=StockOperationResult)
def reverse_issue(
    history_id: int,
    reversal: Optional[IssueReverse] = None,
    db: Session = Depends(get_db),
    acting_user: User = Depends(get_acting_user),
):
    try:
        material, entry = crud_stock.reverse_issue(
            db,
            history_id=history_id,
            performed_by_user_id=acting_user.id,
            reason=reversal.reason if reversal else None,
        )
    except InventoryError as e:
        raise to_http_exception(e)
    return {"material": material, "entry": entry}


@router.post("/return", response_model=ReturnResult)
def return_materials(
    material_return: ReturnCreate,
    db: Session = Depends(get_db),
    acting_user: User = Depends(get_acting_user),
):
    try:
        entries = crud_stock.return_materials(
            db,
            project_id=material_return.project_id,
            lines=[line.model_dump() for line in material_return.lines],
            performed_by_user_id=acting_user.id,
            transaction_id=material_return.transaction_id,
            remarks=material_return.remarks,
            location=material_return.location,
        )
    except InventoryError as e:
        raise to_http_exception(e)
    return {"entries": entries}


@router.post("/transfer", response_model=TransferResult)
def transfer_material(
    transfer: TransferCreate,
    db: Session = Depends(get_db),
    acting_user: User = Depends(get_acting_user),
):
    try:
        source, destination, entries = crud_stock.transfer_material(
            db,
            material_id=transfer.material_id,
            from_project_id=transfer.from_project_id,
            to_project_id=transfer.to_project_id,
            quantity=transfer.quantity,
            performed_by_user_id=acting_user.id,
            to_material_id=transfer.to_material_id,
            reason=transfer.reason,
            location=transfer.location,
        )
    except InventoryError as e:
        raise to_http_exception(e)
    return {"source": source, "destination": destination, "entries": entries}


@router.post(
    "/settlement",
    response_model=StockOperationResult,
    dependencies=[Depends(require_group([ADMIN_GROUP]))],
)
def settle_stock(
    settlement: SettlementCreate,
    db: Session = Depends(get_db),
    acting_user: User = Depends(get_acting_user),
):
    try:
        material, entry = crud_stock.settle_stock(
            db,
            material_id=settlement.material_id,
            counted_quantity=settlement.counted_quantity,
            performed_by_user_id=acting_user.id,
            remarks=settlement.remarks,
            location=settlement.location,
        )
    except InventoryError as e:
        raise to_http_exception(e)
    return {"material": material, "entry": entry}


@router.post("/restock", response_model=StockOperationResult)
def restock_material(
    restock: RestockCreate,
    db: Session = Depends(get_db),
    acting_user: User = Depends(get_acting_user),
):
    try:
        material, entry = crud_stock.restock_material(
            db,
            material_id=restock.material_id,
            quantity=restock.quantity,
            performed_by_user_id=acting_user.id,
            cost_per_unit=restock.cost_per_unit,
            supplier=restock.supplier,
            reference_number=restock.reference_number,
            notes=restock.notes,
            location=restock.location,
        )
    except InventoryError as e:
        raise to_http_exception(e)
    return {"material": material, "entry": entry}


@router.post("/restock/bulk", response_model=BulkRestockResult)
def bulk_restock(
    bulk: BulkRestockCreate,
    db: Session = Depends(get_db),
    acting_user: User = Depends(get_acting_user),
):
    result = crud_stock.bulk_restock(
        db,
        restocks=[line.model_dump() for line in bulk.restocks],
        performed_by_user_id=acting_user.id,
        reference_number=bulk.reference_number,
        notes=bulk.notes,
        location=bulk.location,
    )
    logger.info(result["message"])
    return result
