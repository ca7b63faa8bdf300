from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from schemas.materials import Material
from schemas.inventory_history import InventoryHistoryEntry

class IssueCreate(BaseModel):
    material_id: int
    project_id: int
    quantity: Decimal = Field(..., gt=0, decimal_places=3)
    transaction_id: Optional[int] = None # e.g. the material issue slip number
    purpose: Optional[str] = None
    location: Optional[str] = None

class IssueReverse(BaseModel):
    reason: Optional[str] = None

class ReturnLine(BaseModel):
    material_id: int
    quantity: Decimal = Field(..., gt=0, decimal_places=3)

class ReturnCreate(BaseModel):
    project_id: int
    lines: List[ReturnLine] = Field(..., min_length=1)
    transaction_id: Optional[int] = None
    remarks: Optional[str] = None
    location: Optional[str] = None

class TransferCreate(BaseModel):
    material_id: int
    from_project_id: int
    to_project_id: int
    quantity: Decimal = Field(..., gt=0, decimal_places=3)
    to_material_id: Optional[int] = None # Destination site's material record, if it keeps its own
    reason: Optional[str] = None
    location: Optional[str] = None

class SettlementCreate(BaseModel):
    material_id: int
    counted_quantity: Decimal = Field(..., ge=0, decimal_places=3)
    remarks: Optional[str] = None
    location: Optional[str] = None

class RestockCreate(BaseModel):
    material_id: int
    quantity: Decimal = Field(..., gt=0, decimal_places=3)
    cost_per_unit: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    supplier: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None

class BulkRestockLine(BaseModel):
    material_id: int
    quantity: Decimal = Field(..., gt=0, decimal_places=3)
    cost_per_unit: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    supplier: Optional[str] = None

class BulkRestockCreate(BaseModel):
    restocks: List[BulkRestockLine] = Field(..., min_length=1)
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None

class StockOperationResult(BaseModel):
    material: Material
    entry: Optional[InventoryHistoryEntry] = None

class TransferResult(BaseModel):
    source: Material
    destination: Material
    entries: List[InventoryHistoryEntry]

class ReturnResult(BaseModel):
    entries: List[InventoryHistoryEntry]

class BulkRestockLineResult(BaseModel):
    material_id: int
    material_name: str
    restock_quantity: Decimal
    new_stock: Decimal

class BulkRestockLineError(BaseModel):
    material_id: int
    error: str

class BulkRestockResult(BaseModel):
    message: str
    results: List[BulkRestockLineResult]
    errors: List[BulkRestockLineError]
