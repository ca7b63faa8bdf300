from pydantic import BaseModel, Field, field_validator
from typing import Optional
from decimal import Decimal
from datetime import datetime
from models.materials import MaterialStatus

class MaterialBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    item_code: Optional[str] = None
    category: Optional[str] = None
    type: Optional[str] = None
    unit: Optional[str] = None # e.g., "bags", "tons", "cft", "nos"
    cost_per_unit: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    supplier: Optional[str] = None
    minimum_stock_level: Decimal = Field(Decimal("0"), ge=0, decimal_places=3)
    maximum_stock_level: Decimal = Field(Decimal("1000"), ge=0, decimal_places=3)
    reorder_point: Decimal = Field(Decimal("0"), ge=0, decimal_places=3)
    location: Optional[str] = None
    status: MaterialStatus = MaterialStatus.ACTIVE
    project_id: Optional[int] = None
    description: Optional[str] = None

class MaterialCreate(MaterialBase):
    # Booked as an ADJUSTMENT ledger entry, never written to stock_qty directly
    opening_stock: Optional[Decimal] = Field(None, ge=0, decimal_places=3)

class MaterialUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    item_code: Optional[str] = None
    category: Optional[str] = None
    type: Optional[str] = None
    unit: Optional[str] = None
    # stock_qty is system-managed, not directly updated via this schema
    cost_per_unit: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    supplier: Optional[str] = None
    minimum_stock_level: Optional[Decimal] = Field(None, ge=0, decimal_places=3)
    maximum_stock_level: Optional[Decimal] = Field(None, ge=0, decimal_places=3)
    reorder_point: Optional[Decimal] = Field(None, ge=0, decimal_places=3)
    location: Optional[str] = None
    status: Optional[MaterialStatus] = None
    project_id: Optional[int] = None
    description: Optional[str] = None

    @field_validator('name', 'minimum_stock_level', 'maximum_stock_level', 'reorder_point', 'status')
    @classmethod
    def reject_null(cls, v, info):
        # Omit the field to leave it unchanged; these columns are NOT NULL
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

class Material(MaterialBase):
    id: int
    stock_qty: Decimal
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class MaterialSummary(BaseModel):
    id: int
    name: str
    unit: Optional[str] = None

    class Config:
        from_attributes = True

class StockLevel(BaseModel):
    id: int
    name: str
    type: Optional[str] = None
    unit: Optional[str] = None
    stock_qty: Decimal
    minimum_stock_level: Decimal
    maximum_stock_level: Decimal
    reorder_point: Decimal
    project_id: Optional[int] = None

    class Config:
        from_attributes = True
