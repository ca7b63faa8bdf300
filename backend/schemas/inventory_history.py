from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import List, Optional
from decimal import Decimal
from datetime import datetime
from models.inventory_history import TransactionType
from schemas.materials import MaterialSummary
from schemas.users import UserSummary

class InventoryHistoryEntry(BaseModel):
    id: int
    material_id: int
    project_id: Optional[int] = None
    transaction_type: TransactionType
    transaction_id: Optional[int] = None
    quantity_change: Decimal
    quantity_before: Decimal
    quantity_after: Decimal
    reference_number: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    performed_by_user_id: int
    transaction_date: datetime
    material: Optional[MaterialSummary] = None
    performed_by: Optional[UserSummary] = None

    class Config:
        from_attributes = True

class Pagination(BaseModel):
    total_items: int
    total_pages: int
    current_page: int
    items_per_page: int

    class Config:
        # Serialized as totalItems / totalPages / currentPage / itemsPerPage
        alias_generator = to_camel
        populate_by_name = True

class InventoryHistoryPage(BaseModel):
    history: List[InventoryHistoryEntry]
    pagination: Pagination

class MaterialConsumption(BaseModel):
    project_id: int
    project_name: Optional[str] = None
    material_id: int
    material_name: str
    material_type: Optional[str] = None
    material_unit: Optional[str] = None
    total_issued: Decimal
    total_returned: Decimal
    consumed_quantity: Decimal
    cost_per_unit: Optional[Decimal] = None
    total_cost: Decimal

class ConsumptionSummary(BaseModel):
    total_materials: int
    total_consumed_quantity: Decimal
    total_cost: Decimal

class ConsumptionReport(BaseModel):
    consumptions: List[MaterialConsumption]
    summary: ConsumptionSummary
