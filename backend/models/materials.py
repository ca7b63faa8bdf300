from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import AuditMixin

class MaterialStatus(enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DISCONTINUED = "Discontinued"

class Material(Base, AuditMixin):
    __tablename__ = "materials"
    __table_args__ = (CheckConstraint("stock_qty >= 0", name="ck_materials_stock_qty_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    item_code = Column(String(50), unique=True, nullable=True)
    category = Column(String(100), nullable=True)
    type = Column(String(100), nullable=True)
    unit = Column(String(50), nullable=True) # e.g., "bags", "tons", "cft", "nos"
    cost_per_unit = Column(Numeric(12, 2), nullable=True)
    supplier = Column(String, nullable=True)

    # Stock aggregate: written only by crud.inventory.apply_transaction
    stock_qty = Column(Numeric(12, 3), default=0, nullable=False)
    minimum_stock_level = Column(Numeric(12, 3), default=0, nullable=False)
    maximum_stock_level = Column(Numeric(12, 3), default=1000, nullable=False)
    reorder_point = Column(Numeric(12, 3), default=0, nullable=False)

    location = Column(String, nullable=True)
    status = Column(Enum(MaterialStatus), default=MaterialStatus.ACTIVE, nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    description = Column(Text, nullable=True)

    # Relationships
    project = relationship("Project", back_populates="materials")
    history = relationship("InventoryHistory", back_populates="material")
