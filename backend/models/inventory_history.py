from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, Enum, event
from sqlalchemy.orm import relationship, object_session
from database import Base
import enum
from exceptions import LedgerImmutableError
from utils import local_now

class TransactionType(str, enum.Enum):
    PURCHASE = "PURCHASE"
    ISSUE = "ISSUE"
    RETURN = "RETURN"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"

class InventoryHistory(Base):
    """One immutable stock movement. Append-only: corrections are new rows."""

    __tablename__ = "inventory_history"

    id = Column(Integer, primary_key=True, index=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    transaction_type = Column(Enum(TransactionType), nullable=False, index=True)
    transaction_id = Column(Integer, nullable=True, index=True) # ID of the business document (issue, return, transfer)
    quantity_change = Column(Numeric(12, 3), nullable=False) # Positive for additions, negative for subtractions
    quantity_before = Column(Numeric(12, 3), nullable=False)
    quantity_after = Column(Numeric(12, 3), nullable=False)
    reference_number = Column(String(100), nullable=True, index=True)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    performed_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    transaction_date = Column(DateTime(timezone=True), default=local_now, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=local_now)

    # Relationships
    material = relationship("Material", back_populates="history")
    project = relationship("Project")
    performed_by = relationship("User")


@event.listens_for(InventoryHistory, "before_update")
def _block_history_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise LedgerImmutableError(target.id, "update")


@event.listens_for(InventoryHistory, "before_delete")
def _block_history_delete(mapper, connection, target):
    raise LedgerImmutableError(target.id, "delete")
