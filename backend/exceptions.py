"""
Typed exceptions raised by the inventory ledger.

Every exception carries a machine-readable ``code`` plus the structured data
callers need to build a user-facing message, so routers catch by type and
never parse message strings.

    InventoryError (base)
    |
    +-- MaterialNotFound
    +-- LedgerEntryNotFound
    +-- InsufficientStock
    +-- InvalidTransaction
    +-- LedgerImmutableError
    +-- PersistenceFailure
"""

from decimal import Decimal
from typing import Optional


class InventoryError(Exception):
    code: str = "INVENTORY_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MaterialNotFound(InventoryError):
    code = "MATERIAL_NOT_FOUND"

    def __init__(self, material_id: int):
        self.material_id = material_id
        super().__init__(f"Material with ID {material_id} not found")


class LedgerEntryNotFound(InventoryError):
    code = "LEDGER_ENTRY_NOT_FOUND"

    def __init__(self, history_id: int):
        self.history_id = history_id
        super().__init__(f"Inventory history entry with ID {history_id} not found")


class InsufficientStock(InventoryError):
    """A decrease would drive the material's stock below zero."""

    code = "INSUFFICIENT_STOCK"

    def __init__(self, material_id: int, available: Decimal, requested: Decimal, material_name: Optional[str] = None):
        self.material_id = material_id
        self.available = available
        self.requested = requested
        self.material_name = material_name
        label = material_name or f"material {material_id}"
        super().__init__(f"Insufficient stock for {label}. Available: {available}, Requested: {requested}")


class InvalidTransaction(InventoryError):
    code = "INVALID_TRANSACTION"


class LedgerImmutableError(InventoryError):
    code = "LEDGER_IMMUTABLE"

    def __init__(self, history_id: int, operation: str = "update"):
        self.history_id = history_id
        self.operation = operation
        super().__init__(
            f"Inventory history entry {history_id} is immutable and cannot be {operation}d; "
            "record a compensating transaction instead"
        )


class PersistenceFailure(InventoryError):
    """Storage error during read, write or commit; the unit of work was rolled back."""

    code = "PERSISTENCE_FAILURE"
