from models.users import User
from models.projects import Project
from models.materials import Material
from models.inventory_history import InventoryHistory
from models.audit_log import AuditLog

__all__ = ['AuditLog', 'InventoryHistory', 'Material', 'Project', 'User',]
