import logging
from typing import Optional
from sqlalchemy.orm import Session

from crud.audit_log import create_audit_log
from crud.inventory import apply_transaction, unit_of_work
from models.inventory_history import TransactionType
from models.materials import Material, MaterialStatus
from schemas.audit_log import AuditLogCreate
from schemas.materials import MaterialCreate, MaterialUpdate
from utils import local_now, sqlalchemy_to_dict

logger = logging.getLogger(__name__)

def get_material(db: Session, material_id: int):
    return db.query(Material).filter(Material.id == material_id).first()

def get_material_by_item_code(db: Session, item_code: str):
    return db.query(Material).filter(Material.item_code == item_code).first()

def get_materials(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    category: Optional[str] = None,
    project_id: Optional[int] = None,
    status: Optional[MaterialStatus] = None,
):
    query = db.query(Material)
    if category:
        query = query.filter(Material.category == category)
    if project_id is not None:
        query = query.filter(Material.project_id == project_id)
    if status:
        query = query.filter(Material.status == status)
    return query.order_by(Material.name, Material.id).offset(skip).limit(limit).all()

def create_material(db: Session, material: MaterialCreate, user_id: int, changed_by: str):
    """Register a material. Opening stock is booked through the ledger, never set directly.

    The material, its audit row and the opening-stock entry commit together.
    """
    data = material.model_dump(exclude={"opening_stock"})
    db_material = Material(**data, stock_qty=0, created_by=changed_by, updated_by=changed_by)
    with unit_of_work(db, f"register material '{material.name}'"):
        db.add(db_material)
        db.flush()
        create_audit_log(
            db=db,
            log_entry=AuditLogCreate(
                table_name='materials',
                record_id=db_material.id,
                changed_by=changed_by,
                action='INSERT',
                new_values=sqlalchemy_to_dict(db_material),
            ),
            commit=False,
        )
        if material.opening_stock:
            apply_transaction(
                db,
                material_id=db_material.id,
                project_id=db_material.project_id,
                transaction_type=TransactionType.ADJUSTMENT,
                quantity_change=material.opening_stock,
                reference_number=f"OPENING-{db_material.id}",
                description="Opening stock",
                location=db_material.location,
                performed_by_user_id=user_id,
            )
    db.refresh(db_material)
    logger.info(f"Material '{db_material.name}' (ID: {db_material.id}) registered by {changed_by}")
    return db_material

def update_material(db: Session, material_id: int, material: MaterialUpdate, changed_by: str):
    db_material = get_material(db, material_id)
    if db_material is None:
        return None
    old_values = sqlalchemy_to_dict(db_material)
    update_data = material.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(db_material, key, value)
    db_material.updated_by = changed_by
    db.flush()
    create_audit_log(
        db=db,
        log_entry=AuditLogCreate(
            table_name='materials',
            record_id=material_id,
            changed_by=changed_by,
            action='UPDATE',
            old_values=old_values,
            new_values=sqlalchemy_to_dict(db_material),
        ),
        commit=False,
    )
    db.commit()
    db.refresh(db_material)
    return db_material

def delete_material(db: Session, material_id: int, changed_by: str) -> bool:
    """Soft delete: ledger rows keep referencing the material."""
    db_material = get_material(db, material_id)
    if db_material is None:
        return False
    old_values = sqlalchemy_to_dict(db_material)
    db_material.deleted_at = local_now()
    db_material.deleted_by = changed_by
    create_audit_log(
        db=db,
        log_entry=AuditLogCreate(
            table_name='materials',
            record_id=material_id,
            changed_by=changed_by,
            action='DELETE',
            old_values=old_values,
            new_values=None,
        ),
        commit=False,
    )
    db.commit()
    return True
