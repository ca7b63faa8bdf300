from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import crud.materials as crud_materials
from crud.audit_log import get_audit_logs
from database import get_db
from exceptions import InventoryError
from models.materials import MaterialStatus
from models.users import User
from routers.inventory import to_http_exception
from schemas.audit_log import AuditLog as AuditLogSchema
from schemas.materials import MaterialCreate, MaterialUpdate, Material as MaterialSchema
from utils.auth_utils import ADMIN_GROUP, get_acting_user, get_current_user, get_user_identifier, require_group

import logging
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/materials",
    tags=["Materials"],
    dependencies=[Depends(get_current_user)]
)

@router.post("/", response_model=MaterialSchema)
def create_material(
    material: MaterialCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    acting_user: User = Depends(get_acting_user),
):
    if material.item_code and crud_materials.get_material_by_item_code(db, material.item_code):
        raise HTTPException(status_code=400, detail=f"Material with item code '{material.item_code}' already exists")
    try:
        return crud_materials.create_material(
            db=db, material=material, user_id=acting_user.id, changed_by=get_user_identifier(user)
        )
    except InventoryError as e:
        raise to_http_exception(e)

@router.get("/", response_model=List[MaterialSchema])
def read_materials(
    skip: int = 0,
    limit: int = Query(100, ge=1),
    category: Optional[str] = None,
    project_id: Optional[int] = None,
    status: Optional[MaterialStatus] = None,
    db: Session = Depends(get_db),
):
    return crud_materials.get_materials(
        db, skip=skip, limit=limit, category=category, project_id=project_id, status=status
    )

@router.get("/{material_id}", response_model=MaterialSchema)
def read_material(material_id: int, db: Session = Depends(get_db)):
    db_material = crud_materials.get_material(db, material_id=material_id)
    if db_material is None:
        raise HTTPException(status_code=404, detail="Material not found")
    return db_material

@router.patch("/{material_id}", response_model=MaterialSchema)
def update_material(
    material_id: int,
    material: MaterialUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    if material.item_code:
        existing = crud_materials.get_material_by_item_code(db, material.item_code)
        if existing and existing.id != material_id:
            raise HTTPException(status_code=400, detail=f"Material with item code '{material.item_code}' already exists")
    db_material = crud_materials.update_material(
        db, material_id=material_id, material=material, changed_by=get_user_identifier(user)
    )
    if db_material is None:
        raise HTTPException(status_code=404, detail="Material not found")
    logger.info(f"Material {material_id} updated by {get_user_identifier(user)}")
    return db_material

@router.delete("/{material_id}")
def delete_material(
    material_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_group([ADMIN_GROUP])),
):
    if not crud_materials.delete_material(db, material_id=material_id, changed_by=get_user_identifier(user)):
        raise HTTPException(status_code=404, detail="Material not found")
    logger.info(f"Material {material_id} deleted by {get_user_identifier(user)}")
    return {"message": "Material deleted successfully"}

@router.get("/{material_id}/audit", response_model=List[AuditLogSchema])
def read_material_audit(material_id: int, db: Session = Depends(get_db)):
    """Change log of a material's master data (stock movements live in the inventory history)."""
    return get_audit_logs(db, table_name="materials", record_id=material_id)
