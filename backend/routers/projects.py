from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import crud.projects as crud_projects
from database import get_db
from models.projects import Project as ProjectModel
from schemas.projects import ProjectCreate, Project as ProjectSchema
from utils.auth_utils import get_current_user, get_user_identifier

import logging
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/projects",
    tags=["Projects"],
    dependencies=[Depends(get_current_user)]
)

@router.post("/", response_model=ProjectSchema)
def create_project(
    project: ProjectCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    if project.code:
        existing = db.query(ProjectModel).filter(ProjectModel.code == project.code).first()
        if existing:
            raise HTTPException(status_code=400, detail=f"A project with code '{project.code}' already exists.")
    db_project = crud_projects.create_project(db=db, project=project, changed_by=get_user_identifier(user))
    logger.info(f"Project '{db_project.name}' (ID: {db_project.id}) created by {get_user_identifier(user)}")
    return db_project

@router.get("/", response_model=List[ProjectSchema])
def read_projects(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return crud_projects.get_projects(db, skip=skip, limit=limit)

@router.get("/{project_id}", response_model=ProjectSchema)
def read_project(project_id: int, db: Session = Depends(get_db)):
    db_project = crud_projects.get_project(db, project_id=project_id)
    if db_project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return db_project
