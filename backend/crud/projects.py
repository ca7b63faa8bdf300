from sqlalchemy.orm import Session
from models.projects import Project
from schemas.projects import ProjectCreate
from crud.audit_log import create_audit_log
from schemas.audit_log import AuditLogCreate
from utils import sqlalchemy_to_dict

def get_project(db: Session, project_id: int):
    return db.query(Project).filter(Project.id == project_id).first()

def get_projects(db: Session, skip: int = 0, limit: int = 100):
    return db.query(Project).order_by(Project.name).offset(skip).limit(limit).all()

def create_project(db: Session, project: ProjectCreate, changed_by: str):
    db_project = Project(**project.model_dump(), created_by=changed_by, updated_by=changed_by)
    db.add(db_project)
    db.flush()
    create_audit_log(
        db=db,
        log_entry=AuditLogCreate(
            table_name='projects',
            record_id=db_project.id,
            changed_by=changed_by,
            action='INSERT',
            new_values=sqlalchemy_to_dict(db_project),
        ),
        commit=False,
    )
    db.commit()
    db.refresh(db_project)
    return db_project
