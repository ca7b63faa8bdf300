from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from models.projects import ProjectStatus

class ProjectBase(BaseModel):
    name: str
    code: Optional[str] = None
    location: Optional[str] = None
    status: Optional[ProjectStatus] = ProjectStatus.ACTIVE
    description: Optional[str] = None

class ProjectCreate(ProjectBase):
    pass

class Project(ProjectBase):
    id: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
