from sqlalchemy import Column, Integer, String, Text, Enum
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import TimestampMixin

class ProjectStatus(enum.Enum):
    PLANNING = "Planning"
    ACTIVE = "Active"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"

class Project(Base, TimestampMixin):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    code = Column(String, unique=True, nullable=True)
    location = Column(String, nullable=True)
    status = Column(Enum(ProjectStatus), default=ProjectStatus.ACTIVE, nullable=False)
    description = Column(Text, nullable=True)

    # Relationships
    materials = relationship("Material", back_populates="project")
