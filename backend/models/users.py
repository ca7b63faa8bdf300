from database import Base
from sqlalchemy import Column, Integer, String, Boolean
from models.audit_mixin import TimestampMixin

class User(Base, TimestampMixin):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, index=True)
    # Identity provider username (Cognito username or email)
    username = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, is_active={self.is_active})>"
