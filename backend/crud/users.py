import logging
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from models.users import User

logger = logging.getLogger(__name__)

def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()

def get_or_create_user(db: Session, username: str, full_name: Optional[str] = None, email: Optional[str] = None) -> User:
    """Local user row for an identity-provider account, created on first use."""
    user = get_user_by_username(db, username)
    if user:
        return user
    user = User(username=username, full_name=full_name, email=email, is_active=True)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent first request created the same username
        db.rollback()
        existing = get_user_by_username(db, username)
        if existing is None:
            raise
        logger.info(f"User '{username}' was created concurrently; using existing row {existing.id}")
        return existing
    db.refresh(user)
    return user
