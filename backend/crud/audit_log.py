from sqlalchemy.orm import Session
from models.audit_log import AuditLog
from schemas.audit_log import AuditLogCreate

def create_audit_log(db: Session, log_entry: AuditLogCreate, commit: bool = True):
    db_log_entry = AuditLog(**log_entry.model_dump())
    db.add(db_log_entry)
    if commit:
        db.commit()
        db.refresh(db_log_entry)
    return db_log_entry

def get_audit_logs(db: Session, table_name: str, record_id: int):
    return (
        db.query(AuditLog)
        .filter(AuditLog.table_name == table_name, AuditLog.record_id == record_id)
        .order_by(AuditLog.changed_at.desc(), AuditLog.id.desc())
        .all()
    )
