from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from kitchen_auth.core.database import Base


class AuthAuditLog(Base):
    __tablename__ = "auth_audit_log"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(36), nullable=True, index=True)
    identity_id = Column(String(36), nullable=True, index=True)
    action = Column(String, nullable=False)
    reason = Column(String, nullable=True)
    client_key = Column(String, nullable=True)
    meta_json = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
