from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String

from kitchen_auth.core.database import Base


class Identity(Base):
    __tablename__ = "users"
    __table_args__ = (Index("ix_users_tenant_role", "tenant_id", "role"),)

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), nullable=True, index=True)

    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    name = Column(String, nullable=False)
    organization = Column(String, nullable=True)
    password_hash = Column(String, nullable=True)

    role = Column(String, nullable=False, default="team-member")  # head-chef | team-member (legado: user)
    status = Column(String, nullable=False, default="pending")  # pending | approved | active | inactive
    capabilities = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)

    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
