from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from kitchen_auth.core.database import Base


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True)
    head_chef_id = Column(String(36), unique=True, nullable=False, index=True)
    restaurant_name = Column(String, nullable=False)
    restaurant_type = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
