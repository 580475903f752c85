from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.sql import func
import uuid

from src.api.core.database import Base, utcnow


class District(Base):
    __tablename__ = "districts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    district_code = Column(String(20), unique=True, nullable=False, index=True)
    district_name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    def __repr__(self):
        return f"<District {self.district_code}>"
