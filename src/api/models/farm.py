from sqlalchemy import Column, String, Integer, Float, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from src.api.core.database import Base, utcnow


class Farm(Base):
    __tablename__ = "farms"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farmer_id = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    district_id = Column(Uuid, ForeignKey("districts.id", ondelete="RESTRICT"), nullable=False, index=True)
    farm_area = Column(Float, nullable=False)
    elevation = Column(Float, nullable=False)
    planting_year = Column(Integer, nullable=False)
    # GeoJSON documents kept as serialized text
    input_coordinates = Column(Text)
    verified_geometry = Column(Text)
    status = Column(String(32), nullable=False, default="PENDING_VERIFICATION", index=True)
    verified_at = Column(DateTime(timezone=True))
    verified_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    farmer = relationship("User", foreign_keys=[farmer_id], lazy="joined")
    district = relationship("District", lazy="joined")

    def __repr__(self):
        return f"<Farm {self.id} - {self.status}>"
