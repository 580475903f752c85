from sqlalchemy import Column, Float, Date, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from src.api.core.database import Base, utcnow


class Productivity(Base):
    """
    One harvest event of a farm

    Yield per hectare is not a column: it is derived from production_amount
    and the farm's current area whenever the record is read.
    """

    __tablename__ = "productivities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farm_id = Column(Uuid, ForeignKey("farms.id", ondelete="RESTRICT"), nullable=False, index=True)
    harvest_date = Column(Date, nullable=False, index=True)
    production_amount = Column(Float, nullable=False)
    selling_price = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    farm = relationship("Farm", lazy="joined")

    @property
    def productivity(self) -> float:
        if not self.farm or not self.farm.farm_area:
            return 0.0
        return self.production_amount / self.farm.farm_area

    def __repr__(self):
        return f"<Productivity {self.farm_id} - {self.harvest_date}>"
