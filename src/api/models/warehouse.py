from sqlalchemy import Column, String, Float, Date, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from src.api.core.database import Base, utcnow


class WarehouseInventory(Base):
    __tablename__ = "warehouse_inventory"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    productivity_id = Column(Uuid, ForeignKey("productivities.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity_stored = Column(Float, nullable=False)
    storage_location = Column(String(255), nullable=False)
    date_stored = Column(Date, nullable=False)
    # Running total of the removal ledger; only ever changed by the guarded
    # UPDATE in services.inventory.remove_stock
    quantity_removed = Column(Float, nullable=False, default=0.0)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    productivity = relationship("Productivity", lazy="joined")
    removals = relationship(
        "StockRemoval",
        lazy="selectin",
        order_by="StockRemoval.created_at",
        cascade="all, delete-orphan",
    )

    @property
    def available_stock(self) -> float:
        return self.quantity_stored - sum(r.quantity for r in self.removals)

    def __repr__(self):
        return f"<WarehouseInventory {self.storage_location} - {self.quantity_stored}>"


class StockRemoval(Base):
    """Append-only record of one stock-out transaction"""

    __tablename__ = "stock_removals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    inventory_id = Column(Uuid, ForeignKey("warehouse_inventory.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = Column(Float, nullable=False)
    reason = Column(String(20), nullable=False)
    date_removed = Column(Date, nullable=False)
    buyer_info = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    def __repr__(self):
        return f"<StockRemoval {self.inventory_id} - {self.quantity} ({self.reason})>"


class WarehouseFacility(Base):
    """Named storage facility; kept apart from the inventory ledger"""

    __tablename__ = "warehouse_facilities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    warehouse_name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    def __repr__(self):
        return f"<WarehouseFacility {self.warehouse_name}>"
