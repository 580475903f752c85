"""
Productivity (harvest) ledger

Yield per hectare is derived, never stored: ``production_amount / farm_area``
is computed whenever a record is read, so it cannot drift from the farm's
current area. A figure sent by the client is only compared against the
derived one and reported when they disagree.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.config import settings
from src.api.core.errors import ConflictError, NotFoundError
from src.api.models.farm import Farm
from src.api.models.productivity import Productivity
from src.api.models.warehouse import WarehouseInventory
from src.api.schemas.productivity import ProductivityCreate, ProductivitySummary, ProductivityUpdate
from src.utils.logger import get_logger

logger = get_logger(__name__)


def derive_productivity(production_amount: float, farm_area: float) -> float:
    """Yield in kg/ha; zero for a farm without area"""
    if not farm_area:
        return 0.0
    return production_amount / farm_area


def productivity_mismatch(submitted: Optional[float], derived: float,
                          tolerance: Optional[float] = None) -> Optional[str]:
    """Warning text when a client-computed yield disagrees with the derived one"""
    if submitted is None:
        return None
    tolerance = settings.PRODUCTIVITY_TOLERANCE if tolerance is None else tolerance
    if abs(submitted - derived) <= tolerance:
        return None
    return (
        f"Submitted productivity {submitted:.2f} kg/ha does not match "
        f"production amount / farm area = {derived:.2f} kg/ha; the derived value is used"
    )


def summarize_productivity(records: Iterable) -> ProductivitySummary:
    """
    Totals and means over harvest records

    Args:
        records: Objects exposing production_amount, selling_price and productivity
    """
    records = list(records)
    count = len(records)
    total_production = sum(r.production_amount for r in records)
    total_revenue = sum(r.production_amount * r.selling_price for r in records)
    avg_productivity = sum(r.productivity for r in records) / count if count else 0.0
    avg_price = sum(r.selling_price for r in records) / count if count else 0.0
    return ProductivitySummary(
        record_count=count,
        total_production=total_production,
        total_revenue=total_revenue,
        avg_productivity=avg_productivity,
        avg_price=avg_price,
    )


@dataclass
class WriteResult:
    record: Productivity
    warnings: List[str]


class ProductivityService:
    """Service for harvest records"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_record(self, record_id: UUID) -> Productivity:
        result = await self.db.execute(
            select(Productivity)
            .where(Productivity.id == record_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("Productivity record not found")
        return record

    async def list_records(
        self,
        farm_id: Optional[UUID] = None,
        farmer_id: Optional[UUID] = None,
    ) -> Sequence[Productivity]:
        query = select(Productivity)
        if farm_id is not None:
            query = query.where(Productivity.farm_id == farm_id)
        if farmer_id is not None:
            query = query.where(
                Productivity.farm_id.in_(select(Farm.id).where(Farm.farmer_id == farmer_id))
            )
        result = await self.db.execute(
            query.order_by(Productivity.harvest_date.desc(), Productivity.created_at.desc())
        )
        return result.scalars().all()

    async def summary(self, farm_id: Optional[UUID] = None,
                      farmer_id: Optional[UUID] = None) -> ProductivitySummary:
        return summarize_productivity(await self.list_records(farm_id=farm_id, farmer_id=farmer_id))

    def _check(self, submitted: Optional[float], production_amount: float, farm: Farm) -> List[str]:
        derived = derive_productivity(production_amount, farm.farm_area)
        warning = productivity_mismatch(submitted, derived)
        if warning:
            logger.warning(f"Farm {farm.id}: {warning}")
            return [warning]
        return []

    async def create_record(self, data: ProductivityCreate) -> WriteResult:
        farm = await self.db.get(Farm, data.farm_id)
        if farm is None:
            raise NotFoundError("Farm not found")

        warnings = self._check(data.productivity, data.production_amount, farm)

        record = Productivity(
            farm_id=data.farm_id,
            harvest_date=data.harvest_date,
            production_amount=data.production_amount,
            selling_price=data.selling_price,
        )
        self.db.add(record)
        await self.db.commit()
        logger.info(f"Harvest of {data.production_amount} kg recorded for farm {farm.id}")
        return WriteResult(await self.get_record(record.id), warnings)

    async def update_record(self, record_id: UUID, data: ProductivityUpdate) -> WriteResult:
        record = await self.get_record(record_id)
        changes = data.model_dump(exclude_unset=True, exclude={"productivity"})
        for field, value in changes.items():
            if value is None:
                continue
            setattr(record, field, value)

        warnings = self._check(data.productivity, record.production_amount, record.farm)

        await self.db.commit()
        return WriteResult(await self.get_record(record.id), warnings)

    async def delete_record(self, record_id: UUID) -> None:
        record = await self.get_record(record_id)
        stored = await self.db.scalar(
            select(func.count(WarehouseInventory.id))
            .where(WarehouseInventory.productivity_id == record.id)
        )
        if stored:
            raise ConflictError(
                f"Cannot delete productivity record. It is referenced by {stored} warehouse inventory entr{'y' if stored == 1 else 'ies'}."
            )
        await self.db.delete(record)
        await self.db.commit()
        logger.info(f"Productivity record {record_id} deleted")

