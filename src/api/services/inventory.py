"""
Warehouse inventory ledger

Stock enters as inventory entries tied to a harvest record and leaves as
StockRemoval rows. Each removal keeps its own reason, date and buyer; the
``quantity_removed`` column on the entry is a running total that is only
advanced by a conditional UPDATE, so two concurrent removals can never push
it past ``quantity_stored``.
"""

from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.core.errors import NotFoundError, ValidationError
from src.api.models.productivity import Productivity
from src.api.models.warehouse import StockRemoval, WarehouseInventory
from src.api.schemas.warehouse import InventoryCreate, InventorySummary, InventoryUpdate, RemovalCreate
from src.utils.logger import get_logger

logger = get_logger(__name__)

# Float slack when comparing kilogram quantities
EPSILON = 1e-9

EXCEEDS_STOCK_MESSAGE = "Removal quantity exceeds available stock."


def summarize_inventory(entries: Iterable[WarehouseInventory]) -> InventorySummary:
    """
    Stock position over inventory entries

    Revenue values every removed kilogram at the selling price of the
    harvest the entry came from.
    """
    entries = list(entries)
    total_stored = sum(e.quantity_stored for e in entries)
    total_removed = sum(e.quantity_removed or 0.0 for e in entries)
    total_revenue = sum(
        (e.quantity_removed or 0.0) * (e.productivity.selling_price if e.productivity else 0.0)
        for e in entries
    )
    return InventorySummary(
        entry_count=len(entries),
        total_stored=total_stored,
        total_removed=total_removed,
        current_stock=total_stored - total_removed,
        total_revenue=total_revenue,
    )


class InventoryService:
    """Service for warehouse stock-in / stock-out"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_entry(self, entry_id: UUID) -> WarehouseInventory:
        result = await self.db.execute(
            select(WarehouseInventory)
            .where(WarehouseInventory.id == entry_id)
            .execution_options(populate_existing=True)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError("Warehouse inventory not found")
        return entry

    async def list_entries(self, productivity_id: Optional[UUID] = None) -> Sequence[WarehouseInventory]:
        query = select(WarehouseInventory)
        if productivity_id is not None:
            query = query.where(WarehouseInventory.productivity_id == productivity_id)
        result = await self.db.execute(
            query.order_by(WarehouseInventory.date_stored.desc(), WarehouseInventory.created_at.desc())
        )
        return result.scalars().all()

    async def summary(self, productivity_id: Optional[UUID] = None) -> InventorySummary:
        return summarize_inventory(await self.list_entries(productivity_id=productivity_id))

    async def _check_production_cap(self, productivity_id: UUID, quantity: float,
                                    exclude_entry: Optional[UUID] = None) -> None:
        """
        A harvest cannot be stored beyond what it produced

        Net stock still held for the same harvest in other entries counts
        against its production amount.
        """
        productivity = await self.db.get(Productivity, productivity_id)
        if productivity is None:
            raise NotFoundError("Productivity record not found")

        query = select(WarehouseInventory.quantity_stored, WarehouseInventory.quantity_removed).where(
            WarehouseInventory.productivity_id == productivity_id
        )
        if exclude_entry is not None:
            query = query.where(WarehouseInventory.id != exclude_entry)
        rows = (await self.db.execute(query)).all()
        already_held = sum((stored or 0.0) - (removed or 0.0) for stored, removed in rows)
        available = productivity.production_amount - already_held

        if quantity > available + EPSILON:
            raise ValidationError(
                f"Quantity stored ({quantity}) cannot exceed available production amount "
                f"({available:.2f}). Production amount: {productivity.production_amount}, "
                f"Already stored: {already_held:.2f}"
            )

    async def store(self, data: InventoryCreate) -> WarehouseInventory:
        await self._check_production_cap(data.productivity_id, data.quantity_stored)

        entry = WarehouseInventory(
            productivity_id=data.productivity_id,
            quantity_stored=data.quantity_stored,
            storage_location=data.storage_location,
            date_stored=data.date_stored,
            quantity_removed=0.0,
            notes=data.notes or "",
        )
        self.db.add(entry)
        await self.db.commit()
        logger.info(f"Stored {data.quantity_stored} kg at {data.storage_location} from harvest {data.productivity_id}")
        return await self.get_entry(entry.id)

    async def update_entry(self, entry_id: UUID, data: InventoryUpdate) -> WarehouseInventory:
        entry = await self.get_entry(entry_id)
        changes = data.model_dump(exclude_unset=True)

        quantity = changes.get("quantity_stored")
        if quantity is not None:
            if quantity + EPSILON < entry.quantity_removed:
                raise ValidationError(
                    f"Quantity stored ({quantity}) cannot be less than the quantity already removed "
                    f"({entry.quantity_removed:.2f})"
                )
            await self._check_production_cap(entry.productivity_id, quantity, exclude_entry=entry.id)

        for field, value in changes.items():
            if value is None and field != "notes":
                continue
            setattr(entry, field, value)

        await self.db.commit()
        return await self.get_entry(entry.id)

    async def delete_entry(self, entry_id: UUID) -> None:
        entry = await self.get_entry(entry_id)
        await self.db.delete(entry)
        await self.db.commit()
        logger.info(f"Warehouse inventory {entry_id} deleted")

    async def remove_stock(self, entry_id: UUID, data: RemovalCreate) -> WarehouseInventory:
        """
        Take stock out of an entry

        The running total is advanced with a single guarded UPDATE; when the
        guard fails nothing is written and the ledger stays as it was.
        """
        exists = await self.db.scalar(select(WarehouseInventory.id).where(WarehouseInventory.id == entry_id))
        if exists is None:
            raise NotFoundError("Warehouse inventory not found")

        quantity = data.quantity_removed
        result = await self.db.execute(
            update(WarehouseInventory)
            .where(
                WarehouseInventory.id == entry_id,
                WarehouseInventory.quantity_removed + quantity
                <= WarehouseInventory.quantity_stored + EPSILON,
            )
            .values(quantity_removed=WarehouseInventory.quantity_removed + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            logger.warning(f"Removal of {quantity} kg from {entry_id} refused: exceeds available stock")
            raise ValidationError(EXCEEDS_STOCK_MESSAGE)

        self.db.add(StockRemoval(
            inventory_id=entry_id,
            quantity=quantity,
            reason=data.removal_reason,
            date_removed=data.date_removed,
            buyer_info=data.buyer_info,
        ))
        await self.db.commit()
        logger.info(f"Removed {quantity} kg from {entry_id} ({data.removal_reason})")
        return await self.get_entry(entry_id)

    async def list_removals(self, entry_id: UUID) -> Sequence[StockRemoval]:
        await self.get_entry(entry_id)
        result = await self.db.execute(
            select(StockRemoval)
            .where(StockRemoval.inventory_id == entry_id)
            .order_by(StockRemoval.created_at)
        )
        return result.scalars().all()
