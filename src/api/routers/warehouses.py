from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID

from src.api.core.database import get_db
from src.api.schemas.common import ApiResponse
from src.api.schemas.warehouse import (
    InventoryCreate,
    InventoryUpdate,
    InventoryResponse,
    InventorySummary,
    RemovalCreate,
    RemovalResponse,
)
from src.api.services.inventory import InventoryService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[InventoryResponse]])
async def list_inventory(
    productivity_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    List warehouse inventory entries, most recently stored first
    """
    entries = await InventoryService(db).list_entries(productivity_id=productivity_id)
    return ApiResponse(
        data=[InventoryResponse.from_entry(e) for e in entries],
        count=len(entries),
    )


@router.get("/summary", response_model=ApiResponse[InventorySummary])
async def get_inventory_summary(
    productivity_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    Stored, removed and remaining stock with revenue from removals
    """
    summary = await InventoryService(db).summary(productivity_id=productivity_id)
    return ApiResponse(data=summary)


@router.post("", response_model=ApiResponse[InventoryResponse], status_code=status.HTTP_201_CREATED)
async def store_inventory(entry_data: InventoryCreate, db: AsyncSession = Depends(get_db)):
    """
    Store part of a harvest in a warehouse

    The quantity may not exceed the harvest's production amount less the
    stock already held for it.
    """
    entry = await InventoryService(db).store(entry_data)
    return ApiResponse(
        message="Warehouse inventory created successfully",
        data=InventoryResponse.from_entry(entry),
    )


@router.get("/{entry_id}", response_model=ApiResponse[InventoryResponse])
async def get_inventory(entry_id: UUID, db: AsyncSession = Depends(get_db)):
    """
    Get an inventory entry with its removal history
    """
    entry = await InventoryService(db).get_entry(entry_id)
    return ApiResponse(data=InventoryResponse.from_entry(entry))


@router.put("/{entry_id}", response_model=ApiResponse[InventoryResponse])
async def update_inventory(
    entry_id: UUID,
    entry_data: InventoryUpdate,
    db: AsyncSession = Depends(get_db)
):
    """
    Update location, date, notes or stored quantity of an entry
    """
    entry = await InventoryService(db).update_entry(entry_id, entry_data)
    return ApiResponse(
        message="Warehouse inventory updated successfully",
        data=InventoryResponse.from_entry(entry),
    )


@router.delete("/{entry_id}", response_model=ApiResponse[None])
async def delete_inventory(entry_id: UUID, db: AsyncSession = Depends(get_db)):
    """
    Delete an inventory entry together with its removal ledger
    """
    await InventoryService(db).delete_entry(entry_id)
    return ApiResponse(message="Warehouse inventory deleted successfully")


@router.post("/{entry_id}/remove", response_model=ApiResponse[InventoryResponse])
async def remove_stock(
    entry_id: UUID,
    removal: RemovalCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Take stock out of an entry (sold, damaged, used or other)

    Refused with 400 when the quantity exceeds what is still in stock.
    """
    entry = await InventoryService(db).remove_stock(entry_id, removal)
    return ApiResponse(
        message="Stock removed successfully",
        data=InventoryResponse.from_entry(entry),
    )


@router.get("/{entry_id}/removals", response_model=ApiResponse[list[RemovalResponse]])
async def list_removals(entry_id: UUID, db: AsyncSession = Depends(get_db)):
    """
    Removal ledger of an entry, oldest first
    """
    removals = await InventoryService(db).list_removals(entry_id)
    return ApiResponse(
        data=[RemovalResponse.model_validate(r) for r in removals],
        count=len(removals),
    )
