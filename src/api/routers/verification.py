"""
Farm verification endpoints

Mounted on the same /farms prefix as the registry and included before it,
so /farms/pending and /farms/verified are matched ahead of /farms/{farm_id}.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from src.api.core.database import get_db
from src.api.core.security import SessionContext, require_admin
from src.api.schemas.common import ApiResponse
from src.api.schemas.farm import (
    BulkVerifyRequest,
    BulkVerifyResult,
    FarmReject,
    FarmResponse,
    FarmVerify,
)
from src.api.services.farm_verification import FarmVerificationService

router = APIRouter()


@router.get("/pending", response_model=ApiResponse[list[FarmResponse]])
async def list_pending_farms(db: AsyncSession = Depends(get_db)):
    """
    Verification queue: farms in PENDING_VERIFICATION, newest first

    Each farm carries farmer and district summaries and its number of
    harvest records.
    """
    service = FarmVerificationService(db)
    farms = await service.list_pending()
    counts = await service.productivity_counts([f.id for f in farms])
    return ApiResponse(
        message="Pending farms retrieved successfully",
        data=[FarmResponse.from_farm(f, counts.get(f.id)) for f in farms],
        count=len(farms),
    )


@router.get("/verified", response_model=ApiResponse[list[FarmResponse]])
async def list_verified_farms(db: AsyncSession = Depends(get_db)):
    """
    Verified farms that have a stored boundary, for map display
    """
    farms = await FarmVerificationService(db).list_verified()
    return ApiResponse(
        message=f"Found {len(farms)} verified farms",
        data=[FarmResponse.from_farm(f) for f in farms],
        count=len(farms),
    )


@router.post("/verify/bulk", response_model=ApiResponse[BulkVerifyResult])
async def bulk_verify_farms(
    request: BulkVerifyRequest,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Verify several farms from one QGIS FeatureCollection export

    Features are matched to farmers through ``properties.Pemilik``.
    Unmatched features are listed under ``failed``.
    """
    results = await FarmVerificationService(db).bulk_verify(request.feature_collection, admin.user_id)
    return ApiResponse(
        message="Bulk farm verification completed",
        data=BulkVerifyResult(**results),
    )


@router.put("/{farm_id}/verify", response_model=ApiResponse[FarmResponse])
async def verify_farm(
    farm_id: UUID,
    verification: FarmVerify,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Verify a farm with the boundary captured in QGIS

    Accepts a Polygon/MultiPolygon, a Feature or a FeatureCollection (first
    feature), as an object or JSON text. Optionally corrects the farm area.
    """
    farm = await FarmVerificationService(db).verify_farm(
        farm_id,
        verification.verified_geometry,
        admin.user_id,
        farm_area=verification.farm_area,
        notes=verification.notes,
    )
    return ApiResponse(
        message="Farm verified successfully",
        data=FarmResponse.from_farm(farm),
    )


@router.put("/{farm_id}/reject", response_model=ApiResponse[FarmResponse])
async def reject_farm(
    farm_id: UUID,
    rejection: FarmReject,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Reject a farm; the reason is kept in its description
    """
    farm = await FarmVerificationService(db).reject_farm(farm_id, rejection.reason, admin.user_id)
    return ApiResponse(
        message="Farm rejected successfully",
        data=FarmResponse.from_farm(farm),
    )


@router.put("/{farm_id}/request-update", response_model=ApiResponse[FarmResponse])
async def request_farm_update(
    farm_id: UUID,
    rejection: FarmReject,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Send a farm back to its farmer for corrections (NEEDS_UPDATE)
    """
    farm = await FarmVerificationService(db).request_update(farm_id, rejection.reason, admin.user_id)
    return ApiResponse(
        message="Farm returned to farmer for update",
        data=FarmResponse.from_farm(farm),
    )
