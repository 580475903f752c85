"""
Farm registry and verification workflow

Handles:
- Registering and editing farms
- Listing the verification queue and verified farms
- Verifying, rejecting and sending farms back for update
- Bulk verification from a QGIS FeatureCollection export
"""

from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.core import geometry as geo
from src.api.core.database import utcnow
from src.api.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from src.api.core.security import SessionContext
from src.api.core.workflow import FarmEvent, FarmStatus, next_status
from src.api.models.district import District
from src.api.models.farm import Farm
from src.api.models.productivity import Productivity
from src.api.models.user import User
from src.api.schemas.farm import FarmCreate, FarmUpdate
from src.utils.logger import get_logger

logger = get_logger(__name__)

# Property of a QGIS feature holding the owner's name
OWNER_PROPERTY = "Pemilik"


class FarmVerificationService:
    """Service for the farm registry and its verification lifecycle"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_farm(self, farm_id: UUID) -> Farm:
        result = await self.db.execute(
            select(Farm)
            .where(Farm.id == farm_id)
            .execution_options(populate_existing=True)
        )
        farm = result.scalar_one_or_none()
        if farm is None:
            raise NotFoundError("Farm not found")
        return farm

    async def list_farms(
        self,
        status: Optional[FarmStatus] = None,
        district_id: Optional[UUID] = None,
        farmer_id: Optional[UUID] = None,
    ) -> Sequence[Farm]:
        query = select(Farm)
        if status is not None:
            query = query.where(Farm.status == FarmStatus(status).value)
        if district_id is not None:
            query = query.where(Farm.district_id == district_id)
        if farmer_id is not None:
            query = query.where(Farm.farmer_id == farmer_id)
        result = await self.db.execute(query.order_by(Farm.created_at.desc(), Farm.id))
        return result.scalars().all()

    async def list_pending(self) -> Sequence[Farm]:
        """Verification queue, newest registrations first"""
        return await self.list_farms(status=FarmStatus.PENDING_VERIFICATION)

    async def list_verified(self) -> Sequence[Farm]:
        """
        Farms ready for the map

        Status alone is not enough: a VERIFIED row without a stored boundary
        has nothing to draw, so it is left out.
        """
        result = await self.db.execute(
            select(Farm)
            .where(
                Farm.status == FarmStatus.VERIFIED.value,
                Farm.verified_geometry.is_not(None),
            )
            .order_by(Farm.verified_at.desc(), Farm.id)
        )
        return result.scalars().all()

    async def productivity_counts(self, farm_ids: List[UUID]) -> Dict[UUID, int]:
        if not farm_ids:
            return {}
        result = await self.db.execute(
            select(Productivity.farm_id, func.count(Productivity.id))
            .where(Productivity.farm_id.in_(farm_ids))
            .group_by(Productivity.farm_id)
        )
        counts = {farm_id: count for farm_id, count in result.all()}
        return {farm_id: counts.get(farm_id, 0) for farm_id in farm_ids}

    # ------------------------------------------------------------------
    # Registry writes
    # ------------------------------------------------------------------

    async def _require_district(self, district_id: UUID) -> District:
        district = await self.db.get(District, district_id)
        if district is None:
            raise NotFoundError("District not found")
        return district

    async def create_farm(self, data: FarmCreate, session: SessionContext) -> Farm:
        farmer_id = session.user_id
        if data.farmer_id is not None and data.farmer_id != session.user_id:
            if not session.is_admin:
                raise PermissionDeniedError("Only administrators can register farms for another farmer")
            if await self.db.get(User, data.farmer_id) is None:
                raise NotFoundError("Farmer not found")
            farmer_id = data.farmer_id

        await self._require_district(data.district_id)

        input_coordinates = None
        if data.input_coordinates is not None:
            input_coordinates = geo.dumps(geo.parse_point(data.input_coordinates))

        farm = Farm(
            farmer_id=farmer_id,
            district_id=data.district_id,
            farm_area=data.farm_area,
            elevation=data.elevation,
            planting_year=data.planting_year,
            input_coordinates=input_coordinates,
            description=data.description,
            status=FarmStatus.PENDING_VERIFICATION.value,
        )
        self.db.add(farm)
        await self.db.commit()

        logger.info(f"Farm {farm.id} registered for farmer {farmer_id}")
        return await self.get_farm(farm.id)

    async def update_farm(self, farm_id: UUID, data: FarmUpdate, session: SessionContext) -> Farm:
        """
        Edit farm attributes

        Status only changes when the caller names an event; plain attribute
        edits leave it alone.
        """
        farm = await self.get_farm(farm_id)
        if not session.is_admin and farm.farmer_id != session.user_id:
            raise PermissionDeniedError("You can only edit your own farms")

        changes = data.model_dump(exclude_unset=True, exclude={"event"})

        if changes.get("district_id") is not None:
            await self._require_district(changes["district_id"])

        if "input_coordinates" in changes and changes["input_coordinates"] is not None:
            changes["input_coordinates"] = geo.dumps(geo.parse_point(changes["input_coordinates"]))

        for field in ("district_id", "farm_area", "elevation", "planting_year"):
            if field in changes and changes[field] is None:
                raise ValidationError(f"{field} cannot be cleared")

        new_status = None
        if data.event is not None:
            new_status = next_status(farm.status, FarmEvent(data.event))

        for field, value in changes.items():
            setattr(farm, field, value)
        if new_status is not None:
            logger.info(f"Farm {farm.id}: {farm.status} -> {new_status.value} ({data.event})")
            farm.status = new_status.value

        await self.db.commit()
        return await self.get_farm(farm.id)

    async def delete_farm(self, farm_id: UUID) -> None:
        farm = await self.get_farm(farm_id)
        counts = await self.productivity_counts([farm.id])
        if counts[farm.id]:
            raise ConflictError(
                f"Cannot delete farm. It is referenced by {counts[farm.id]} productivity record(s)."
            )
        await self.db.delete(farm)
        await self.db.commit()
        logger.info(f"Farm {farm_id} deleted")

    # ------------------------------------------------------------------
    # Verification workflow
    # ------------------------------------------------------------------

    def _transition(self, farm: Farm, event: FarmEvent, admin_id: UUID) -> None:
        new_status = next_status(farm.status, event)
        logger.info(f"Farm {farm.id}: {farm.status} -> {new_status.value} ({event.value}) by {admin_id}")
        farm.status = new_status.value
        farm.verified_at = utcnow()
        farm.verified_by = admin_id

    @staticmethod
    def validate_verified_geometry(payload: geo.GeoJSON | str) -> str:
        """
        Check a submitted boundary and return the text to store

        The document is kept as submitted (Feature wrappers keep their
        properties); only its normalised geometry is checked.
        """
        try:
            document = geo.parse_geojson(payload)
            geo.normalize_geometry(document)
        except ValidationError as e:
            raise ValidationError(f"Invalid GeoJSON geometry format: {e.message}")
        if isinstance(payload, str):
            return payload.strip()
        return geo.dumps(document)

    async def verify_farm(
        self,
        farm_id: UUID,
        verified_geometry: geo.GeoJSON | str,
        admin_id: UUID,
        farm_area: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> Farm:
        stored_geometry = self.validate_verified_geometry(verified_geometry)
        if farm_area is not None and farm_area <= 0:
            raise ValidationError("Farm area must be greater than zero")

        farm = await self.get_farm(farm_id)
        self._transition(farm, FarmEvent.VERIFY, admin_id)
        farm.verified_geometry = stored_geometry
        if farm_area is not None:
            farm.farm_area = farm_area
        if notes:
            farm.description = notes

        await self.db.commit()
        return await self.get_farm(farm.id)

    async def reject_farm(self, farm_id: UUID, reason: str, admin_id: UUID) -> Farm:
        return await self._close_review(farm_id, reason, admin_id, FarmEvent.REJECT)

    async def request_update(self, farm_id: UUID, reason: str, admin_id: UUID) -> Farm:
        return await self._close_review(farm_id, reason, admin_id, FarmEvent.REQUEST_UPDATE)

    async def _close_review(self, farm_id: UUID, reason: str, admin_id: UUID, event: FarmEvent) -> Farm:
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required")
        farm = await self.get_farm(farm_id)
        self._transition(farm, event, admin_id)
        farm.description = reason.strip()
        await self.db.commit()
        logger.info(f"Farm {farm.id} closed with '{event.value}'. Reason: {reason.strip()}")
        return await self.get_farm(farm.id)

    async def bulk_verify(self, feature_collection: geo.GeoJSON | str, admin_id: UUID) -> Dict[str, Any]:
        """
        Verify many farms from one QGIS export

        Each feature names its owner in ``properties.Pemilik``; the owner's
        oldest pending farm receives the feature. A failing feature is
        reported and skipped, the rest of the batch still applies.
        """
        try:
            document = geo.parse_geojson(feature_collection)
        except ValidationError as e:
            raise ValidationError(f"Invalid GeoJSON format: {e.message}")

        if document.get("type") == "FeatureCollection":
            features = document.get("features") or []
        elif document.get("type") == "Feature":
            features = [document]
        else:
            features = []

        if not features:
            raise ValidationError("No features found in GeoJSON")

        logger.info(f"Bulk verification of {len(features)} feature(s) by {admin_id}")
        successful: List[Dict[str, Any]] = []
        failed: List[Dict[str, Any]] = []

        for index, feature in enumerate(features, start=1):
            properties = feature.get("properties") if isinstance(feature, dict) else None
            farmer_name = (properties or {}).get(OWNER_PROPERTY)
            try:
                farm, farmer = await self._verify_feature(feature, farmer_name, admin_id)
            except (ValidationError, NotFoundError, ConflictError) as e:
                logger.warning(f"Feature {index}/{len(features)} skipped: {e.message}")
                failed.append({"farmer_name": str(farmer_name) if farmer_name else "Unknown", "error": e.message})
                continue
            successful.append({
                "farmer_name": farmer_name,
                "farm_id": farm.id,
                "farmer_id": farmer.id,
                "status": farm.status,
            })

        await self.db.commit()
        logger.info(f"Bulk verification done: {len(successful)} verified, {len(failed)} failed")

        return {
            "total": len(features),
            "success_count": len(successful),
            "failure_count": len(failed),
            "successful": successful,
            "failed": failed,
        }

    async def _verify_feature(self, feature: Dict[str, Any], farmer_name: Optional[str], admin_id: UUID):
        if not isinstance(farmer_name, str) or not farmer_name.strip():
            raise ValidationError(f'Feature missing "{OWNER_PROPERTY}" property (farmer name)')
        if not isinstance(feature, dict) or not feature.get("geometry"):
            raise ValidationError("Feature missing geometry")
        try:
            geo.normalize_geometry(feature["geometry"])
        except ValidationError as e:
            raise ValidationError(f"Invalid GeoJSON geometry format: {e.message}")

        result = await self.db.execute(
            select(User).where(func.lower(User.name) == farmer_name.strip().lower())
        )
        farmer = result.scalars().first()
        if farmer is None:
            raise NotFoundError(f'Farmer not found: "{farmer_name}"')

        result = await self.db.execute(
            select(Farm)
            .where(
                Farm.farmer_id == farmer.id,
                Farm.status == FarmStatus.PENDING_VERIFICATION.value,
            )
            .order_by(Farm.created_at, Farm.id)
        )
        farm = result.scalars().first()
        if farm is None:
            raise NotFoundError(f'No pending farms found for farmer "{farmer_name}"')

        self._transition(farm, FarmEvent.VERIFY, admin_id)
        farm.verified_geometry = geo.dumps({
            "type": "Feature",
            "properties": feature.get("properties") or {},
            "geometry": feature["geometry"],
        })
        # Flush so the next feature of the same farmer sees this farm as verified
        await self.db.flush()
        return farm, farmer
