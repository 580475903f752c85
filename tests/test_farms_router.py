"""
Integration tests for the Farms and Verification routers
Run with: pytest tests/test_farms_router.py -v
"""

import json
import uuid

import pytest
from sqlalchemy import update

from src.api.models.farm import Farm
from tests.conftest import POINT, POLYGON, auth, login, register


def farm_body(district_id, **overrides):
    body = {
        "district_id": district_id,
        "farm_area": 20,
        "elevation": 1200,
        "planting_year": 2015,
        "input_coordinates": POINT,
    }
    body.update(overrides)
    return body


def verify(client, farm_id, headers, geometry=POLYGON, **extra):
    return client.put(
        f"/api/farms/{farm_id}/verify",
        json={"verified_geometry": geometry, **extra},
        headers=headers,
    )


class TestFarmRegistration:
    """Test farm creation and reads"""

    def test_pending_after_registration(self, client, district, farm, farmer):
        """District -> farm -> farm is in the verification queue"""
        body = client.get("/api/farms/pending").json()
        assert body["count"] == 1
        pending = body["data"][0]
        assert pending["id"] == farm["id"]
        assert pending["status"] == "PENDING_VERIFICATION"
        assert pending["farmer"] == {"id": farmer["id"], "name": farmer["name"], "email": farmer["email"]}
        assert pending["district"]["district_code"] == "KEC001"
        assert pending["productivity_count"] == 0
        assert pending["allowed_events"] == ["verify", "reject", "request_update"]

    def test_input_point_is_display_geometry(self, client, farm):
        shown = farm["display_geometry"]
        assert shown["kind"] == "unverified"
        assert shown["geometry"] == POINT
        assert shown["centroid"] == {"lat": -6.2, "lng": 106.8}
        assert json.loads(farm["input_coordinates"]) == POINT

    def test_create_requires_auth(self, client, district):
        response = client.post("/api/farms", json=farm_body(district["id"]))
        assert response.status_code == 401

    def test_create_accepts_point_text(self, client, district, farmer):
        response = client.post(
            "/api/farms",
            json=farm_body(district["id"], input_coordinates=json.dumps(POINT)),
            headers=farmer["headers"],
        )
        assert response.status_code == 201
        assert response.json()["data"]["farmer_id"] == farmer["id"]

    def test_create_rejects_polygon_input(self, client, district, farmer):
        response = client.post(
            "/api/farms",
            json=farm_body(district["id"], input_coordinates=POLYGON),
            headers=farmer["headers"],
        )
        assert response.status_code == 400
        assert "GeoJSON Point" in response.json()["message"]

    def test_create_rejects_non_positive_area(self, client, district, farmer):
        response = client.post("/api/farms", json=farm_body(district["id"], farm_area=0), headers=farmer["headers"])
        assert response.status_code == 400

    def test_create_unknown_district(self, client, farmer):
        response = client.post("/api/farms", json=farm_body(str(uuid.uuid4())), headers=farmer["headers"])
        assert response.status_code == 404
        assert response.json()["message"] == "District not found"

    def test_farmer_cannot_register_for_someone_else(self, client, district, farmer, admin_headers):
        admin_id = client.get("/api/users/me", headers=admin_headers).json()["data"]["id"]
        response = client.post(
            "/api/farms",
            json=farm_body(district["id"], farmer_id=admin_id),
            headers=farmer["headers"],
        )
        assert response.status_code == 403

    def test_admin_registers_for_farmer(self, client, district, farmer, admin_headers):
        response = client.post(
            "/api/farms",
            json=farm_body(district["id"], farmer_id=farmer["id"]),
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["data"]["farmer_id"] == farmer["id"]

    def test_get_unknown_farm(self, client):
        response = client.get(f"/api/farms/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["message"] == "Farm not found"

    def test_list_newest_first_and_filters(self, client, district, farmer, farm, admin_headers):
        second = client.post(
            "/api/farms", json=farm_body(district["id"], farm_area=5), headers=farmer["headers"]
        ).json()["data"]
        verify(client, farm["id"], admin_headers)

        body = client.get("/api/farms").json()
        assert [f["id"] for f in body["data"]] == [second["id"], farm["id"]]

        verified = client.get("/api/farms", params={"status": "VERIFIED"}).json()["data"]
        assert [f["id"] for f in verified] == [farm["id"]]

        mine = client.get("/api/farms", params={"farmer_id": farmer["id"]}).json()
        assert mine["count"] == 2

    def test_pending_listing_is_idempotent(self, client, farm):
        first = client.get("/api/farms/pending").json()
        second = client.get("/api/farms/pending").json()
        assert first == second

    def test_verified_listing_is_idempotent(self, client, farm, admin_headers):
        verify(client, farm["id"], admin_headers)
        first = client.get("/api/farms/verified").json()
        second = client.get("/api/farms/verified").json()
        assert first["count"] == 1
        assert first == second

    def test_verified_listing_needs_a_boundary(self, client, farm, run_in_db):
        run_in_db(
            update(Farm)
            .where(Farm.id == uuid.UUID(farm["id"]))
            .values(status="VERIFIED", verified_geometry=None)
        )

        assert client.get("/api/farms/verified").json()["count"] == 0
        verified = client.get("/api/farms", params={"status": "VERIFIED"}).json()["data"]
        assert [f["id"] for f in verified] == [farm["id"]]
        assert verified[0]["display_geometry"]["kind"] == "unverified"


class TestFarmUpdate:
    """Test attribute edits and the farmer_resubmit event"""

    def test_owner_updates_attributes(self, client, farm, farmer):
        response = client.put(
            f"/api/farms/{farm['id']}",
            json={"elevation": 1350, "description": "Kebun atas"},
            headers=farmer["headers"],
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["elevation"] == 1350
        assert data["description"] == "Kebun atas"
        assert data["status"] == "PENDING_VERIFICATION"

    def test_other_farmer_cannot_update(self, client, farm):
        register(client, name="Pak Ujang", email="ujang@cps.co.id", password="ujang123")
        headers = auth(login(client, "ujang@cps.co.id", "ujang123")["access_token"])
        response = client.put(f"/api/farms/{farm['id']}", json={"elevation": 1}, headers=headers)
        assert response.status_code == 403

    def test_resubmit_after_update_request(self, client, farm, farmer, admin_headers):
        response = client.put(
            f"/api/farms/{farm['id']}/request-update",
            json={"reason": "Koordinat tidak sesuai"},
            headers=admin_headers,
        )
        assert response.json()["data"]["status"] == "NEEDS_UPDATE"

        # Plain edit leaves the status alone
        response = client.put(f"/api/farms/{farm['id']}", json={"farm_area": 18}, headers=farmer["headers"])
        assert response.json()["data"]["status"] == "NEEDS_UPDATE"

        response = client.put(
            f"/api/farms/{farm['id']}",
            json={"input_coordinates": {"type": "Point", "coordinates": [106.82, -6.21]}, "event": "farmer_resubmit"},
            headers=farmer["headers"],
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "PENDING_VERIFICATION"
        assert data["farm_area"] == 18
        assert [f["id"] for f in client.get("/api/farms/pending").json()["data"]] == [farm["id"]]

    def test_resubmit_from_pending_conflicts(self, client, farm, farmer):
        response = client.put(
            f"/api/farms/{farm['id']}",
            json={"event": "farmer_resubmit"},
            headers=farmer["headers"],
        )
        assert response.status_code == 409
        assert client.get(f"/api/farms/{farm['id']}").json()["data"]["status"] == "PENDING_VERIFICATION"

    def test_unknown_event_rejected(self, client, farm, farmer):
        response = client.put(f"/api/farms/{farm['id']}", json={"event": "verify"}, headers=farmer["headers"])
        assert response.status_code == 400


class TestFarmVerification:
    """Test verify / reject / request-update"""

    def test_verify_with_polygon(self, client, farm, admin_headers):
        """Verified farm shows its boundary and appears on the verified list"""
        admin_id = client.get("/api/users/me", headers=admin_headers).json()["data"]["id"]
        response = verify(client, farm["id"], admin_headers, notes="Diukur ulang")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "VERIFIED"
        assert json.loads(data["verified_geometry"]) == POLYGON
        assert data["verified_by"] == admin_id
        assert data["verified_at"] is not None
        assert data["description"] == "Diukur ulang"
        assert data["display_geometry"]["kind"] == "verified"
        assert data["display_geometry"]["centroid"]["lat"] == pytest.approx(-6.205)
        assert data["display_geometry"]["centroid"]["lng"] == pytest.approx(106.805)

        verified = client.get("/api/farms/verified").json()
        assert [f["id"] for f in verified["data"]] == [farm["id"]]
        assert client.get("/api/farms/pending").json()["count"] == 0

    def test_verify_with_text_and_area(self, client, farm, admin_headers):
        collection = {"type": "FeatureCollection", "features": [{"type": "Feature", "properties": {}, "geometry": POLYGON}]}
        response = verify(client, farm["id"], admin_headers, geometry=json.dumps(collection), farm_area=18.5)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["farm_area"] == 18.5
        assert json.loads(data["verified_geometry"]) == collection
        assert data["display_geometry"]["geometry"] == POLYGON

    def test_malformed_geometry_leaves_farm_untouched(self, client, farm, admin_headers):
        response = verify(client, farm["id"], admin_headers, geometry='{"type": "Polygon", "coordinates": [')
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid GeoJSON geometry format")

        after = client.get(f"/api/farms/{farm['id']}").json()["data"]
        assert after["status"] == "PENDING_VERIFICATION"
        assert after["verified_geometry"] is None

    def test_geometry_without_coordinates_rejected(self, client, farm, admin_headers):
        response = verify(client, farm["id"], admin_headers, geometry={"type": "Polygon"})
        assert response.status_code == 400

    @pytest.mark.parametrize("geometry", [
        {"type": "Polygon", "coordinates": [[106.8, -6.2]]},
        {"type": "Point", "coordinates": [106.8]},
    ])
    def test_unusable_positions_rejected_before_saving(self, client, farm, admin_headers, geometry):
        response = verify(client, farm["id"], admin_headers, geometry=geometry)
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid GeoJSON geometry format")

        after = client.get(f"/api/farms/{farm['id']}").json()["data"]
        assert after["status"] == "PENDING_VERIFICATION"
        assert after["verified_geometry"] is None
        for path in ("/api/farms", "/api/farms/verified", "/api/farms/pending"):
            assert client.get(path).status_code == 200

    def test_unusable_stored_boundary_falls_back_to_point(self, client, farm, run_in_db):
        run_in_db(
            update(Farm)
            .where(Farm.id == uuid.UUID(farm["id"]))
            .values(status="VERIFIED", verified_geometry='{"type":"Polygon","coordinates":[[106.8,-6.2]]}')
        )

        listed = client.get("/api/farms/verified")
        assert listed.status_code == 200
        assert listed.json()["data"][0]["display_geometry"]["kind"] == "unverified"

        response = client.get(f"/api/farms/{farm['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["display_geometry"]["geometry"] == POINT
        assert client.get(f"/api/districts/{farm['district_id']}/farms").status_code == 200

    def test_verify_unknown_farm(self, client, admin_headers):
        response = verify(client, str(uuid.uuid4()), admin_headers)
        assert response.status_code == 404

    def test_verify_requires_admin(self, client, farm, farmer):
        assert verify(client, farm["id"], farmer["headers"]).status_code == 403

    def test_reverify_replaces_boundary(self, client, farm, admin_headers):
        verify(client, farm["id"], admin_headers)
        moved = {"type": "Polygon", "coordinates": [[[106.9, -6.3], [106.91, -6.3], [106.91, -6.31], [106.9, -6.3]]]}
        response = verify(client, farm["id"], admin_headers, geometry=moved)
        assert response.status_code == 200
        assert json.loads(response.json()["data"]["verified_geometry"]) == moved

    def test_reject(self, client, farm, admin_headers):
        response = client.put(
            f"/api/farms/{farm['id']}/reject",
            json={"reason": "  Lahan bukan kopi  "},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "REJECTED"
        assert data["description"] == "Lahan bukan kopi"
        assert data["verified_geometry"] is None
        assert data["allowed_events"] == []

        # Rejected is terminal
        assert verify(client, farm["id"], admin_headers).status_code == 409

    def test_reject_requires_reason(self, client, farm, admin_headers):
        response = client.put(f"/api/farms/{farm['id']}/reject", json={"reason": "  "}, headers=admin_headers)
        assert response.status_code == 400
        assert "Rejection reason is required" in response.json()["message"]

    def test_reject_verified_farm_conflicts(self, client, farm, admin_headers):
        verify(client, farm["id"], admin_headers)
        response = client.put(f"/api/farms/{farm['id']}/reject", json={"reason": "late"}, headers=admin_headers)
        assert response.status_code == 409
        assert client.get(f"/api/farms/{farm['id']}").json()["data"]["status"] == "VERIFIED"

    def test_verify_after_update_request(self, client, farm, admin_headers):
        client.put(f"/api/farms/{farm['id']}/request-update", json={"reason": "Foto kurang"}, headers=admin_headers)
        response = verify(client, farm["id"], admin_headers)
        assert response.json()["data"]["status"] == "VERIFIED"


class TestBulkVerification:
    """Test verification from a QGIS FeatureCollection"""

    def test_partial_failure(self, client, farm, farmer, admin_headers):
        collection = {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "properties": {"Pemilik": "PAK ASEP"}, "geometry": POLYGON},
                {"type": "Feature", "properties": {"Pemilik": "Orang Lain"}, "geometry": POLYGON},
                {"type": "Feature", "properties": {}, "geometry": POLYGON},
            ],
        }
        response = client.post("/api/farms/verify/bulk", json={"feature_collection": collection}, headers=admin_headers)
        assert response.status_code == 200
        result = response.json()["data"]
        assert result["total"] == 3
        assert result["success_count"] == 1
        assert result["failure_count"] == 2
        assert result["successful"][0]["farm_id"] == farm["id"]
        assert result["successful"][0]["farmer_id"] == farmer["id"]
        assert result["failed"][0] == {"farmer_name": "Orang Lain", "error": 'Farmer not found: "Orang Lain"'}
        assert result["failed"][1]["farmer_name"] == "Unknown"

        after = client.get(f"/api/farms/{farm['id']}").json()["data"]
        assert after["status"] == "VERIFIED"
        assert after["display_geometry"]["geometry"] == POLYGON

    def test_oldest_pending_farm_first(self, client, district, farmer, farm, admin_headers):
        newer = client.post("/api/farms", json=farm_body(district["id"]), headers=farmer["headers"]).json()["data"]
        feature = {"type": "Feature", "properties": {"Pemilik": "Pak Asep"}, "geometry": POLYGON}
        collection = json.dumps({"type": "FeatureCollection", "features": [feature, feature, feature]})

        result = client.post(
            "/api/farms/verify/bulk", json={"feature_collection": collection}, headers=admin_headers
        ).json()["data"]
        assert [s["farm_id"] for s in result["successful"]] == [farm["id"], newer["id"]]
        assert result["failed"][0]["error"] == 'No pending farms found for farmer "Pak Asep"'

    def test_unusable_feature_geometry_is_a_failure(self, client, farm, admin_headers):
        broken = {"type": "Polygon", "coordinates": [[106.8, -6.2]]}
        collection = {
            "type": "FeatureCollection",
            "features": [{"type": "Feature", "properties": {"Pemilik": "Pak Asep"}, "geometry": broken}],
        }
        response = client.post("/api/farms/verify/bulk", json={"feature_collection": collection}, headers=admin_headers)
        assert response.status_code == 200
        result = response.json()["data"]
        assert result["success_count"] == 0
        assert result["failed"][0]["farmer_name"] == "Pak Asep"
        assert result["failed"][0]["error"].startswith("Invalid GeoJSON geometry format")

        assert client.get(f"/api/farms/{farm['id']}").json()["data"]["status"] == "PENDING_VERIFICATION"
        assert client.get("/api/farms").status_code == 200

    def test_empty_collection_rejected(self, client, admin_headers):
        response = client.post(
            "/api/farms/verify/bulk",
            json={"feature_collection": {"type": "FeatureCollection", "features": []}},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["message"] == "No features found in GeoJSON"

    def test_requires_admin(self, client, farmer):
        response = client.post(
            "/api/farms/verify/bulk",
            json={"feature_collection": {"type": "FeatureCollection", "features": []}},
            headers=farmer["headers"],
        )
        assert response.status_code == 403


class TestFarmDeletion:
    """Test the referential guard on delete"""

    def test_delete_farm(self, client, farm, admin_headers):
        assert client.delete(f"/api/farms/{farm['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/farms/{farm['id']}").status_code == 404

    def test_delete_with_harvest_conflicts(self, client, farm, harvest, admin_headers):
        response = client.delete(f"/api/farms/{farm['id']}", headers=admin_headers)
        assert response.status_code == 409
        assert client.get(f"/api/farms/{farm['id']}").json()["data"]["productivity_count"] == 1

    def test_delete_requires_admin(self, client, farm, farmer):
        assert client.delete(f"/api/farms/{farm['id']}", headers=farmer["headers"]).status_code == 403
