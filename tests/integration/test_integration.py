"""
Integration test suite for the reservations service
Runs against a live, seeded deployment (``python -m app.seed``):

    RESERVATIONS_BASE_URL=http://localhost:8000 JWT_SECRET=... pytest tests/integration
"""

import os
import time
from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest

BASE_URL = os.getenv("RESERVATIONS_BASE_URL")
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
HEALTH_CHECK_RETRIES = 30
HEALTH_CHECK_DELAY = 2

pytestmark = pytest.mark.skipif(not BASE_URL, reason="RESERVATIONS_BASE_URL not set")


def _token(subject: str) -> str:
    now = datetime.now(timezone.utc)
    return jwt.encode({"sub": subject, "iat": now, "exp": now + timedelta(minutes=10)}, JWT_SECRET, algorithm="HS256")


class TestReservationsIntegration:
    """End-to-end checks against the seeded demo data"""

    @classmethod
    def setup_class(cls):
        cls.client = httpx.Client(base_url=BASE_URL, timeout=30.0)
        cls.wait_for_service()
        cls.team_headers = {"Authorization": f"Bearer {_token('team-1')}"}
        cls.admin_headers = {"Authorization": f"Bearer {_token('admin')}"}

    @classmethod
    def teardown_class(cls):
        cls.client.close()

    @classmethod
    def wait_for_service(cls):
        for attempt in range(HEALTH_CHECK_RETRIES):
            try:
                if cls.client.get("/health").status_code == 200:
                    return
            except httpx.HTTPError as e:
                print(f"Attempt {attempt + 1}/{HEALTH_CHECK_RETRIES}: {e}")
            time.sleep(HEALTH_CHECK_DELAY)
        raise RuntimeError("Service failed to start within timeout period")

    def _part(self, name: str) -> dict:
        for category in self.client.get("/categories/", headers=self.team_headers).json():
            parts = self.client.get(f"/categories/{category['id']}/parts", headers=self.team_headers).json()
            for part in parts:
                if part["name"] == name:
                    return part
        pytest.skip(f"seed part {name!r} not found")

    def test_health_endpoints(self):
        for endpoint in ["/health", "/health/live", "/health/ready"]:
            response = self.client.get(endpoint)
            assert response.status_code in [200, 503]
            assert "status" in response.json()

    def test_checkout_and_admin_return(self):
        part = self._part("Arduino Uno")
        if part["quantity"] == 0:
            pytest.skip("Arduino Uno stock exhausted by earlier runs")

        response = self.client.post(
            "/checkout",
            json={"items": [{"part_id": part["id"], "quantity": 1}], "notes": "integration"},
            headers=self.team_headers,
        )
        assert response.status_code == 200
        entry_id = response.json()["entry_ids"][0]
        assert self._part("Arduino Uno")["quantity"] == part["quantity"] - 1

        response = self.client.post(
            "/updateReservationStatus",
            json={"entry_id": entry_id, "status": "returned", "admin_remarks": "ok"},
            headers=self.team_headers,
        )
        assert response.status_code == 403

        response = self.client.post(
            "/updateReservationStatus",
            json={"entry_id": entry_id, "status": "returned", "admin_remarks": "ok"},
            headers=self.admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "returned"
        assert self._part("Arduino Uno")["quantity"] == part["quantity"] - 1

    def test_out_of_stock_part(self):
        part = self._part("Aluminium Extrusion 20x20")
        response = self.client.post("/checkout", json={"part_id": part["id"]}, headers=self.team_headers)
        assert response.status_code == 409
        assert response.json()["detail"]["units_completed_so_far"] == 0

    def test_error_handling(self):
        assert self.client.post("/checkout", json={"part_id": 1}).status_code == 401
        assert self.client.get("/reservations/0", headers=self.admin_headers).status_code == 404
        response = self.client.post("/checkout", json={"invalid": "data"}, headers=self.team_headers)
        assert response.status_code in [400, 422]

    def test_request_tracking(self):
        response = self.client.get("/reservations", headers=self.team_headers)
        assert response.status_code == 200
        assert response.headers.get("X-Request-ID")

    @pytest.mark.performance
    def test_performance_baseline(self):
        for endpoint in ["/categories/", "/reservations", "/me"]:
            start = time.time()
            response = self.client.get(endpoint, headers=self.team_headers)
            duration = time.time() - start
            assert response.status_code == 200
            assert duration < 1.0, f"{endpoint} took {duration:.3f}s"
