"""Tests for the FastAPI surface."""
from __future__ import annotations

import dataclasses
import unittest

from fastapi.testclient import TestClient

from advads_hub import api_app as mod
from advads_hub.store import InMemoryContentStore

ADMIN = {"X-Admin-Key": "s3cret"}


class TestAbilitiesApi(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.client = TestClient(mod.api_app)

    def setUp(self) -> None:
        # AbilitiesConfig is a frozen dataclass; replace the module-global config for tests.
        self._orig_cfg = mod._cfg
        mod._cfg = dataclasses.replace(mod._cfg, admin_api_key="s3cret", platform_active=True, platform_version="2.0.3")
        mod._store = InMemoryContentStore()

    def tearDown(self) -> None:
        mod._cfg = self._orig_cfg
        mod._store = None

    def test_health(self) -> None:
        r = self.client.get("/health")

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["abilities"], 19)

    def test_list_and_describe(self) -> None:
        r = self.client.get("/v1/abilities")
        self.assertEqual(r.json()["total"], 19)

        r = self.client.get("/v1/abilities/advads/create-ad")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["input_schema"]["required"], ["title", "content"])

        r = self.client.get("/v1/abilities/advads/nope")
        self.assertEqual(r.status_code, 404)

    def test_run_create_and_get(self) -> None:
        r = self.client.post(
            "/v1/abilities/advads/create-ad/run",
            json={"input": {"title": "Banner", "content": "<p>x</p>", "type": "plain"}},
            headers=ADMIN,
        )
        self.assertEqual(r.status_code, 200)
        ad_id = r.json()["id"]

        r = self.client.post("/v1/abilities/advads/get-ad/run", json={"input": {"id": ad_id}}, headers=ADMIN)
        self.assertEqual(r.json()["ad"]["type"], "plain")

    def test_ability_failure_is_http_200(self) -> None:
        r = self.client.post("/v1/abilities/advads/get-ad/run", json={"input": {"id": 404}}, headers=ADMIN)

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"success": False, "message": "Ad not found."})

    def test_missing_or_wrong_key_is_forbidden(self) -> None:
        for headers in ({}, {"X-Admin-Key": "wrong"}):
            r = self.client.post("/v1/abilities/advads/list-ads/run", json={"input": {}}, headers=headers)
            self.assertEqual(r.status_code, 403)
            self.assertEqual(r.json()["code"], "forbidden")

    def test_invalid_input_is_422(self) -> None:
        r = self.client.post("/v1/abilities/advads/get-ad/run", json={"input": {"id": "x"}}, headers=ADMIN)

        self.assertEqual(r.status_code, 422)
        self.assertEqual(r.json()["code"], "invalid_input")

    def test_unknown_ability_is_404(self) -> None:
        r = self.client.post("/v1/abilities/advads/nope/run", json={}, headers=ADMIN)

        self.assertEqual(r.status_code, 404)

    def test_inactive_platform(self) -> None:
        mod._cfg = dataclasses.replace(mod._cfg, platform_active=False)

        r = self.client.post("/v1/abilities/advads/diagnose/run", json={}, headers=ADMIN)

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"success": False, "message": "Advanced Ads not active."})


if __name__ == "__main__":
    unittest.main()
