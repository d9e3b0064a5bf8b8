"""Tests for job registry endpoints."""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


class TestCreateJob:
    """Tests for POST /api/jobs."""

    async def test_create(self, client: AsyncClient):
        """Should create a job."""
        response = await client.post(
            "/api/jobs",
            json={"name": "backup", "expected_every_s": 86400, "max_runtime_s": 1800},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "backup"
        assert data["severity"] == "medium"
        assert data["active"] is True

    async def test_duplicate_is_409(self, client: AsyncClient, job_factory):
        """Duplicate job returns 409."""
        await job_factory(name="backup", expected_every_s=86400)

        response = await client.post("/api/jobs", json={"name": "backup", "expected_every_s": 60})

        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]

    async def test_invalid_window_is_422(self, client: AsyncClient):
        """Should reject a zero window with 422."""
        response = await client.post("/api/jobs", json={"name": "backup", "expected_every_s": 0})

        assert response.status_code == 422

    async def test_api_key_required_when_configured(self, client: AsyncClient, api_key: str):
        """Mutations need the API key when one is set."""
        body = {"name": "backup", "expected_every_s": 60}

        denied = await client.post("/api/jobs", json=body)
        allowed = await client.post("/api/jobs", json=body, headers={"X-Api-Key": api_key})

        assert denied.status_code == 401
        assert allowed.status_code == 201


class TestReadJobs:
    async def test_list(self, client: AsyncClient, job_factory):
        """Should list registered jobs."""
        await job_factory(name="b-job")
        await job_factory(name="a-job", active=False)

        everything = await client.get("/api/jobs")
        active = await client.get("/api/jobs", params={"active_only": True})

        assert [j["name"] for j in everything.json()] == ["a-job", "b-job"]
        assert [j["name"] for j in active.json()] == ["b-job"]

    async def test_get(self, client: AsyncClient, job_factory):
        await job_factory(name="backup", max_runtime_s=1800)

        response = await client.get("/api/jobs/backup")

        assert response.status_code == 200
        assert response.json()["max_runtime_s"] == 1800

    async def test_get_missing(self, client: AsyncClient):
        """Missing job returns 404."""
        response = await client.get("/api/jobs/ghost")
        assert response.status_code == 404

    async def test_reads_do_not_need_api_key(self, client: AsyncClient, api_key: str):
        response = await client.get("/api/jobs")
        assert response.status_code == 200


class TestUpdateJob:
    async def test_patch(self, client: AsyncClient, job_factory):
        """Should apply a partial update."""
        await job_factory(name="backup", expected_every_s=3600)

        response = await client.patch("/api/jobs/backup", json={"severity": "high"})

        assert response.status_code == 200
        assert response.json()["severity"] == "high"
        assert response.json()["expected_every_s"] == 3600

    async def test_patch_rejects_rename(self, client: AsyncClient, job_factory):
        """Name is immutable."""
        await job_factory(name="backup")

        response = await client.patch("/api/jobs/backup", json={"name": "other"})

        assert response.status_code == 422

    async def test_deactivate_and_activate(self, client: AsyncClient, job_factory):
        """Should toggle the active flag."""
        await job_factory(name="backup")

        off = await client.post("/api/jobs/backup/deactivate")
        on = await client.post("/api/jobs/backup/activate")

        assert off.json()["active"] is False
        assert on.json()["active"] is True

    async def test_delete(self, client: AsyncClient, job_factory):
        """Delete returns 204 and removes the job."""
        await job_factory(name="backup")

        response = await client.delete("/api/jobs/backup")
        missing = await client.get("/api/jobs/backup")

        assert response.status_code == 204
        assert missing.status_code == 404

    async def test_delete_missing(self, client: AsyncClient):
        response = await client.delete("/api/jobs/ghost")
        assert response.status_code == 404


class TestMaintainersEndpoints:
    async def test_add_list_remove(self, client: AsyncClient, job_factory):
        """Should add, list and remove maintainers."""
        await job_factory(name="backup")

        added = await client.post("/api/jobs/backup/maintainers", json={"user_id": "U1"})
        listed = await client.get("/api/jobs/backup/maintainers")
        removed = await client.delete("/api/jobs/backup/maintainers/U1")
        after = await client.get("/api/jobs/backup/maintainers")

        assert added.status_code == 201
        assert [m["user_id"] for m in listed.json()] == ["U1"]
        assert removed.status_code == 204
        assert after.json() == []

    async def test_add_to_unknown_job(self, client: AsyncClient):
        response = await client.post("/api/jobs/ghost/maintainers", json={"user_id": "U1"})
        assert response.status_code == 404

    async def test_set(self, client: AsyncClient, job_factory):
        """PUT replaces the maintainer list."""
        await job_factory(name="backup", maintainers=["U1"])

        response = await client.put(
            "/api/jobs/backup/maintainers", json={"user_ids": ["U2", "U3"]}
        )

        assert response.status_code == 200
        assert sorted(m["user_id"] for m in response.json()) == ["U2", "U3"]
