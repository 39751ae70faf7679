import pytest

from reqflow.core.settings import get_settings


async def _post(api, **overrides):
    body = {"project_id": "p-1", "type": "PROJECT_UPDATE", "title": "Hello", "message": "World"}
    body.update(overrides)
    resp = await api.post("/api/notifications", json=body)
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.asyncio
async def test_create_and_list(api):
    first = await _post(api)
    second = await _post(api, priority="urgent")

    resp = await api.get("/api/notifications")
    data = resp.json()
    assert data["count"] == 2
    assert {n["notification_id"] for n in data["notifications"]} == {
        first["notification_id"],
        second["notification_id"],
    }
    assert second["sequence"] > first["sequence"]


@pytest.mark.asyncio
async def test_create_rejects_bad_type(api):
    resp = await api.post(
        "/api/notifications",
        json={"project_id": "p-1", "type": "NOPE", "title": "t", "message": "m"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_read_archive_and_count(api):
    first = await _post(api)
    second = await _post(api)
    await _post(api)

    resp = await api.put(f"/api/notifications/{first['notification_id']}/read")
    assert resp.status_code == 200
    assert resp.json()["status"] == "read"
    assert resp.json()["read_at"] is not None

    resp = await api.put(f"/api/notifications/{second['notification_id']}/archive")
    assert resp.json()["status"] == "archived"

    assert (await api.get("/api/notifications/count")).json() == {"count": 1}

    resp = await api.put("/api/notifications/read-all")
    assert resp.json() == {"modified_count": 1}
    assert (await api.get("/api/notifications/count")).json() == {"count": 0}

    resp = await api.get("/api/notifications", params={"include_archived": True})
    assert resp.json()["count"] == 3

    resp = await api.put("/api/notifications/missing/read")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_since_feed(api):
    first = await _post(api)
    second = await _post(api)

    resp = await api.get("/api/notifications/since", params={"sequence": first["sequence"]})
    data = resp.json()
    assert [n["notification_id"] for n in data["notifications"]] == [second["notification_id"]]
    assert data["last_sequence"] == second["sequence"]

    resp = await api.get("/api/notifications/since", params={"sequence": data["last_sequence"]})
    assert resp.json() == {"notifications": [], "last_sequence": second["sequence"]}


@pytest.mark.asyncio
async def test_cleanup_keeps_recent(api):
    created = await _post(api)
    await api.put(f"/api/notifications/{created['notification_id']}/archive")

    resp = await api.delete("/api/notifications/cleanup", params={"daysOld": 30})
    assert resp.json() == {"deleted_count": 0}

    resp = await api.delete("/api/notifications/cleanup", params={"daysOld": 0})
    assert resp.json() == {"deleted_count": 1}


@pytest.mark.asyncio
async def test_default_page_size_comes_from_settings(api, monkeypatch):
    for _ in range(3):
        await _post(api)
    monkeypatch.setenv("REQFLOW_NOTIFICATION_PAGE_SIZE", "2")
    get_settings.cache_clear()

    resp = await api.get("/api/notifications")
    assert resp.json()["count"] == 2

    resp = await api.get("/api/notifications/since", params={"sequence": 0})
    assert len(resp.json()["notifications"]) == 2

    resp = await api.get("/api/notifications", params={"limit": 3})
    assert resp.json()["count"] == 3
