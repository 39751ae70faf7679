"""Project intake, documents and the full stage round trip over HTTP."""
import json

import httpx
import pytest


async def _create(api, content="Track employee leave requests", **extra):
    resp = await api.post("/api/inputs/manual", json={"content": content, **extra})
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.asyncio
async def test_manual_input_creates_project(api):
    body = await _create(api, name="Leave tracker", organization_name="Acme")

    assert body["project"]["name"] == "Leave tracker"
    assert body["project"]["status"] == "created"
    assert body["project"]["total_documents"] == 1
    assert body["document"]["type"] == "RAW_INPUT"
    assert body["document"]["version"] == 1


@pytest.mark.asyncio
async def test_transcript_and_file_inputs(api):
    resp = await api.post("/api/inputs/transcript", json={"content": "Call notes", "source": "zoom"})
    assert resp.status_code == 201
    assert resp.json()["project"]["source"] == "transcript:zoom"

    resp = await api.post("/api/inputs/file", json={"filename": "brief.pdf", "text": "Brief"})
    assert resp.status_code == 201
    assert resp.json()["project"]["input_type"] == "file"


@pytest.mark.asyncio
async def test_empty_input_is_rejected(api):
    resp = await api.post("/api/inputs/manual", json={"content": ""})
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"

    resp = await api.post("/api/inputs/manual", json={})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_projects_paginates_and_filters(api):
    for i in range(3):
        await _create(api, f"Input {i}")

    resp = await api.get("/api/projects", params={"page": 1, "limit": 2})
    data = resp.json()
    assert len(data["projects"]) == 2
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    resp = await api.get("/api/projects", params={"status": "completed"})
    assert resp.json()["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_get_and_update_project(api):
    created = await _create(api)
    project_id = created["project"]["project_id"]

    resp = await api.put(f"/api/projects/{project_id}", json={"name": "Renamed", "contact_email": "a@b.c"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "Renamed"
    assert resp.json()["revision"] > created["project"]["revision"]

    resp = await api.get(f"/api/projects/{project_id}")
    assert resp.status_code == 200
    assert resp.json()["project"]["contact_email"] == "a@b.c"
    assert len(resp.json()["documents"]) == 1

    resp = await api.get("/api/projects/missing")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_document_versioning_endpoints(api):
    created = await _create(api)
    project_id = created["project"]["project_id"]
    raw_id = created["document"]["document_id"]

    resp = await api.post(
        f"/api/projects/{project_id}/documents/{raw_id}/version", json={"content": {"text": "v2"}}
    )
    assert resp.status_code == 201
    v2 = resp.json()
    assert v2["version"] == 2
    assert v2["parent_document_id"] == raw_id

    resp = await api.get(f"/api/projects/{project_id}/documents/latest/RAW_INPUT")
    assert resp.json()["document_id"] == v2["document_id"]

    resp = await api.put(
        f"/api/projects/{project_id}/documents/{raw_id}", json={"content": {"text": "patched"}}
    )
    assert resp.status_code == 200
    assert resp.json()["version"] == 1

    resp = await api.get(f"/api/projects/{project_id}/documents/{raw_id}")
    assert resp.json()["content"]["text"] == "patched"

    resp = await api.get(f"/api/projects/{project_id}/documents")
    assert [d["version"] for d in resp.json()] == [2, 1]

    resp = await api.get(f"/api/projects/{project_id}/documents/latest/BRD")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_stage_round_trip(api, processing_service):
    created = await _create(api, "Customers want self-service refunds")
    project_id = created["project"]["project_id"]

    resp = await api.post(f"/api/actions/requirements/{project_id}")
    assert resp.status_code == 202
    assert resp.json()["status"] == "processing"
    sent = json.loads(processing_service.requests[-1].content)
    assert sent["input"] == "Customers want self-service refunds"

    resp = await api.post(
        "/api/webhooks/requirements",
        json={"project_info": {"id": project_id}, "requirements": ["Refund within 14 days"]},
    )
    assert resp.status_code == 201
    assert resp.json()["version"] == 1

    resp = await api.get(f"/api/projects/{project_id}")
    assert resp.json()["project"]["status"] == "completed"

    resp = await api.post(f"/api/actions/BRD/{project_id}")
    assert resp.status_code == 202
    sent = json.loads(processing_service.requests[-1].content)
    assert sent["requirements"]["requirements"] == ["Refund within 14 days"]

    resp = await api.post("/api/webhooks/completion", json={"project_id": project_id, "brd": "# BRD"})
    assert resp.status_code == 201
    assert resp.json()["stage"] == "BRD"

    resp = await api.get("/api/notifications/count")
    assert resp.json() == {"count": 2}


@pytest.mark.asyncio
async def test_failed_dispatch_returns_502_and_keeps_status(api, processing_service):
    created = await _create(api)
    project_id = created["project"]["project_id"]
    processing_service.responder = lambda request: httpx.Response(500)

    resp = await api.post(f"/api/actions/requirements/{project_id}")
    assert resp.status_code == 502
    assert resp.json()["error"] == "dispatch_error"

    resp = await api.get(f"/api/projects/{project_id}")
    assert resp.json()["project"]["status"] == "created"


@pytest.mark.asyncio
async def test_dispatch_precondition_and_unknown_stage(api):
    created = await _create(api)
    project_id = created["project"]["project_id"]

    resp = await api.post(f"/api/actions/blueprint/{project_id}")
    assert resp.status_code == 404

    resp = await api.post(f"/api/actions/deploy/{project_id}")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_webhook_rejects_incomplete_payload(api):
    resp = await api.post("/api/webhooks/brd", json={"brd": "no project"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "ingest_error"

    resp = await api.post("/api/webhooks/completion", json={"project_id": "p"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_email_input_feeds_requirements_dispatch(api, processing_service):
    email = {
        "source": "support-inbox",
        "subject": "Need a vendor onboarding portal",
        "content": "Vendors should upload tax forms themselves.",
        "metadata": {"sender": "jane.doe@globex.com"},
        "messageId": "<abc@globex.com>",
    }
    resp = await api.post("/api/inputs/email", json=[{"output": email}])
    assert resp.status_code == 201
    body = resp.json()
    project = body["project"]
    assert project["name"] == "Need a vendor onboarding portal"
    assert project["source"] == "email"
    assert project["input_type"] == "email"
    assert project["organization_name"] == "Globex"
    assert project["contact_person_name"] == "Jane Doe"
    assert project["contact_email"] == "jane.doe@globex.com"
    assert body["document"]["content"]["content"] == email["content"]
    assert body["document"]["content"]["message_id"] == "<abc@globex.com>"

    resp = await api.post(f"/api/actions/requirements/{project['project_id']}")
    assert resp.status_code == 202
    sent = json.loads(processing_service.requests[-1].content)
    assert sent["input"] == email["content"]
    assert sent["organization_name"] == "Globex"

    resp = await api.get("/api/notifications")
    [notification] = resp.json()["notifications"]
    assert notification["type"] == "PROJECT_UPDATE"
    assert notification["priority"] == "high"


@pytest.mark.asyncio
async def test_email_input_accepts_plain_object_and_requires_fields(api):
    resp = await api.post(
        "/api/inputs/email",
        json={"source": "inbox", "subject": "Short", "content": "Body"},
    )
    assert resp.status_code == 201
    assert resp.json()["project"]["contact_email"] == "unknown@example.com"

    resp = await api.post("/api/inputs/email", json={"source": "inbox", "subject": "No body"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"
