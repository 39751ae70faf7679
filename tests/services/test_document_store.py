"""Versioned document storage."""
from __future__ import annotations

import asyncio

import pytest

from reqflow.core.errors import DuplicateKeyError, NotFoundError, ValidationError
from reqflow.db.models import DocumentType
from reqflow.db.repositories import DocumentRepository, ProjectRepository
from reqflow.services.projects import ProjectService


@pytest.mark.asyncio
async def test_create_with_raw_input_writes_version_one(make_project):
    project, raw = await make_project("Build an onboarding portal")

    assert project.status == "created"
    assert project.total_documents == 1
    assert project.name == f"Requirement {project.project_id[:8]}"
    assert raw.type == DocumentType.RAW_INPUT.value
    assert raw.version == 1
    assert raw.parent_document_id is None
    assert raw.content["text"] == "Build an onboarding portal"


@pytest.mark.asyncio
async def test_empty_raw_input_is_rejected(make_project, session_factory):
    with pytest.raises(ValidationError):
        await make_project("   ")

    async with session_factory() as session:
        projects, total = await ProjectRepository(session).list()
    assert total == 0
    assert projects == []


@pytest.mark.asyncio
async def test_versions_are_contiguous_and_linked(make_project, session_factory):
    project, raw = await make_project()

    async with session_factory() as session:
        service = ProjectService(ProjectRepository(session), DocumentRepository(session))
        v2 = await service.branch_version(project.project_id, raw.document_id, {"text": "edited"})
        v3 = await service.branch_version(project.project_id, v2.document_id, {"text": "again"})

    assert (v2.version, v3.version) == (2, 3)
    assert v2.parent_document_id == raw.document_id
    assert v3.parent_document_id == v2.document_id
    assert v3.meta["created_from_version"] == 2

    async with session_factory() as session:
        documents = DocumentRepository(session)
        latest = await documents.latest(project.project_id, DocumentType.RAW_INPUT)
        stored = await ProjectRepository(session).get(project.project_id)
        count = await documents.count_by_project(project.project_id)
    assert latest.document_id == v3.document_id
    assert stored.total_documents == count == 3


@pytest.mark.asyncio
async def test_concurrent_versions_get_distinct_numbers(make_project, session_factory):
    project, raw = await make_project()

    async def branch(text: str):
        async with session_factory() as session:
            service = ProjectService(ProjectRepository(session), DocumentRepository(session))
            return await service.branch_version(project.project_id, raw.document_id, {"text": text})

    first, second = await asyncio.gather(branch("a"), branch("b"))

    assert {first.version, second.version} == {2, 3}
    async with session_factory() as session:
        stored = await ProjectRepository(session).get(project.project_id)
    assert stored.total_documents == 3


@pytest.mark.asyncio
async def test_branch_from_missing_parent_raises_not_found(make_project, session_factory):
    project, _ = await make_project()

    async with session_factory() as session:
        documents = DocumentRepository(session)
        with pytest.raises(NotFoundError):
            await documents.create_version(project.project_id, "no-such-document", {"text": "x"})


@pytest.mark.asyncio
async def test_branch_validates_against_parent_type(make_project, session_factory):
    project, raw = await make_project()

    async with session_factory() as session:
        service = ProjectService(ProjectRepository(session), DocumentRepository(session))
        with pytest.raises(ValidationError):
            await service.branch_version(project.project_id, raw.document_id, {"brd": "wrong"})


@pytest.mark.asyncio
async def test_second_initial_document_is_a_duplicate(make_project, session_factory):
    project, _ = await make_project()

    async with session_factory() as session:
        documents = DocumentRepository(session)
        with pytest.raises(DuplicateKeyError):
            await documents.create_initial(project.project_id, DocumentType.RAW_INPUT, {"text": "x"})


@pytest.mark.asyncio
async def test_append_starts_new_lineage_at_one(make_project, session_factory):
    project, _ = await make_project()

    async with session_factory() as session:
        documents = DocumentRepository(session)
        first = await documents.append(project.project_id, DocumentType.BRD, {"brd": "one"})
        second = await documents.append(project.project_id, DocumentType.BRD, {"brd": "two"})
        await documents.commit()
        latest = await documents.latest(project.project_id, DocumentType.BRD)

    assert (first.version, second.version) == (1, 2)
    assert latest.document_id == second.document_id


@pytest.mark.asyncio
async def test_update_in_place_keeps_version(make_project, session_factory):
    project, raw = await make_project()

    async with session_factory() as session:
        service = ProjectService(ProjectRepository(session), DocumentRepository(session))
        updated = await service.update_in_place(project.project_id, raw.document_id, {"text": "fixed"})
        _, documents = await service.get_with_documents(project.project_id)

    assert updated.version == 1
    assert updated.content["text"] == "fixed"
    assert len(documents) == 1


@pytest.mark.asyncio
async def test_many_concurrent_versions_stay_contiguous(make_project, session_factory):
    project, raw = await make_project()

    async def branch(i: int):
        async with session_factory() as session:
            service = ProjectService(ProjectRepository(session), DocumentRepository(session))
            return await service.branch_version(project.project_id, raw.document_id, {"text": str(i)})

    documents = await asyncio.gather(*(branch(i) for i in range(12)))

    assert sorted(d.version for d in documents) == list(range(2, 14))
    async with session_factory() as session:
        stored = await ProjectRepository(session).get(project.project_id)
    assert stored.total_documents == 13
