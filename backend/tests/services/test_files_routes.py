"""Files Routes - verifies upload-complete, lookups, status polling and deletion.

Invariants:
    - New upload -> 201 PROCESSING, then background ingestion decides SUCCESS/FAILED
    - Same key again -> 200 with the existing row, no second ingestion
    - Another user's files behave exactly like missing files
    - Status of an unknown file is PENDING
    - Delete removes vectors, messages and the row

Design Decisions:
    - Background tasks complete before the httpx test client returns,
      so DB state is asserted right after the response
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from briefly.core.domain_types import UploadStatus, namespace_for
from briefly.models.file import File
from briefly.models.message import Message
from briefly.models.user import User

from tests.services.db_helpers import AUTH, USER_ID, reload

UPLOAD = {
    "key": "key-new",
    "name": "notes.pdf",
    "url": "https://files.example/key-new",
}


@pytest.fixture
async def other_file(test_db):
    """A file owned by a different user."""
    other = User(id="kp_other", email="bob@example.com", first_name="Bob", last_name="B")
    test_db.add(other)
    await test_db.commit()
    file = File(
        key="key-other", name="private.pdf", url="https://files.example/key-other",
        user_id=other.id, upload_status=UploadStatus.SUCCESS.value,
    )
    test_db.add(file)
    await test_db.commit()
    await test_db.refresh(file)
    return file


# -- Upload complete -------------------------------------------------------------

async def test_upload_creates_processing_file_then_ingests(
    client, test_db, seed_user, fetcher, vector_index, fake_pages,
):
    fake_pages(["Welcome", "Details"])

    res = await client.post("/api/v1/files", json=UPLOAD, headers=AUTH)

    assert res.status_code == 201
    body = res.json()
    assert body["key"] == "key-new"
    assert body["name"] == "notes.pdf"
    assert body["upload_status"] == "PROCESSING"

    file = await reload(test_db, File, UUID(body["id"]))
    assert file.user_id == USER_ID
    assert file.upload_status == UploadStatus.SUCCESS.value
    assert file.page_count == 2
    assert fetcher.urls == ["https://files.example/key-new"]
    assert len(vector_index.namespaces[namespace_for(file.id)]) == 2


async def test_upload_same_key_is_idempotent(client, seed_user, fetcher, fake_pages):
    fake_pages(["Welcome"])

    first = await client.post("/api/v1/files", json=UPLOAD, headers=AUTH)
    second = await client.post("/api/v1/files", json=UPLOAD, headers=AUTH)

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]
    assert len(fetcher.urls) == 1


async def test_upload_of_foreign_key_is_404(client, seed_user, other_file):
    payload = {**UPLOAD, "key": other_file.key}
    res = await client.post("/api/v1/files", json=payload, headers=AUTH)
    assert res.status_code == 404


async def test_upload_for_unknown_user_is_404(client):
    res = await client.post("/api/v1/files", json=UPLOAD, headers=AUTH)
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


async def test_upload_over_free_page_limit_fails(client, test_db, seed_user, fake_pages):
    fake_pages([f"page {i}" for i in range(1, 7)])

    res = await client.post("/api/v1/files", json=UPLOAD, headers=AUTH)

    file = await reload(test_db, File, UUID(res.json()["id"]))
    assert file.upload_status == UploadStatus.FAILED.value
    assert file.page_count == 6


async def test_upload_by_pro_user_uses_pro_limit(client, test_db, pro_user, fake_pages):
    fake_pages([f"page {i}" for i in range(1, 11)])

    res = await client.post("/api/v1/files", json=UPLOAD, headers=AUTH)

    file = await reload(test_db, File, UUID(res.json()["id"]))
    assert file.upload_status == UploadStatus.SUCCESS.value


async def test_upload_rejects_invalid_url(client, seed_user):
    res = await client.post(
        "/api/v1/files", json={**UPLOAD, "url": "not a url"}, headers=AUTH,
    )
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_upload_requires_identity(client):
    res = await client.post("/api/v1/files", json=UPLOAD)
    assert res.status_code == 401


# -- Listing and lookup ----------------------------------------------------------

async def test_list_returns_only_own_files_newest_first(
    client, test_db, seed_user, other_file,
):
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for i, key in enumerate(["old", "new"]):
        test_db.add(File(
            key=key, name=f"{key}.pdf", url=f"https://files.example/{key}",
            user_id=USER_ID, upload_status=UploadStatus.SUCCESS.value,
            created_at=base + timedelta(hours=i),
        ))
    await test_db.commit()

    res = await client.get("/api/v1/files", headers=AUTH)

    assert res.status_code == 200
    assert [f["key"] for f in res.json()] == ["new", "old"]


async def test_lookup_by_key(client, seed_file):
    res = await client.post("/api/v1/files/lookup", json={"key": "key-abc"}, headers=AUTH)
    assert res.status_code == 200
    assert res.json()["id"] == str(seed_file.id)


async def test_lookup_of_foreign_key_is_404(client, seed_user, other_file):
    res = await client.post(
        "/api/v1/files/lookup", json={"key": other_file.key}, headers=AUTH,
    )
    assert res.status_code == 404


async def test_get_file(client, seed_file):
    res = await client.get(f"/api/v1/files/{seed_file.id}", headers=AUTH)
    assert res.status_code == 200
    assert res.json()["name"] == "handbook.pdf"
    assert res.json()["upload_status"] == "SUCCESS"


async def test_get_foreign_file_is_404(client, seed_user, other_file):
    res = await client.get(f"/api/v1/files/{other_file.id}", headers=AUTH)
    assert res.status_code == 404


# -- Status polling --------------------------------------------------------------

async def test_status_of_ready_file(client, seed_file):
    res = await client.get(f"/api/v1/files/{seed_file.id}/status", headers=AUTH)
    assert res.status_code == 200
    assert res.json() == {"status": "SUCCESS"}


async def test_status_of_unknown_file_is_pending(client, seed_user):
    res = await client.get(f"/api/v1/files/{uuid4()}/status", headers=AUTH)
    assert res.status_code == 200
    assert res.json() == {"status": "PENDING"}


async def test_status_of_foreign_file_is_pending(client, seed_user, other_file):
    res = await client.get(f"/api/v1/files/{other_file.id}/status", headers=AUTH)
    assert res.json() == {"status": "PENDING"}


# -- Delete ----------------------------------------------------------------------

async def test_delete_removes_vectors_messages_and_row(
    client, test_db, seed_file, vector_index,
):
    namespace = namespace_for(seed_file.id)
    vector_index.namespaces[namespace] = [{"page": 1, "text": "x", "vector": [], "metadata": {}}]
    test_db.add(Message(
        text="hi", is_user_message=True, user_id=USER_ID, file_id=seed_file.id,
    ))
    await test_db.commit()

    res = await client.delete(f"/api/v1/files/{seed_file.id}", headers=AUTH)

    assert res.status_code == 204
    assert vector_index.deleted == [namespace]
    assert namespace not in vector_index.namespaces
    test_db.expire_all()
    assert await test_db.get(File, seed_file.id) is None
    remaining = await test_db.execute(
        select(Message).where(Message.file_id == seed_file.id),
    )
    assert remaining.scalars().all() == []


async def test_delete_twice_is_404(client, seed_file):
    first = await client.delete(f"/api/v1/files/{seed_file.id}", headers=AUTH)
    second = await client.delete(f"/api/v1/files/{seed_file.id}", headers=AUTH)
    assert first.status_code == 204
    assert second.status_code == 404


async def test_delete_foreign_file_is_404(client, seed_user, other_file, vector_index):
    res = await client.delete(f"/api/v1/files/{other_file.id}", headers=AUTH)
    assert res.status_code == 404
    assert vector_index.deleted == []
