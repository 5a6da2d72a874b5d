"""
Conversation and folder endpoints.
"""
from unittest.mock import AsyncMock, patch

from conftest import FakeDb, bearer, signed_in, cursor_of

DB_PATH = "middleware.database.get_db"


def test_list_requires_auth(client):
    assert client.get("/api/conversations").status_code == 401


def test_create_and_list(client):
    db = FakeDb()
    signed_in(db, "u1")
    db.conversations.find = cursor_of([{"id": "c1", "user_id": "u1", "title": "New Conversation"}])

    with patch(DB_PATH, return_value=db):
        created = client.post("/api/conversations", json={}, headers=bearer("u1"))
        listed = client.get("/api/conversations", headers=bearer("u1"))

    assert created.status_code == 201
    assert created.json()["title"] == "New Conversation"
    assert listed.json()["conversations"][0]["id"] == "c1"


def test_latest_is_not_treated_as_an_id(client):
    db = FakeDb()
    signed_in(db, "u1")

    with patch(DB_PATH, return_value=db):
        response = client.get("/api/conversations/latest", headers=bearer("u1"))

    assert response.status_code == 200
    assert response.json() == {"conversation": None}


def test_get_missing_conversation(client):
    db = FakeDb()
    signed_in(db, "u1")

    with patch(DB_PATH, return_value=db):
        response = client.get("/api/conversations/nope", headers=bearer("u1"))

    assert response.status_code == 404
    assert response.json()["detail"] == "Conversation not found"


def test_rename_rejects_empty_title(client):
    db = FakeDb()
    signed_in(db, "u1")

    with patch(DB_PATH, return_value=db):
        response = client.patch("/api/conversations/c1", json={"title": ""}, headers=bearer("u1"))

    assert response.status_code == 422


def test_delete_conversation(client):
    db = FakeDb()
    signed_in(db, "u1")
    db.conversations.find_one = AsyncMock(return_value={"id": "c1", "user_id": "u1"})

    with patch(DB_PATH, return_value=db):
        response = client.delete("/api/conversations/c1", headers=bearer("u1"))

    assert response.status_code == 200
    db.messages.delete_many.assert_awaited_once_with({"conversation_id": "c1"})


def test_add_message_validates_role(client):
    db = FakeDb()
    signed_in(db, "u1")

    with patch(DB_PATH, return_value=db):
        response = client.post(
            "/api/conversations/c1/messages", json={"role": "system", "content": "hi"}, headers=bearer("u1"),
        )

    assert response.status_code == 422


def test_folder_lifecycle(client):
    db = FakeDb()
    signed_in(db, "u1")
    db.conversation_folders.find_one = AsyncMock(return_value={"id": "f1", "user_id": "u1", "name": "Leases"})

    with patch(DB_PATH, return_value=db):
        created = client.post("/api/folders", json={"name": "Leases"}, headers=bearer("u1"))
        renamed = client.patch("/api/folders/f1", json={"name": "Leases"}, headers=bearer("u1"))
        deleted = client.delete("/api/folders/f1", headers=bearer("u1"))

    assert created.status_code == 201
    assert created.json()["name"] == "Leases"
    assert renamed.status_code == 200
    assert deleted.json() == {"message": "Folder deleted"}
