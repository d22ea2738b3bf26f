import pytest

from motorsite.auth.passwords import hash_password
from motorsite.core.errors import NotFoundError
from motorsite.infra.store import TableStore
from motorsite.services.story_service import DEPENDENTS, StoryService


def _seed_story(store: TableStore, user_id: int) -> int:
    story = store.insert("stories", {"user_id": user_id, "slug": "first", "title": "First", "text": "Hello"})
    sid = story["id"]
    store.insert("files", {"story_id": sid, "name": "a.png"})
    store.insert("comments", {"story_id": sid, "text": "nice"})
    store.insert("comments", {"story_id": sid, "text": "again"})
    store.insert("reads", {"story_id": sid, "ip": "127.0.0.1"})
    store.insert("polls", {"entity_id": sid, "entity_name": "story", "vote": "+"})
    store.insert("polls", {"entity_id": sid, "entity_name": "comment", "vote": "-"})
    store.insert("favorites", {"story_id": sid, "user_id": user_id})
    store.insert("tags", {"story_id": sid, "tag": "hello"})
    # Another story's rows must survive
    store.insert("comments", {"story_id": sid + 100, "text": "other"})
    return sid


@pytest.fixture()
def store(tmp_path) -> TableStore:
    return TableStore(tmp_path / "data")


def test_delete_removes_story_and_dependents(store):
    sid = _seed_story(store, user_id=1)
    removed = StoryService(store).delete(sid)

    assert removed == {
        "files": 1,
        "comments": 2,
        "reads": 1,
        "polls": 1,
        "favorites": 1,
        "tags": 1,
        "stories": 1,
    }
    assert store.find_one("stories", id=sid) is None
    assert [c["text"] for c in store.find_all("comments")] == ["other"]
    assert [p["entity_name"] for p in store.find_all("polls")] == ["comment"]


def test_delete_unknown_story(store):
    with pytest.raises(NotFoundError):
        StoryService(store).delete(42)


def test_delete_is_all_or_nothing(store, monkeypatch):
    sid = _seed_story(store, user_id=1)
    real_delete = store.delete

    def flaky_delete(table, row_id):
        if table == DEPENDENTS[-1][0]:
            raise OSError("disk full")
        return real_delete(table, row_id)

    monkeypatch.setattr(store, "delete", flaky_delete)
    with pytest.raises(OSError):
        StoryService(store).delete(sid)

    assert store.find_one("stories", id=sid) is not None
    assert len(store.find_all("comments", story_id=sid)) == 2
    assert len(TableStore(store.data_dir).find_all("files", story_id=sid)) == 1


# ------------------ routes ------------------


def _story_for(app, owner_login: str) -> int:
    owner = app.state.users.find_by_login(owner_login)
    return _seed_story(app.state.store, user_id=owner.id)


def test_owner_can_delete_story(client, app, alice):
    sid = _story_for(app, "alice")
    client.post("/login", data={"login": "alice", "password": "secret123"})

    r = client.post(f"/stories/{sid}/delete", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/"
    assert app.state.store.find_one("stories", id=sid) is None


def test_other_user_cannot_delete_story(client, app, alice):
    sid = _story_for(app, "alice")
    app.state.users.create(login="bob", email="bob@example.com", password_hash=hash_password("secret456"))
    client.post("/login", data={"login": "bob", "password": "secret456"})

    r = client.delete(f"/stories/{sid}")
    assert r.status_code == 403
    assert app.state.store.find_one("stories", id=sid) is not None


def test_admin_can_delete_any_story(client, app, alice):
    sid = _story_for(app, "alice")
    app.state.users.create(login="root", email="root@example.com", password_hash=hash_password("secret789"), role="admin")
    client.post("/login", data={"login": "root", "password": "secret789"})

    r = client.delete(f"/stories/{sid}", follow_redirects=False)
    assert r.status_code == 303
    assert app.state.store.find_one("stories", id=sid) is None


def test_banned_user_is_forbidden(client, app, alice):
    sid = _story_for(app, "alice")
    app.state.users.create(login="troll", email="troll@example.com", password_hash=hash_password("secret000"), role="banned")
    client.post("/login", data={"login": "troll", "password": "secret000"})

    assert client.delete(f"/stories/{sid}").status_code == 403


def test_guest_is_sent_to_login(client, app, alice):
    sid = _story_for(app, "alice")
    r = client.post(f"/stories/{sid}/delete", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login"


def test_missing_story_is_404(client, alice):
    client.post("/login", data={"login": "alice", "password": "secret123"})
    assert client.delete("/stories/999").status_code == 404
