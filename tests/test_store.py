import os
from pathlib import Path

import pytest
import yaml

from motorsite.core.errors import UniqueConstraintError
from motorsite.infra.store import TableStore


@pytest.fixture()
def store(tmp_path: Path) -> TableStore:
    return TableStore(tmp_path / "data", unique={"users": ("login", "email")})


def test_insert_assigns_ids_and_persists(store: TableStore, tmp_path: Path):
    a = store.insert("users", {"login": "alice", "email": "a@example.com"})
    b = store.insert("users", {"login": "bob", "email": "b@example.com"})
    assert (a["id"], b["id"]) == (1, 2)

    raw = yaml.safe_load((tmp_path / "data" / "users.yml").read_text(encoding="utf-8"))
    assert raw["next_id"] == 3
    assert [r["login"] for r in raw["rows"]] == ["alice", "bob"]

    reopened = TableStore(tmp_path / "data")
    assert reopened.find_one("users", login="bob")["email"] == "b@example.com"


def test_find_one_and_find_all(store: TableStore):
    store.insert("tags", {"story_id": 1, "tag": "a"})
    store.insert("tags", {"story_id": 1, "tag": "b"})
    store.insert("tags", {"story_id": 2, "tag": "c"})
    assert store.find_one("tags", story_id=3) is None
    assert [t["tag"] for t in store.find_all("tags", story_id=1)] == ["a", "b"]
    assert len(store.find_all("tags")) == 3


def test_unique_constraint(store: TableStore):
    store.insert("users", {"login": "alice", "email": "a@example.com"})
    with pytest.raises(UniqueConstraintError) as exc:
        store.insert("users", {"login": "alice", "email": "other@example.com"})
    assert exc.value.field == "login"
    assert len(store.find_all("users")) == 1


def test_delete(store: TableStore):
    row = store.insert("comments", {"text": "hi"})
    assert store.delete("comments", row["id"]) == 1
    assert store.delete("comments", row["id"]) == 0
    assert store.find_all("comments") == []


def test_transaction_commits_on_success(store: TableStore, tmp_path: Path):
    with store.transaction():
        store.insert("comments", {"text": "one"})
        store.insert("files", {"name": "f.png"})
        # Nothing written until the block ends
        assert not (tmp_path / "data" / "comments.yml").exists()
    assert (tmp_path / "data" / "comments.yml").exists()
    assert len(TableStore(tmp_path / "data").find_all("files")) == 1


def test_transaction_rolls_back_on_error(store: TableStore, tmp_path: Path):
    keep = store.insert("comments", {"text": "keep"})
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.delete("comments", keep["id"])
            store.insert("comments", {"text": "new"})
            raise RuntimeError("fail mid-way")

    assert [c["text"] for c in store.find_all("comments")] == ["keep"]
    assert [c["text"] for c in TableStore(tmp_path / "data").find_all("comments")] == ["keep"]


def test_reloads_when_file_changes(store: TableStore, tmp_path: Path):
    store.insert("users", {"login": "alice", "email": "a@example.com"})
    other = TableStore(tmp_path / "data", unique={"users": ("login", "email")})
    other.insert("users", {"login": "bob", "email": "b@example.com"})
    # The first store sees bob's row once the file has changed on disk
    path = tmp_path / "data" / "users.yml"
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 5))
    assert store.find_one("users", login="bob") is not None
