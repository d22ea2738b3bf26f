from pathlib import Path

import pytest

from motorsite.core.settings import Settings, load_settings


def test_get_walks_dotted_keys():
    s = Settings({"session": {"name": "motor_session", "cookie": {"secure": True}}, "debug": True})
    assert s.get("debug") is True
    assert s.get("session.name") == "motor_session"
    assert s.get("session.cookie.secure") is True


def test_get_returns_default_for_missing_or_non_mapping_segment():
    s = Settings({"session": {"name": "motor_session"}, "debug": True})
    assert s.get("session.missing", "x") == "x"
    assert s.get("nope") is None
    assert s.get("debug.level", 3) == 3
    assert s.get("session.name.extra", "d") == "d"


def test_settings_are_read_only():
    s = Settings({"main": {"guest_name": "Guest"}, "items": [1, 2]})
    with pytest.raises(TypeError):
        s.all()["main"]["guest_name"] = "Other"
    assert s.get("items") == (1, 2)
    assert s.get("main.guest_name") == "Guest"


def test_load_settings_merges_file_env_and_overrides(tmp_path: Path, monkeypatch):
    path = tmp_path / "settings.yml"
    path.write_text("guestbook:\n  per_page: 25\nsession:\n  name: custom\n", encoding="utf-8")
    monkeypatch.setenv("MOTOR_SETTINGS_PATH", str(path))
    monkeypatch.setenv("SECRET_KEY", "from-env")

    s = load_settings(overrides={"session": {"cookie_lifetime": 60}})

    assert s.get("guestbook.per_page") == 25
    assert s.get("guestbook.title_min_length") == 5
    assert s.get("session.name") == "custom"
    assert s.get("session.cookie_lifetime") == 60
    assert s.get("app.secret_key") == "from-env"


def test_load_settings_rejects_non_mapping_file(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("MOTOR_SETTINGS_PATH", raising=False)
    path = tmp_path / "bad.yml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(path)
