import re

from motorsite.auth import captcha
from motorsite.core.settings import load_settings

_GLYPH_RE = re.compile(r">(\w)</text>")


def _code_from_svg(svg: str) -> str:
    return "".join(_GLYPH_RE.findall(svg))


def test_generate_code_uses_configured_symbols():
    settings = load_settings(overrides={"captcha": {"length": 6, "symbols": "AB"}})
    code = captcha.generate_code(settings)
    assert len(code) == 6
    assert set(code) <= {"A", "B"}


def test_layout_places_every_char_inside_the_image():
    glyphs = captcha.layout("48273")
    assert "".join(g.char for g in glyphs) == "48273"
    assert all(0 < g.x < captcha.WIDTH and 0 < g.y < captcha.HEIGHT for g in glyphs)


def test_captcha_route_stores_code_in_session(client, session_of):
    r = client.get("/captcha")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("image/svg+xml")
    assert r.headers["cache-control"] == "no-store"

    code = _code_from_svg(r.text)
    assert len(code) == 5
    assert session_of(client)["captcha"] == code


def test_new_captcha_replaces_previous_one(client, session_of):
    client.get("/captcha")
    second = _code_from_svg(client.get("/captcha").text)
    assert session_of(client)["captcha"] == second


def test_register_page_shows_captcha_image(client):
    r = client.get("/register")
    assert '<img src="/captcha"' in r.text
