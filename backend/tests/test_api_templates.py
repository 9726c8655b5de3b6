import json

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_template_store
from api.main import app
from services.template_store import TemplateStore
from storage.persistence import InMemoryKeyValueStore


@pytest.fixture
def store():
    return TemplateStore(InMemoryKeyValueStore())


@pytest.fixture
def client(store):
    app.dependency_overrides[get_template_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _payload(image_data, **overrides):
    payload = {"image_data": image_data, "font_size_px": 500, "font_color": "#000000", "y_position_pct": 40}
    payload.update(overrides)
    return payload


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["status"] == "ok"


def test_put_get_list_delete(client, store, png_data_url):
    resp = client.put("/templates/Course Certificate", json=_payload(png_data_url))
    assert resp.status_code == 200
    assert resp.json()["font_size_px"] == 300

    listing = client.get("/templates").json()
    assert [t["name"] for t in listing] == ["Course Certificate"]
    assert listing[0]["has_image"] is True
    assert "image_data" not in listing[0]

    detail = client.get("/templates/Course Certificate").json()
    assert detail["image_data"] == png_data_url
    assert detail["y_position_pct"] == 40

    assert client.delete("/templates/Course Certificate").status_code == 204
    assert len(store) == 0


def test_put_missing_required_field_is_400(client, png_data_url):
    resp = client.put("/templates/Course", json={"image_data": png_data_url, "font_size_px": 20})
    assert resp.status_code == 400
    assert resp.json()["error"] == "ValidationError"


def test_unknown_template_is_404(client):
    assert client.get("/templates/nope").status_code == 404
    resp = client.delete("/templates/nope")
    assert resp.status_code == 404
    assert resp.json()["error"] == "TemplateNotFoundError"


def test_export_and_import(client, png_data_url):
    client.put("/templates/Course Certificate", json=_payload(png_data_url, email_subject="Congrats"))

    exported = client.get("/templates/Course Certificate/export")
    assert exported.status_code == 200
    assert "Course_Certificate-settings.json" in exported.headers["content-disposition"]
    settings = exported.json()
    assert "image_data" not in settings

    imported = client.post("/templates/import", content=exported.content)
    assert imported.status_code == 200
    assert imported.json() == settings


def test_import_rejects_incomplete_settings(client):
    resp = client.post("/templates/import", content=json.dumps({"name": "x"}))
    assert resp.status_code == 400
    assert resp.json()["error"] == "SettingsImportError"


def test_preview_returns_png(client, png_data_url):
    client.put("/templates/Course", json=_payload(png_data_url, font_size_px=40))
    resp = client.get("/templates/Course/preview", params={"display_name": "Ada Lovelace"})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert resp.content.startswith(b"\x89PNG")
    assert "Personalized-Ada_Lovelace.png" in resp.headers["content-disposition"]


def test_preview_without_image_is_400(client):
    client.put("/templates/Blank", json={"font_size_px": 40, "font_color": "#000"})
    assert client.get("/templates/Blank/preview").status_code == 400


def test_fonts_lists_fallback_classes(client):
    fonts = client.get("/fonts").json()["fonts"]
    assert {"family": "Great Vibes", "fallback": "cursive"} in fonts
    assert [f["family"] for f in fonts] == ["Great Vibes", "Poppins", "Merriweather", "Playfair Display"]
