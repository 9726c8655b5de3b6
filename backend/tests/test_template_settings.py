import json

import pytest

from domain.errors import SettingsImportError
from domain.models import DEFAULT_EMAIL_BODY, DEFAULT_EMAIL_SUBJECT, Template, TemplateSettings
from services.template_store import TemplateStore, export_filename, parse_settings
from storage.persistence import InMemoryKeyValueStore


@pytest.fixture
def store(png_data_url):
    store = TemplateStore(InMemoryKeyValueStore())
    store.upsert(
        Template(
            name="Course Certificate",
            image_data=png_data_url,
            font_size_px=72,
            font_color="#1a2b3c",
            overlay_text="Your Name",
            y_position_pct=62,
            font_family="Playfair Display",
            email_subject="Congratulations!",
            email_body_template="Dear {{name}},\n\nWell done.",
        )
    )
    return store


def test_export_then_import_reproduces_every_field_but_the_image(store):
    exported = store.export_settings("Course Certificate")
    assert "image_data" not in json.loads(exported)
    imported = store.import_settings(exported)
    assert imported == store.require("Course Certificate").settings()


def test_import_does_not_touch_the_store(store):
    payload = json.dumps({"name": "Other", "font_size_px": 20, "font_color": "#000"})
    store.import_settings(payload)
    assert store.names() == ["Course Certificate"]


def test_settings_merge_onto_a_new_image(store, make_png):
    from services.compositor import to_data_url

    imported = store.import_settings(store.export_settings("Course Certificate"))
    new_image = to_data_url(make_png(size=(100, 50)))
    merged = imported.with_image(new_image)
    assert merged.image_data == new_image
    assert merged.settings() == imported


def test_export_filename_replaces_whitespace():
    assert export_filename("Course Certificate") == "Course_Certificate-settings.json"
    assert export_filename("a\tb c") == "a_b_c-settings.json"


def test_import_accepts_browser_export_keys():
    payload = json.dumps(
        {
            "name": "Legacy",
            "textOnImage": "Jane Doe",
            "fontSize": 90,
            "fontColor": "#ffffff",
            "yPosition": 30,
            "selectedFont": "Great Vibes",
            "subject": "Hi",
            "emailBodyTemplate": "Hello {{name}}",
        }
    )
    settings = parse_settings(payload)
    assert settings == TemplateSettings(
        name="Legacy",
        font_size_px=90,
        font_color="#ffffff",
        overlay_text="Jane Doe",
        y_position_pct=30,
        font_family="Great Vibes",
        email_subject="Hi",
        email_body_template="Hello {{name}}",
    )


def test_import_fills_optional_fields_with_defaults():
    settings = parse_settings(b'{"name": "Min", "font_size_px": 12, "font_color": "red"}')
    assert settings.email_subject == DEFAULT_EMAIL_SUBJECT
    assert settings.email_body_template == DEFAULT_EMAIL_BODY
    assert settings.y_position_pct == 50


def test_import_keeps_explicit_empty_strings():
    settings = parse_settings('{"name": "Min", "font_size_px": 12, "font_color": "red", "overlay_text": ""}')
    assert settings.overlay_text == ""


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        "[1, 2, 3]",
        '{"font_size_px": 12, "font_color": "red"}',
        '{"name": "x", "font_color": "red"}',
        '{"name": "x", "font_size_px": 12}',
        '{"name": "x", "font_size_px": "huge", "font_color": "red"}',
        b"\xff\xfe\x00",
    ],
)
def test_import_rejects_bad_payloads(payload):
    with pytest.raises(SettingsImportError):
        parse_settings(payload)


def test_import_accepts_utf8_bom():
    settings = parse_settings('\ufeff{"name": "Bom", "fontSize": 30, "fontColor": "#000"}'.encode("utf-8"))
    assert settings.name == "Bom"
