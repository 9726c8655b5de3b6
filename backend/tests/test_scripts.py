import json

import pytest

from domain.models import Template
from scripts import send_batch, template_tool
from services.template_store import TemplateStore
from storage.persistence import InMemoryKeyValueStore


@pytest.fixture
def store(png_data_url):
    store = TemplateStore(InMemoryKeyValueStore())
    store.upsert(Template(name="Course Certificate", image_data=png_data_url, font_size_px=40, font_color="#000000"))
    return store


def test_send_batch_dispatches_every_pending_recipient(tmp_path, store, capsys):
    csv_path = tmp_path / "recipients.csv"
    csv_path.write_text("name,email\nAlice,a@x.io\n,skip@x.io\nBob,b@x.io\n", encoding="utf-8")
    media = tmp_path / "media"

    code = send_batch.main(
        ["--csv", str(csv_path), "--template", "Course Certificate", "--media-root", str(media)],
        store=store,
    )

    assert code == 0
    out = capsys.readouterr().out
    assert "Sent 2 of 2 (100%), 0 failed, 0 pending" in out
    assert "mailto:a@x.io?subject=" in out
    assert len(list((media / "outbox").glob("*.png"))) == 2


def test_send_batch_limit(tmp_path, store, capsys):
    csv_path = tmp_path / "recipients.csv"
    csv_path.write_text("name,email\nAlice,a@x.io\nBob,b@x.io\n", encoding="utf-8")
    code = send_batch.main(
        ["--csv", str(csv_path), "--template", "Course Certificate", "--limit", "1", "--media-root", str(tmp_path)],
        store=store,
    )
    assert code == 0
    assert "Sent 1 of 2 (50%), 0 failed, 1 pending" in capsys.readouterr().out


def test_send_batch_unknown_template(tmp_path, store, capsys):
    csv_path = tmp_path / "recipients.csv"
    csv_path.write_text("name,email\nAlice,a@x.io\n", encoding="utf-8")
    code = send_batch.main(["--csv", str(csv_path), "--template", "Nope", "--media-root", str(tmp_path)], store=store)
    assert code == 2
    assert "Course Certificate" in capsys.readouterr().out


def test_send_batch_reports_import_errors(tmp_path, store, capsys):
    csv_path = tmp_path / "recipients.csv"
    csv_path.write_text("first,last\nA,B\n", encoding="utf-8")
    code = send_batch.main(["--csv", str(csv_path), "--template", "Course Certificate", "--media-root", str(tmp_path)], store=store)
    assert code == 2
    assert "missing_columns" in capsys.readouterr().out


def test_send_batch_continues_past_failures(tmp_path, store, monkeypatch, capsys):
    csv_path = tmp_path / "recipients.csv"
    csv_path.write_text("name,email\nAlice,a@x.io\nBob,b@x.io\n", encoding="utf-8")
    calls = []
    real_copy = send_batch.OutboxTransport.copy_image

    def flaky_copy(self, png_bytes):
        calls.append(1)
        if len(calls) == 1:
            raise OSError("clipboard busy")
        return real_copy(self, png_bytes)

    monkeypatch.setattr(send_batch.OutboxTransport, "copy_image", flaky_copy)
    code = send_batch.main(["--csv", str(csv_path), "--template", "Course Certificate", "--media-root", str(tmp_path)], store=store)
    assert code == 1
    assert "Sent 1 of 2 (50%), 1 failed, 1 pending" in capsys.readouterr().out


def test_template_tool_list_export_import_preview(tmp_path, store, png_bytes, capsys):
    assert template_tool.main(["list"], store=store) == 0
    assert "Course Certificate" in capsys.readouterr().out

    assert template_tool.main(["export", "Course Certificate", "--out", str(tmp_path)], store=store) == 0
    exported = tmp_path / "Course_Certificate-settings.json"
    assert json.loads(exported.read_text(encoding="utf-8"))["font_size_px"] == 40

    image_path = tmp_path / "base.png"
    image_path.write_bytes(png_bytes)
    code = template_tool.main(["import", str(exported), "--image", str(image_path), "--name", "Copy"], store=store)
    assert code == 0
    assert store.require("Copy").settings().font_size_px == 40

    assert template_tool.main(["preview", "Copy", "--display-name", "Ada Lovelace", "--out", str(tmp_path)], store=store) == 0
    assert (tmp_path / "Personalized-Ada_Lovelace.png").read_bytes().startswith(b"\x89PNG")


def test_template_tool_reports_missing_template(store, capsys):
    assert template_tool.main(["export", "Missing"], store=store) == 1
    assert "Template not found" in capsys.readouterr().out


def test_template_tool_export_defaults_to_media_exports(tmp_path, store, monkeypatch):
    monkeypatch.setattr(template_tool.settings, "MEDIA_ROOT", tmp_path)
    assert template_tool.main(["export", "Course Certificate"], store=store) == 0
    assert (tmp_path / "exports" / "Course_Certificate-settings.json").exists()
