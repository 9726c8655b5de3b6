import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_recipient_batch, get_template_store
from api.main import app
from domain.models import Template
from services.recipient_batch import RecipientBatch
from services.template_store import TemplateStore
from services.transport import OutboxTransport
from storage.file_storage import FileStorage
from storage.persistence import InMemoryKeyValueStore

CSV = b"Name,Email\nAlice,a@x.io\n,b@x.io\nBob,c@x.io\n"


@pytest.fixture
def store(png_data_url):
    store = TemplateStore(InMemoryKeyValueStore())
    store.upsert(
        Template(
            name="Course",
            image_data=png_data_url,
            font_size_px=40,
            font_color="#000000",
            email_body_template="Hi {{name}},\n\nBest",
        )
    )
    return store


@pytest.fixture
def batch(tmp_path):
    return RecipientBatch(clipboard=OutboxTransport(FileStorage(tmp_path)))


@pytest.fixture
def client(store, batch):
    app.dependency_overrides[get_template_store] = lambda: store
    app.dependency_overrides[get_recipient_batch] = lambda: batch
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client, content=CSV):
    return client.post("/batch/import", files={"file": ("recipients.csv", content, "text/csv")})


def test_import_and_state(client):
    resp = _upload(client)
    assert resp.status_code == 200
    data = resp.json()
    assert [r["id"] for r in data["pending"]] == [0, 2]
    assert data["stats"] == {"total": 2, "pending": 2, "sent": 0, "progress_pct": 0.0}
    assert data["in_flight_id"] is None
    assert client.get("/batch").json() == data


def test_import_missing_columns_is_400(client):
    resp = _upload(client, b"full_name,mail\nAlice,a@x.io\n")
    assert resp.status_code == 400
    assert resp.json()["kind"] == "missing_columns"


def test_dispatch_marks_sent_and_writes_outbox(client, tmp_path):
    _upload(client)
    resp = client.post("/batch/recipients/2/dispatch", params={"template": "Course"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["recipient"] == {"id": 2, "name": "Bob", "email": "c@x.io", "status": "sent"}
    assert data["body"] == "Hi Bob,\n\nBest"
    assert data["mailto_url"].startswith("mailto:c@x.io?subject=")
    assert (tmp_path / data["artifact_path"]).exists()

    state = client.get("/batch").json()
    assert [r["id"] for r in state["sent"]] == [2]
    assert state["stats"]["progress_pct"] == 50.0

    again = client.post("/batch/recipients/2/dispatch", params={"template": "Course"}).json()
    assert again["resent"] is True


def test_dispatch_without_template_is_400(client):
    _upload(client)
    resp = client.post("/batch/recipients/0/dispatch")
    assert resp.status_code == 400
    assert resp.json()["error"] == "NoTemplateSelected"
    resp = client.post("/batch/recipients/0/dispatch", params={"template": "Unknown"})
    assert resp.status_code == 400
    assert client.get("/batch").json()["stats"]["sent"] == 0


def test_dispatch_unknown_recipient_is_404(client):
    _upload(client)
    resp = client.post("/batch/recipients/1/dispatch", params={"template": "Course"})
    assert resp.status_code == 404


def test_download_recipient_image(client):
    _upload(client)
    resp = client.get("/batch/recipients/0/image", params={"template": "Course"})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert "Personalized-Alice.png" in resp.headers["content-disposition"]
    assert client.get("/batch").json()["stats"]["sent"] == 0
