import io
import sys
from pathlib import Path

import pytest
from PIL import Image

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


def _make_png(size=(400, 200), color=(255, 255, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def make_png():
    return _make_png


@pytest.fixture
def png_bytes() -> bytes:
    return _make_png()


@pytest.fixture
def png_data_url(png_bytes) -> str:
    from services.compositor import to_data_url

    return to_data_url(png_bytes)
