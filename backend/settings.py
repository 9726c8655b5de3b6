import os
from pathlib import Path

# Basic settings helper to read environment configuration.

BACKEND_ROOT = Path(__file__).resolve().parent


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


class Settings:
    def __init__(self) -> None:
        self.DATA_DIR: Path = Path(os.getenv("CERTMAIL_DATA_DIR", str(BACKEND_ROOT / "data")))
        self.MEDIA_ROOT: Path = Path(os.getenv("CERTMAIL_MEDIA_ROOT", "media"))
        self.FONTS_DIR: Path = Path(os.getenv("CERTMAIL_FONTS_DIR", str(BACKEND_ROOT / "assets" / "fonts")))
        self.PERSISTENCE: str = os.getenv("CERTMAIL_PERSISTENCE", "sqlite").lower()
        self.DATABASE_URL: str = os.getenv(
            "CERTMAIL_DATABASE_URL", f"sqlite:///{BACKEND_ROOT / 'app.db'}"
        )
        self.TEMPLATES_KEY: str = os.getenv("CERTMAIL_TEMPLATES_KEY", "certificateTemplates")
        self.OPEN_MAIL_CLIENT: bool = _as_bool(os.getenv("CERTMAIL_OPEN_MAIL_CLIENT"), False)


settings = Settings()
