"""Manage saved templates from the command line.

Usage (from backend/):
    python -m scripts.template_tool list
    python -m scripts.template_tool export NAME [--out DIR]    (default: <media-root>/exports)
    python -m scripts.template_tool import SETTINGS_JSON --image IMAGE [--name NEW_NAME]
    python -m scripts.template_tool preview NAME [--display-name "Ada Lovelace"] [--out DIR]
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from domain.errors import CertMailError
from services.compositor import output_filename, render_png, to_data_url
from services.template_store import TemplateStore
from settings import settings
from storage.file_storage import FileStorage
from storage.persistence import build_key_value_store


def cmd_list(store: TemplateStore, args: argparse.Namespace) -> int:
    templates = store.list()
    if not templates:
        print("No saved templates.")
        return 0
    for t in templates:
        print(f"{t.name}\t{t.font_family} {t.font_size_px}px {t.font_color} at {t.y_position_pct}%")
    return 0


def cmd_export(store: TemplateStore, args: argparse.Namespace) -> int:
    content = store.export_settings(args.name)
    filename = store.export_filename(args.name)
    if args.out is None:
        storage = FileStorage(settings.MEDIA_ROOT)
        out_path = storage.media_root / storage.save_export(filename, content)
    else:
        out_dir = Path(args.out)
        out_dir.mkdir(parents=True, exist_ok=True)
        out_path = out_dir / filename
        out_path.write_text(content, encoding="utf-8")
    print(out_path)
    return 0


def cmd_import(store: TemplateStore, args: argparse.Namespace) -> int:
    imported = store.import_settings(Path(args.settings).read_bytes())
    image_data = to_data_url(Path(args.image).read_bytes())
    template = imported.with_image(image_data)
    if args.name:
        template = replace(template, name=args.name)
    saved = store.upsert(template)
    print(f"Saved template {saved.name!r}")
    return 0


def cmd_preview(store: TemplateStore, args: argparse.Namespace) -> int:
    template = store.require(args.name)
    png = render_png(template, args.display_name)
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / output_filename(args.display_name)
    out_path.write_bytes(png)
    print(out_path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="List, export, import and preview saved templates.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List saved templates.")
    p_list.set_defaults(func=cmd_list)

    p_export = sub.add_parser("export", help="Write a template's settings to <name>-settings.json.")
    p_export.add_argument("name")
    p_export.add_argument("--out", default=None, help="Directory to write to (defaults to <media-root>/exports).")
    p_export.set_defaults(func=cmd_export)

    p_import = sub.add_parser("import", help="Apply a settings file to an image and save it as a template.")
    p_import.add_argument("settings", help="Settings JSON exported earlier.")
    p_import.add_argument("--image", required=True, help="Base image for the template.")
    p_import.add_argument("--name", default=None, help="Save under a different name.")
    p_import.set_defaults(func=cmd_import)

    p_preview = sub.add_parser("preview", help="Render a template to Personalized-<name>.png.")
    p_preview.add_argument("name")
    p_preview.add_argument("--display-name", default="")
    p_preview.add_argument("--out", default=".")
    p_preview.set_defaults(func=cmd_preview)
    return parser


def main(argv: Optional[List[str]] = None, store: Optional[TemplateStore] = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = build_parser().parse_args(argv)
    if store is None:
        store = TemplateStore(build_key_value_store(), settings.TEMPLATES_KEY)
    try:
        return args.func(store, args)
    except (CertMailError, OSError) as exc:
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
