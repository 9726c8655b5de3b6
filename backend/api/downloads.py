"""Response helpers for file downloads."""
from urllib.parse import quote

from fastapi import Response


def content_disposition(filename: str, disposition: str = "attachment") -> str:
    # RFC 6266 extended form keeps non-latin-1 names intact
    return f"{disposition}; filename*=UTF-8''{quote(filename)}"


def file_response(content: bytes | str, media_type: str, filename: str, disposition: str = "attachment") -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": content_disposition(filename, disposition)},
    )
