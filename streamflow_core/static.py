"""
Static Files
============
Serves the player page and assets from a fixed root.
"""

from pathlib import Path
from typing import Union

from starlette.responses import FileResponse

from .exceptions import ForbiddenError, NotFoundError

INDEX_FILE = "index.html"


def resolve_static_path(root: Union[str, Path], request_path: str) -> Path:
    """
    Map a request path to a file under root.

    Raises:
        ForbiddenError: If the resolved path escapes root
    """
    relative = request_path.lstrip("/") or INDEX_FILE
    base = Path(root).resolve()
    try:
        candidate = (base / relative).resolve()
    except (ValueError, OSError):
        raise NotFoundError()

    if candidate != base and base not in candidate.parents:
        raise ForbiddenError()
    return candidate


def serve_static(root: Union[str, Path], request_path: str) -> FileResponse:
    """
    Build a file response for request_path.

    Raises:
        ForbiddenError: Path traversal outside root
        NotFoundError: No such file
    """
    path = resolve_static_path(root, request_path)
    if not path.is_file():
        raise NotFoundError()
    return FileResponse(path)
