"""
Path helpers shared by every backend.

All caller supplied paths go through normalize_key before they reach a
filesystem call or become an object key.
"""
from typing import List

FILE = 0
FOLDER = 1


def _clean_segments(path: str) -> List[str]:
    return [p for p in path.replace("\\", "/").split("/") if p not in ("", ".", "..")]


def normalize_key(path: str) -> str:
    """
    Normalize a caller supplied path into a relative storage key.

    Strips leading separators, collapses repeated separators and removes
    '.' and '..' segments. A trailing separator is kept so prefixes such as
    'reports/' still address a folder.

    Args:
        path: Raw path, e.g. '/uploads/../report.pdf'

    Returns:
        Relative key, e.g. 'uploads/report.pdf'
    """
    if path is None:
        raise ValueError("path is required")
    key = "/".join(_clean_segments(path))
    if key and path.rstrip().endswith("/"):
        key += "/"
    return key


def build_url(url_parts: List[str], path_type: int) -> str:
    """Join path parts into '/a/b' (FILE) or '/a/b/' (FOLDER)."""
    segments: List[str] = []
    for part in url_parts:
        segments.extend(_clean_segments(part))
    url = "".join(f"/{s}" for s in segments)
    if path_type == FOLDER:
        url += "/"
    return url


class PathParts:
    """Ordered path segments that can be rendered as a folder or file path."""

    def __init__(self, *parts: str):
        self.parts = list(parts)

    def to_path(self, *additional_parts: str) -> str:
        return build_url(self.parts + list(additional_parts), FOLDER)

    def to_file_path(self, *additional_parts: str) -> str:
        return build_url(self.parts + list(additional_parts), FILE)
