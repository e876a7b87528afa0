"""Small string utilities."""

from __future__ import annotations

from typing import List


def split(s: str) -> List[str]:
    """Split ``s`` on runs of space characters only, dropping empty pieces."""
    return [part for part in s.split(" ") if part]