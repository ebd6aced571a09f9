# src/storage/local_writer.py — v4
"""Local filesystem artifact writer (default backend)."""

from __future__ import annotations

from pathlib import Path

from mediaquote.storage.base_output_writer import BaseOutputWriter


class LocalWriter(BaseOutputWriter):
    """Write exported files into one directory."""

    def __init__(self, base_path: str | Path = "./exports") -> None:
        self._base = Path(base_path).expanduser()

    @property
    def base_path(self) -> Path:
        return self._base

    def _resolve(self, name: str) -> Path:
        # Artifacts are flat; never let a name escape the export directory.
        return self._base / Path(name).name

    async def write(self, name: str, content: bytes | str) -> str:
        p = self._resolve(name)
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            p.write_bytes(content)
        else:
            p.write_text(content, encoding="utf-8")
        return str(p)
