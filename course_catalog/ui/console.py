"""Plain text rendering of the folder tree."""

from __future__ import annotations

from typing import Iterable, Iterator

from ..services.catalog import Catalog
from ..services.storage import MaterialRecord
from .modern import collect_snapshot


class ConsoleUI:
    """Minimal console UI that prints the folder hierarchy."""

    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog

    def run(self) -> None:
        print("Course Catalog – Console Overview")
        print("=" * 40)
        has_entries = False
        for line in self.render_lines():
            has_entries = True
            print(line)
        if not has_entries:
            print("(empty)")

    def render_lines(self) -> Iterator[str]:
        snapshot = collect_snapshot(self._catalog)
        pending = [(0, folder) for folder in reversed(snapshot.folders)]
        while pending:
            depth, folder = pending.pop()
            indent = "  " * depth
            yield f"{indent}Folder: {folder.record.name}"
            yield from self._format_materials(folder.materials, depth + 1)
            pending.extend((depth + 1, child) for child in reversed(folder.children))
        yield from self._format_materials(snapshot.root_materials, 0)

    @staticmethod
    def _format_materials(materials: Iterable[MaterialRecord], depth: int) -> Iterator[str]:
        indent = "  " * depth
        for material in materials:
            uploader = f" (by {material.uploader.name})" if material.uploader else ""
            yield f"{indent}Material: {material.title}{uploader}"


__all__ = ["ConsoleUI"]
