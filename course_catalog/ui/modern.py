"""A Rich-powered rendering of the folder tree."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from rich import box
from rich.columns import Columns
from rich.console import Console, Group
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from ..services.catalog import Catalog
from ..services.storage import CategoryRecord, MaterialRecord


@dataclass
class FolderOverview:
    record: CategoryRecord
    materials: List[MaterialRecord] = field(default_factory=list)
    children: List["FolderOverview"] = field(default_factory=list)


@dataclass
class OverviewSnapshot:
    folders: List[FolderOverview]
    root_materials: List[MaterialRecord]
    folder_count: int
    material_count: int
    sourcecast_count: int
    group_count: int


def collect_snapshot(catalog: Catalog) -> OverviewSnapshot:
    """Build the whole folder tree from a single scan of the store."""

    repository = catalog.repository
    categories = list(repository.iter_categories())
    nodes: Dict[int, FolderOverview] = {record.id: FolderOverview(record) for record in categories}
    children: Dict[Optional[int], List[FolderOverview]] = defaultdict(list)
    for record in categories:
        parent = record.category_id if record.category_id in nodes else None
        children[parent].append(nodes[record.id])
    for node_id, node in nodes.items():
        node.children = children.get(node_id, [])
        node.materials = repository.list_materials(node_id)

    root_materials = repository.list_materials(None)
    material_count = len(root_materials) + sum(len(node.materials) for node in nodes.values())
    return OverviewSnapshot(
        folders=children.get(None, []),
        root_materials=root_materials,
        folder_count=len(nodes),
        material_count=material_count,
        sourcecast_count=len(repository.list_sourcecasts()),
        group_count=len(list(repository.iter_groups())),
    )


class ModernUI:
    """Render the catalog using Rich widgets."""

    def __init__(self, catalog: Catalog, *, console: Optional[Console] = None) -> None:
        self._catalog = catalog
        self._console = console or Console()

    def run(self) -> None:
        snapshot = collect_snapshot(self._catalog)
        console = self._console

        console.rule("[bold magenta]Course Catalog Overview")

        if snapshot.folder_count == 0 and not snapshot.root_materials:
            console.print(
                Panel(
                    "No folders or materials yet.\n"
                    "Use [bold]python run.py upload-material[/bold] to add the first file.",
                    border_style="yellow",
                    box=box.ROUNDED,
                )
            )
            return

        tree_panel = Panel(
            self._build_tree(snapshot),
            title="Materials",
            border_style="cyan",
            box=box.ROUNDED,
        )
        console.print(Columns([tree_panel, self._build_stats_panel(snapshot)], expand=True, equal=True))

    def _build_tree(self, snapshot: OverviewSnapshot) -> Tree:
        tree = Tree("[bold cyan]/", guide_style="cyan")
        pending = [(tree, folder) for folder in reversed(snapshot.folders)]
        while pending:
            parent_node, folder = pending.pop()
            node = parent_node.add(self._build_folder_label(folder.record))
            for material in folder.materials:
                node.add(self._build_material_label(material))
            if not folder.materials and not folder.children:
                node.add("[dim]Empty folder")
            pending.extend((node, child) for child in reversed(folder.children))
        for material in snapshot.root_materials:
            tree.add(self._build_material_label(material))
        return tree

    @staticmethod
    def _build_folder_label(record: CategoryRecord) -> Text:
        label = Text(f"📁 {record.name}", style="bold")
        if record.description:
            label.append("\n")
            label.append(record.description, style="dim")
        return label

    @staticmethod
    def _build_material_label(record: MaterialRecord) -> Text:
        label = Text(f"📄 {record.title}", style="white")
        if record.uploader is not None:
            label.append("  ")
            label.append(f"by {record.uploader.name}", style="green")
        return label

    @staticmethod
    def _build_stats_panel(snapshot: OverviewSnapshot) -> Panel:
        metrics = Table.grid(expand=True, padding=(0, 1))
        metrics.add_column(style="dim")
        metrics.add_column(justify="right", style="bold")
        metrics.add_row("Folders", str(snapshot.folder_count))
        metrics.add_row("Materials", str(snapshot.material_count))

        media = Table.grid(expand=True, padding=(0, 1))
        media.add_column(style="dim")
        media.add_column(justify="right", style="bold")
        media.add_row("Sourcecasts", str(snapshot.sourcecast_count))
        media.add_row("Groups", str(snapshot.group_count))

        body = Group(metrics, Rule(style="magenta"), media)
        return Panel(body, title="At a glance", border_style="magenta", box=box.ROUNDED)


__all__ = ["FolderOverview", "ModernUI", "OverviewSnapshot", "collect_snapshot"]
