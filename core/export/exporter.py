# Path: core/export/exporter.py
# Purpose: Copy the selected target file of every source into an output tree.
# Layer: core/export.
# Details: Mirrors the source layout, names files after the source and target group, writes optional no-match placeholders.

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Dict, Optional

from PIL import Image
from pydantic import BaseModel, Field

from core.models.domain import ImageRecord, Project
from core.storage.base import MatchStore
from core.tasks.context import TaskContext

logger = logging.getLogger(__name__)

PLACEHOLDER_COLOR = (128, 128, 128)


class ExportOptions(BaseModel):
    """Options accepted by an export job."""

    output_path: Optional[Path] = Field(default=None, description="Destination root; defaults next to the source root.")
    use_placeholder: bool = Field(default=False, description="Write a grey image for sources marked as no match.")
    only_confirmed: bool = Field(default=False, description="Export only sources a reviewer confirmed.")


@dataclass
class ExportReport:
    output_path: Path
    copied: int = 0
    placeholders: int = 0
    failed: int = 0


def default_output_path(project: Project) -> Path:
    return project.source_path.parent / f"{project.name}_Output"


class Exporter:
    """Write each source's chosen matches to ``<output>/<source dir>/<stem>_<group><ext>``.

    Files are copied byte for byte; no format conversion takes place.
    """

    def __init__(self, store: MatchStore) -> None:
        self.store = store

    def run(self, project_id: int, options: ExportOptions, ctx: TaskContext) -> ExportReport:
        project = self.store.get_project(project_id)
        output = options.output_path or default_output_path(project)
        output.mkdir(parents=True, exist_ok=True)
        group_names = {group.id: group.name for group in project.targets}

        sources = self.store.list_sources(project_id)
        if options.only_confirmed:
            sources = [s for s in sources if s.confirmed]

        report = ExportReport(output_path=output)
        ctx.progress.reset(len(sources))
        logger.info("Exporting %d source file(s) of project %d to %s", len(sources), project_id, output)

        for source in sources:
            ctx.raise_if_cancelled()
            try:
                self._export_source(source, output, group_names, options, report)
            except OSError as exc:
                report.failed += 1
                logger.error("Failed to export %s: %s", source.relative_path, exc)
            ctx.progress.advance(source.relative_path)

        logger.info(
            "Export finished: %d copied, %d placeholder(s), %d failed",
            report.copied,
            report.placeholders,
            report.failed,
        )
        return report

    def _export_source(
        self,
        source: ImageRecord,
        output: Path,
        group_names: Dict[int, str],
        options: ExportOptions,
        report: ExportReport,
    ) -> None:
        relative = PurePosixPath(source.relative_path)
        out_dir = output.joinpath(*relative.parent.parts)
        candidates = {c.id: c for c in self.store.list_candidates(source.id)}

        for selection in self.store.list_selections(source.id):
            group = group_names.get(selection.target_id, str(selection.target_id))
            if selection.no_match:
                if options.use_placeholder:
                    out_dir.mkdir(parents=True, exist_ok=True)
                    placeholder = Image.new("RGB", (max(1, source.width), max(1, source.height)), PLACEHOLDER_COLOR)
                    placeholder.save(out_dir / f"{relative.stem}_{group}_no_match.png")
                    report.placeholders += 1
                continue

            candidate = candidates.get(selection.candidate_id) if selection.candidate_id is not None else None
            if candidate is None:
                continue
            out_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(candidate.file_path, out_dir / f"{relative.stem}_{group}{candidate.file_path.suffix}")
            report.copied += 1
