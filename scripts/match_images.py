# Path: scripts/match_images.py
# Purpose: CLI tool to match a source folder against one or more target folders.
# Layer: scripts.
# Details: Wires settings, logging, and MatchingService together and shows job progress with tqdm.

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import List, Tuple

from tqdm import tqdm

from config import AppSettings, ScoreWeights, setup_logging
from core.export import ExportOptions
from core.models import ProjectStatus, TaskKind
from core.service import MatchingService


def parse_target(value: str) -> Tuple[str, Path]:
    """Parse ``name=path``; a bare path uses the folder name as group name."""

    if "=" in value:
        name, path = value.split("=", 1)
    else:
        name, path = Path(value).name, value
    if not name:
        raise argparse.ArgumentTypeError(f"Target group name missing in '{value}'")
    return name, Path(path)


def follow(service: MatchingService, project_id: int, kind: TaskKind, poll_interval: float = 0.2) -> None:
    """Block until the job exits, mirroring its polled progress in a tqdm bar."""

    with tqdm(desc=kind.value, unit="file") as bar:
        while service.is_running(project_id, kind):
            progress = service.progress(project_id, kind)
            bar.total = progress.total
            bar.n = progress.processed
            if progress.current_item:
                bar.set_postfix_str(progress.current_item, refresh=False)
            bar.refresh()
            time.sleep(poll_interval)
        progress = service.progress(project_id, kind)
        bar.total = progress.total
        bar.n = progress.processed
        bar.refresh()


def print_matches(service: MatchingService, project_id: int, top: int) -> None:
    project = service.get_project(project_id)
    names = {group.id: group.name for group in project.targets}
    for matches in service.iter_matches(project_id):
        print(matches.source.relative_path)
        for target_id, candidates in matches.candidates.items():
            best = ", ".join(f"{c.file_path.name} ({c.score:.1f})" for c in candidates[:top])
            print(f"  [{names.get(target_id, target_id)}] {best}")


def main(argv: List[str] | None = None) -> int:
    """Index, compare, and optionally export a project."""

    parser = argparse.ArgumentParser(description="Find look-alike images across folders")
    parser.add_argument("--source", type=Path, required=True, help="Folder holding the source images")
    parser.add_argument(
        "--target",
        dest="targets",
        type=parse_target,
        action="append",
        required=True,
        help="Target group as name=folder; repeat for several groups",
    )
    parser.add_argument("--name", default=None, help="Project name (defaults to the source folder name)")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path")
    parser.add_argument("--workers", type=int, default=None, help="Concurrent workers per stage")
    parser.add_argument("--histogram-weight", type=float, default=0.0, help="Share of the score taken by colour histograms")
    parser.add_argument("--dimension-filter", action="store_true", help="Only score targets of similar size")
    parser.add_argument("--top", type=int, default=3, help="Candidates printed per target group")
    parser.add_argument("--export", type=Path, default=None, help="Copy auto-selected matches into this folder")
    parser.add_argument("--placeholder", action="store_true", help="Write placeholders for no-match selections on export")
    args = parser.parse_args(argv)

    settings = AppSettings.from_env()
    if args.db is not None:
        settings.database_path = args.db
    if args.workers is not None:
        settings.worker_count = args.workers
    settings.comparison.weights = ScoreWeights(
        phash_weight=1.0 - args.histogram_weight,
        histogram_weight=args.histogram_weight,
    )
    settings.comparison.use_dimension_filter = args.dimension_filter
    setup_logging(settings.log_level)

    service = MatchingService.from_settings(settings)
    project = service.create_project(args.name or args.source.name, args.source, args.targets)

    try:
        service.start_indexing(project.id)
        follow(service, project.id, TaskKind.INDEXING)

        project = service.get_project(project.id)
        if project.status is not ProjectStatus.COMPLETED:
            print(f"Project {project.id} ended as '{project.status.value}': {project.error_message or ''}", file=sys.stderr)
            return 1
        print_matches(service, project.id, args.top)

        if args.export is not None:
            service.start_export(project.id, ExportOptions(output_path=args.export, use_placeholder=args.placeholder))
            follow(service, project.id, TaskKind.EXPORT)
            print(f"Exported matches of project {project.id} to {args.export}")
    except KeyboardInterrupt:
        service.cancel_project(project.id)
        print("Cancelled", file=sys.stderr)
        return 130
    finally:
        service.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
