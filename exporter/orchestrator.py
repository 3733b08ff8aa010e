"""
Purpose: Export every experiment and dataset of a project to CSV files.
Description: Lists a project's entities, lays out `<root>/<project>/{experiments,datasets}/`,
and streams each entity's records to its own CSV one entity at a time. A failure on one
entity is logged and recorded; the remaining entities still run.
Key Functions/Classes: `ProjectExporter`, `export_project`, `sanitize_filename`,
`create_project_directories`.

AIDEV-NOTE: Entities are exported sequentially so request pressure never multiplies.
"""

from __future__ import annotations

import random
import re
import time
from contextlib import closing
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from .config import ExportSession
from .constants import DATASET, ENTITY_KINDS, EXPERIMENT, KIND_DIRECTORIES
from .csv_stream import stream_to_file
from .exporter_logging import log_error, log_event, log_info, log_summary
from .models import Entity, EntityOutcome, ExportReport, ExportResult, Page, Project
from .pagination import fetch_pages
from .rate_limiter import DEFAULT_RETRY, Sleeper, with_retry


_UNSAFE = re.compile(r"[^a-z0-9]", re.IGNORECASE)
_RUNS = re.compile(r"_+")


class ExportApi(Protocol):
    def list_entities(self, kind: str, project_id: str) -> List[Entity]: ...

    def fetch_page(self, kind: str, entity_id: str, cursor: Optional[str] = None,
                   limit: int = ...) -> Page: ...


def sanitize_filename(name: str, entity_id: Optional[str] = None) -> str:
    """Make `name` filesystem-safe; append the first 8 chars of `entity_id` when given.

    >>> sanitize_filename("My Project! #1", "abcdef1234567890")
    'my_project_1_abcdef12'
    """
    safe = _RUNS.sub("_", _UNSAFE.sub("_", name).lower()).strip("_")
    if not safe:
        safe = entity_id[:8] if entity_id else "unnamed"
    if entity_id:
        return f"{safe}_{entity_id[:8]}"
    return safe


@dataclass
class ProjectDirectories:
    project_dir: Path
    experiments_dir: Path
    datasets_dir: Path

    def for_kind(self, kind: str) -> Path:
        return self.experiments_dir if kind == EXPERIMENT else self.datasets_dir


def create_project_directories(root: str | Path, project_name: str) -> ProjectDirectories:
    project_dir = Path(root) / sanitize_filename(project_name)
    dirs = ProjectDirectories(
        project_dir=project_dir,
        experiments_dir=project_dir / KIND_DIRECTORIES[EXPERIMENT],
        datasets_dir=project_dir / KIND_DIRECTORIES[DATASET],
    )
    dirs.experiments_dir.mkdir(parents=True, exist_ok=True)
    dirs.datasets_dir.mkdir(parents=True, exist_ok=True)
    return dirs


class ProjectExporter:
    def __init__(
        self,
        client: ExportApi,
        session: ExportSession,
        *,
        sleep: Sleeper = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.client = client
        self.session = session
        self._sleep = sleep
        self._rng = rng

    def list_project_entities(self, project: Project) -> Dict[str, List[Entity]]:
        entities: Dict[str, List[Entity]] = {}
        for kind in ENTITY_KINDS:
            log_info(f"Fetching {kind}s for project: {project.display_name}...")
            entities[kind] = with_retry(
                partial(self.client.list_entities, kind, project.id),
                DEFAULT_RETRY,
                sleep=self._sleep,
                rng=self._rng,
            )
        return entities

    def export_entity(self, kind: str, entity: Entity, directory: Path) -> Tuple[Path, ExportResult]:
        path = directory / f"{sanitize_filename(entity.display_name, entity.id)}.csv"
        pagination = self.session.pagination
        issue_page = partial(self._issue_page, kind, entity.id, pagination.page_limit)
        with closing(fetch_pages(issue_page, pagination, sleep=self._sleep, rng=self._rng)) as batches:
            result = stream_to_file(batches, path)
        return path, result

    def _issue_page(self, kind: str, entity_id: str, limit: int, cursor: Optional[str]) -> Page:
        return self.client.fetch_page(kind, entity_id, cursor, limit=limit)

    def export(self, project: Project, output_dir: Optional[str | Path] = None) -> ExportReport:
        root = output_dir if output_dir is not None else self.session.output_dir
        report = ExportReport(project_id=project.id, project_name=project.display_name)
        log_info(f"\nPreparing export for project: {project.display_name}...")

        entities = self.list_project_entities(project)
        experiments, datasets = entities[EXPERIMENT], entities[DATASET]
        log_info(f"\nFound {len(experiments)} experiment(s) and {len(datasets)} dataset(s)\n")

        if not experiments and not datasets:
            log_info("No data to export. Skipping directory creation.")
            return report

        dirs = create_project_directories(root, project.display_name)
        report.project_dir = str(dirs.project_dir)
        log_info(f"Created directory structure: {dirs.project_dir}")

        for kind in ENTITY_KINDS:
            items = entities[kind]
            for index, entity in enumerate(items, 1):
                log_info(f"[{index}/{len(items)}] Exporting {kind}: {entity.display_name}...")
                log_event("entity_start", details={"kind": kind, "id": entity.id, "name": entity.display_name})
                outcome = EntityOutcome(kind=kind, entity_id=entity.id, name=entity.display_name)
                try:
                    path, result = self.export_entity(kind, entity, dirs.for_kind(kind))
                except Exception as exc:
                    outcome.error = str(exc) or type(exc).__name__
                    report.failed.append(outcome)
                    log_error(f"✗ Failed to export {kind} {entity.display_name}: {outcome.error}")
                    log_event("entity_failed", details={"kind": kind, "id": entity.id, "error": outcome.error})
                    continue
                outcome.result = result
                if result.record_count:
                    outcome.path = str(path)
                report.exported.append(outcome)
                log_event("entity_done", details={"kind": kind, "id": entity.id,
                                                  "records": result.record_count})

        self._log_report(report, dirs)
        return report

    def _log_report(self, report: ExportReport, dirs: ProjectDirectories) -> None:
        empty = len(report.empty)
        log_info("\n✓ Export complete!")
        log_info(f"  Project folder: {dirs.project_dir}")
        log_info(f"  Experiments: {dirs.experiments_dir}")
        log_info(f"  Datasets: {dirs.datasets_dir}")
        log_info(f"  Exported: {len(report.exported) - empty} entities, {report.total_records} records")
        if empty:
            log_info(f"  Empty (no file written): {empty}")
        if report.failed:
            log_info(f"  Failed: {len(report.failed)}")
            for outcome in report.failed:
                log_info(f"    - {outcome.kind} {outcome.name} ({outcome.entity_id}): {outcome.error}")
        log_summary(
            project=report.project_name,
            exported=len(report.exported) - empty,
            empty=empty,
            failed=len(report.failed),
            records=report.total_records,
            failures=[{"kind": o.kind, "id": o.entity_id, "error": o.error} for o in report.failed],
        )


def export_project(
    client,
    session: ExportSession,
    project: Optional[str] = None,
    *,
    sleep: Sleeper = time.sleep,
) -> ExportReport:
    """Resolve `project` (name or id, defaulting to the session's) and export it."""
    name_or_id = project or session.project
    if not name_or_id:
        raise ValueError("No project selected")
    resolved = client.resolve_project(name_or_id, sleep=sleep)
    return ProjectExporter(client, session, sleep=sleep).export(resolved)
