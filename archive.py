"""Local JSON archive of research payloads and finished reports.

Each weekly run writes two kinds of files under ARCHIVE_DIR:
    research-<week_start>-<timestamp>.json  raw Tavily results (pillars + trending)
    report-<week_start>-<timestamp>.json    the complete WeeklyReport

Files are never overwritten; re-running a week adds a new timestamped entry.
"""

import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def _write_json(path: Path, payload: Any) -> None:
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False, default=str), encoding="utf-8")


def _jsonable(data: Any) -> Any:
    """Convert pydantic models (possibly nested in dicts/lists) to JSON data."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, dict):
        return {str(k): _jsonable(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [_jsonable(v) for v in data]
    return data


class ResearchArchive:
    """Timestamped JSON files for later inspection and re-analysis."""

    def __init__(self, archive_dir: Path | str):
        self.archive_dir = Path(archive_dir)

    def _save(self, kind: str, week_start: date, payload: Any) -> Path:
        self.archive_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        path = self.archive_dir / f"{kind}-{week_start.isoformat()}-{stamp}.json"
        _write_json(path, {
            "kind": kind,
            "week_start": week_start.isoformat(),
            "archived_at": datetime.now(timezone.utc).isoformat(),
            "data": _jsonable(payload),
        })
        logger.debug("Archived %s | path=%s", kind, path)
        return path

    def save_raw_research(self, week_start: date, data: Any) -> Path:
        return self._save("research", week_start, data)

    def save_report_payload(self, week_start: date, report: Any) -> Path:
        return self._save("report", week_start, report)

    def list_entries(self, kind: str | None = None) -> list[dict[str, Any]]:
        """Archived files, newest first."""
        if not self.archive_dir.exists():
            return []
        entries = []
        for path in self.archive_dir.glob("*.json"):
            entry_kind, _, rest = path.stem.partition("-")
            if kind and entry_kind != kind:
                continue
            entries.append({
                "kind": entry_kind,
                "week_start": rest[:10],
                "path": str(path),
                "size": path.stat().st_size,
            })
        return sorted(entries, key=lambda e: e["path"], reverse=True)

    def load(self, path: Path | str) -> dict[str, Any]:
        return json.loads(Path(path).read_text(encoding="utf-8"))
