"""Overlay persistence. Overlays are kept locally as one JSON file per project."""

import json
import logging
from pathlib import Path

from ..config import OVERLAYS_DIR
from ..errors import ValidationError
from ..models.overlay import Overlay, overlay_from_dict, overlay_to_dict

logger = logging.getLogger(__name__)


class FileOverlayStore:
    def __init__(self, directory: str | Path = OVERLAYS_DIR):
        self.directory = Path(directory)

    def _path(self, project_id: str) -> Path:
        return self.directory / f"overlays_{project_id}.json"

    def save(self, project_id: str, overlays: list[Overlay]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        data = [overlay_to_dict(overlay) for overlay in overlays]
        self._path(project_id).write_text(json.dumps(data), encoding="utf-8")

    def load(self, project_id: str) -> list[Overlay]:
        """Missing file means no overlays. Unreadable entries are skipped."""
        path = self._path(project_id)
        if not path.exists():
            return []
        raw = json.loads(path.read_text(encoding="utf-8"))

        overlays = []
        for entry in raw:
            try:
                overlays.append(overlay_from_dict(entry))
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.warning(f"Skipping malformed overlay in project {project_id}: {e}")
        return overlays

    def delete(self, project_id: str) -> None:
        self._path(project_id).unlink(missing_ok=True)
