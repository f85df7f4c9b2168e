"""Project persistence: upload local images, write the drafts row, migrate legacy rows."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any

from ..config import DRAFT_IMAGES_BUCKET, LEGACY_IMAGE_SIZE
from ..errors import BeforeAfterError, NotFoundError, UploadError, ValidationError
from ..models.overlay import Overlay
from ..models.project import LoadedProject, Project, ProjectRow
from ..models.session import UploadSession
from ..models.slot import (
    BackgroundInfo,
    BackgroundType,
    FeatureKey,
    ImageAdjustments,
    SlotAIState,
    SlotData,
    slots_to_dict,
)
from ..stores.overlays import FileOverlayStore
from ..stores.projects import ProjectStore, row_values
from ..utils import clean_path_segment, content_type_for, file_extension, is_remote_url, parse_iso, read_local_file
from .enhancement import Uploader

logger = logging.getLogger(__name__)

LEGACY_SLOT_COLUMNS = (("slot-before", "before_image_url"), ("slot-after", "after_image_url"))


class ProjectService:
    """Save, load and manage projects for one storage backend."""

    def __init__(
        self,
        store: ProjectStore,
        uploader: Uploader,
        overlays: FileOverlayStore,
        bucket: str = DRAFT_IMAGES_BUCKET,
    ):
        self.store = store
        self.uploader = uploader
        self.overlays = overlays
        self.bucket = bucket

    # ===== Save =====

    def save_project(
        self,
        session: UploadSession,
        template_id: str,
        slot_data: dict[str, SlotData | None],
        *,
        project_id: str | None = None,
        project_name: str | None = None,
        background_color: str | None = None,
        theme_color: str | None = None,
        rendered_preview_url: str | None = None,
        was_rendered_as_premium: bool = False,
        overlays: list[Overlay] | None = None,
    ) -> Project:
        """
        Save a project. Local images are uploaded first; the row is only
        written once every upload has succeeded.

        Raises:
            UploadError: Any image failed to upload (nothing is written)
        """
        if project_id is None:
            row = self.store.create(session.user_id, template_id, {"project_name": project_name})
            project_id = row.id
            logger.info(f"Created project {project_id} for user {session.user_id}")
        elif self.store.get(project_id) is None:
            raise NotFoundError(f"Project {project_id} not found")

        uploads = self._plan_uploads(project_id, slot_data)
        urls = self._upload_all(uploads)
        saved_slots = {
            slot_id: self._rewrite_uris(data, urls) if data else None
            for slot_id, data in slot_data.items()
        }

        values: dict[str, Any] = {
            "slot_data": slots_to_dict(saved_slots),
            "background_color": background_color,
            "theme_color": theme_color,
            "rendered_preview_url": rendered_preview_url,
            "was_rendered_as_premium": was_rendered_as_premium,
        }
        if project_name is not None:
            values["project_name"] = project_name
        row = self.store.update(project_id, values)

        if overlays is not None:
            self.overlays.save(project_id, overlays)

        logger.info(f"Saved project {project_id} ({len(uploads)} uploads)")
        return self._to_project(row, saved_slots)

    def _plan_uploads(self, project_id: str, slot_data: dict[str, SlotData | None]) -> dict[str, str]:
        """Local URI -> storage path. Each distinct local URI is uploaded once."""
        uploads: dict[str, str] = {}
        for slot_id, data in slot_data.items():
            if data is None:
                continue
            name = clean_path_segment(slot_id)
            candidates = [
                (data.uri, f"{project_id}/{name}.{file_extension(data.uri)}"),
                (data.ai.original_uri, f"{project_id}/{name}-original.{file_extension(data.ai.original_uri)}"),
            ]
            if data.ai.transparent_png_url:
                candidates.append((data.ai.transparent_png_url, f"{project_id}/{name}-transparent.png"))
            for uri, path in candidates:
                if uri and not is_remote_url(uri) and uri not in uploads:
                    uploads[uri] = path
        return uploads

    def _upload_one(self, uri: str, path: str) -> str:
        try:
            data = read_local_file(uri)
            return self.uploader.upload(self.bucket, path, data, content_type_for(file_extension(path)))
        except (BeforeAfterError, OSError) as e:
            raise UploadError(uri, str(e)) from e

    def _upload_all(self, uploads: dict[str, str]) -> dict[str, str]:
        """Upload in parallel. Returns local URI -> public URL."""
        if not uploads:
            return {}
        with ThreadPoolExecutor(max_workers=len(uploads)) as pool:
            futures = {uri: pool.submit(self._upload_one, uri, path) for uri, path in uploads.items()}
            # result() re-raises the first UploadError
            return {uri: future.result() for uri, future in futures.items()}

    @staticmethod
    def _rewrite_uris(data: SlotData, urls: dict[str, str]) -> SlotData:
        ai = replace(
            data.ai,
            original_uri=urls.get(data.ai.original_uri, data.ai.original_uri),
            transparent_png_url=urls.get(data.ai.transparent_png_url, data.ai.transparent_png_url)
            if data.ai.transparent_png_url else None,
        )
        return replace(data, uri=urls.get(data.uri, data.uri), ai=ai)

    # ===== Load =====

    def load_project(self, project_id: str) -> LoadedProject:
        row = self.store.get(project_id)
        if row is None:
            raise NotFoundError(f"Project {project_id} not found")

        if row.slot_data:
            slots = self._parse_slot_data(row)
        else:
            slots = migrate_legacy_row(row)
            if slots:
                logger.info(f"Migrated legacy project {project_id} ({len(slots)} slots)")

        return LoadedProject(self._to_project(row, slots), self.overlays.load(project_id))

    @staticmethod
    def _parse_slot_data(row: ProjectRow) -> dict[str, SlotData | None]:
        slots: dict[str, SlotData | None] = {}
        for slot_id, raw in row.slot_data.items():
            if not raw:
                slots[slot_id] = None
                continue
            try:
                slots[slot_id] = SlotData.from_dict(raw)
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.warning(f"Skipping malformed slot {slot_id} in project {row.id}: {e}")
        return slots

    # ===== Manage =====

    def list_projects(self, user_id: str) -> list[Project]:
        projects = []
        for row in self.store.list_for_user(user_id):
            slots = self._parse_slot_data(row) if row.slot_data else migrate_legacy_row(row)
            projects.append(self._to_project(row, slots))
        return projects

    def rename_project(self, project_id: str, name: str) -> Project:
        name = name.strip()
        if not name:
            raise ValidationError("Project name cannot be empty")
        row = self.store.update(project_id, {"project_name": name})
        return self._to_project(row, self._parse_slot_data(row) if row.slot_data else migrate_legacy_row(row))

    def delete_project(self, project_id: str) -> None:
        self.store.delete(project_id)
        self.overlays.delete(project_id)
        logger.info(f"Deleted project {project_id}")

    def duplicate_project(self, session: UploadSession, project_id: str) -> Project:
        """Copy a project row and its overlays. Stored images are shared, not re-uploaded."""
        source = self.store.get(project_id)
        if source is None:
            raise NotFoundError(f"Project {project_id} not found")

        values = row_values(source)
        values["project_name"] = f"{source.project_name or 'Untitled'} (Copy)"
        row = self.store.create(session.user_id, source.template_id, values)
        self.overlays.save(row.id, self.overlays.load(project_id))

        slots = self._parse_slot_data(row) if row.slot_data else migrate_legacy_row(row)
        return self._to_project(row, slots)

    @staticmethod
    def _to_project(row: ProjectRow, slots: dict[str, SlotData | None]) -> Project:
        return Project(
            id=row.id,
            user_id=row.user_id,
            template_id=row.template_id,
            project_name=row.project_name,
            slot_data=slots,
            background_color=row.background_color,
            theme_color=row.theme_color,
            rendered_preview_url=row.rendered_preview_url,
            was_rendered_as_premium=bool(row.was_rendered_as_premium),
            created_at=parse_iso(row.created_at),
            updated_at=parse_iso(row.updated_at),
        )


def _history_for(background: BackgroundInfo | None) -> tuple[str, ...]:
    """Older rows only kept the background, so the feature that produced it is inferred."""
    if background is None:
        return ()
    if background.type is BackgroundType.TRANSPARENT:
        return (FeatureKey.BACKGROUND_REMOVE.value,)
    return (FeatureKey.BACKGROUND_REPLACE.value,)


def migrate_legacy_row(row: ProjectRow) -> dict[str, SlotData | None]:
    """Build unified slot data from the per-field legacy columns.

    Best effort: entries that cannot be read are skipped with a warning.
    The inferred AI history is for display only.
    """
    width, height = LEGACY_IMAGE_SIZE
    adjustments = row.captured_image_adjustments or {}
    backgrounds = row.captured_image_background_info or {}
    slots: dict[str, SlotData | None] = {}

    for slot_id, url in (row.captured_image_urls or {}).items():
        if not url or not isinstance(url, str):
            logger.warning(f"Skipping legacy slot {slot_id} in project {row.id}: no image url")
            continue

        try:
            slot_adjustments = ImageAdjustments.from_dict(adjustments.get(slot_id))
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring malformed adjustments for {slot_id}: {e}")
            slot_adjustments = ImageAdjustments()

        background = None
        if backgrounds.get(slot_id):
            try:
                background = BackgroundInfo.from_dict(backgrounds[slot_id])
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.warning(f"Ignoring malformed background info for {slot_id}: {e}")

        slots[slot_id] = SlotData(
            uri=url,
            width=width,
            height=height,
            adjustments=slot_adjustments,
            ai=SlotAIState(
                original_uri=url,
                enhancements_applied=_history_for(background),
                transparent_png_url=url if background else None,
                background_info=background,
            ),
        )

    for slot_id, column in LEGACY_SLOT_COLUMNS:
        url = getattr(row, column)
        if url and slot_id not in slots:
            slots[slot_id] = SlotData(uri=url, width=width, height=height)

    return slots
