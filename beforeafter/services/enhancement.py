"""AI enhancement jobs: submit to the fal.ai queue, poll, meter credits."""

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Any, Protocol

import requests

from ..clients.fal import FalClient
from ..config import FAL_MODELS, MAX_PROCESSING_MS, TEMP_UPLOADS_BUCKET, TRANSIENT_STATUS_CODES
from ..errors import (
    BeforeAfterError,
    EnhancementTimeoutError,
    InsufficientCreditsError,
    NotFoundError,
    PermanentRemoteError,
    TransientRemoteError,
    UploadError,
    ValidationError,
)
from ..models.job import AIGenerationJob, JobErrorCode, JobStatus, JobView
from ..models.session import UploadSession
from ..models.slot import AIResult, BackgroundInfo, FeatureKey, SlotState
from ..stores.jobs import JobStore
from ..utils import content_type_for, file_extension, is_remote_url, read_local_file, utc_now
from .credits import CreditService
from .slots import SlotStore

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Processing timeout - please try again"

COLOR_NAMES = {
    "FFFFFF": "pure white",
    "FAFAFA": "off-white",
    "F5F5F5": "light gray",
    "E5E5E5": "soft gray",
    "CCCCCC": "medium gray",
    "808080": "gray",
    "333333": "dark gray",
    "000000": "pure black",
    "FDF5E6": "cream",
    "FFE4E1": "blush pink",
    "FFDAB9": "peach",
    "FFC0CB": "pink",
    "FF69B4": "hot pink",
    "DC143C": "crimson",
    "FF0000": "red",
    "FF7F50": "coral",
    "FFA500": "orange",
    "FFD700": "gold",
    "FFFF00": "yellow",
    "32CD32": "lime",
    "228B22": "forest green",
    "008000": "green",
    "9DC183": "sage green",
    "40E0D0": "turquoise",
    "87CEEB": "sky blue",
    "ADD8E6": "light blue",
    "0000FF": "blue",
    "00008B": "dark blue",
    "191970": "midnight blue",
    "4B0082": "indigo",
    "EE82EE": "violet",
    "FF00FF": "magenta",
    "E6E6FA": "lavender",
}

_LIGHT_BACKGROUNDS = {"FFFFFF", "FAFAFA", "F5F5F5"}
_DARK_BACKGROUNDS = {"000000", "333333", "1A1A1A"}


class Uploader(Protocol):
    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str: ...


def hex_color_to_prompt(hex_color: str) -> tuple[str, str]:
    """Describe a solid background color for the background-change model.

    Returns:
        (prompt, negative_prompt)
    """
    hex_value = hex_color.lstrip("#").upper()
    name = COLOR_NAMES.get(hex_value, f"#{hex_value} color")

    if hex_value in _LIGHT_BACKGROUNDS:
        return (
            f"clean {name} background, solid {name}, studio lighting, uniform color, professional, seamless",
            "patterns, textures, gradients, shadows, objects, distracting elements, text, watermarks",
        )
    if hex_value in _DARK_BACKGROUNDS:
        return (
            f"solid {name} background, pure {name}, dark studio, uniform color, professional, seamless",
            "patterns, textures, gradients, reflections, objects, distracting elements, text, watermarks",
        )
    return (
        f"solid {name} background, uniform {name} color, clean, professional studio lighting, seamless, flat color",
        "patterns, textures, gradients, shadows, objects, distracting elements, text, watermarks, noise",
    )


def build_model_input(feature_key: str, image_url: str, options: dict[str, Any] | None = None) -> dict[str, Any]:
    """Model input for a feature: defaults, overridden by options["params"]."""
    options = options or {}
    defaults = FAL_MODELS[feature_key]["default_params"]
    params = options.get("params") or {}

    match FeatureKey(feature_key):
        case FeatureKey.AUTO_QUALITY:
            return {"image_url": image_url, **defaults, **params}
        case FeatureKey.BACKGROUND_REMOVE:
            payload = {"image_url": image_url, **defaults}
            for key in ("operating_resolution", "output_format"):
                if key in params:
                    payload[key] = params[key]
            return payload
        case FeatureKey.BACKGROUND_REPLACE:
            prompt = defaults["prompt"]
            negative_prompt = defaults["negative_prompt"]
            # solid_color wins over custom_prompt
            if options.get("solid_color"):
                prompt, negative_prompt = hex_color_to_prompt(options["solid_color"])
            elif options.get("custom_prompt"):
                prompt = options["custom_prompt"]
            return {
                "image_url": image_url,
                "prompt": prompt,
                "negative_prompt": negative_prompt,
                "output_format": "png",
                "num_inference_steps": defaults["num_inference_steps"],
                "guidance_scale": defaults["guidance_scale"],
            }


def _feature(feature_key: str) -> FeatureKey:
    try:
        return FeatureKey(feature_key)
    except ValueError:
        raise ValidationError(f"Unknown feature: {feature_key}")


def extract_output_url(data: dict[str, Any]) -> str | None:
    """Result URL from any of the shapes the queue returns."""
    for key in ("image", "output"):
        value = data.get(key)
        if isinstance(value, dict) and value.get("url"):
            return value["url"]
    images = data.get("images")
    if isinstance(images, list) and images and isinstance(images[0], dict) and images[0].get("url"):
        return images[0]["url"]
    return data.get("url") or None


class EnhancementService:
    """Owns the job lifecycle: queued -> processing -> completed | failed.

    Credits are deducted when a job is submitted and refunded once if it fails.
    Polling is caller-driven; nothing here runs on a timer.
    """

    def __init__(
        self,
        fal: FalClient,
        jobs: JobStore,
        credits: CreditService,
        uploader: Uploader,
        clock: Callable[[], datetime] = utc_now,
        temp_bucket: str = TEMP_UPLOADS_BUCKET,
        max_processing_ms: int = MAX_PROCESSING_MS,
    ):
        self.fal = fal
        self.jobs = jobs
        self.credits = credits
        self.uploader = uploader
        self.clock = clock
        self.temp_bucket = temp_bucket
        self.max_processing_ms = max_processing_ms

    # ===== Submit =====

    def submit_enhancement(
        self,
        session: UploadSession,
        slot_store: SlotStore,
        slot_id: str,
        feature_key: str,
        options: dict[str, Any] | None = None,
    ) -> str:
        """
        Start an enhancement for the image currently in a slot.

        Args:
            session: Upload session of the requesting user
            slot_store: Editor state holding the slot
            slot_id: Slot to enhance
            feature_key: auto_quality | background_remove | background_replace
            options: solid_color, custom_prompt, params, project_id

        Returns:
            Job id. A previous completed job is returned when the same image
            was already enhanced with this feature.
        """
        feature = _feature(feature_key)
        data = slot_store.get(slot_id)
        if data is None:
            raise ValidationError(f"Slot {slot_id} has no image to enhance")

        image_url = self._ensure_remote(session, slot_store, slot_id, data.uri)

        slot_store.set_slot_state(slot_id, SlotState.PROCESSING)
        try:
            return self.submit_image(session, image_url, feature.value, options, slot_id=slot_id)
        except InsufficientCreditsError:
            slot_store.set_slot_state(slot_id, SlotState.READY)
            raise
        except BeforeAfterError as e:
            logger.error(f"Enhancement submit failed for {slot_id}: {e}")
            slot_store.set_slot_state(slot_id, SlotState.ERROR, error_message="AI service temporarily unavailable")
            raise

    def submit_image(
        self,
        session: UploadSession,
        image_url: str,
        feature_key: str,
        options: dict[str, Any] | None = None,
        slot_id: str | None = None,
    ) -> str:
        """Submit an already-uploaded image. Returns the job id."""
        options = options or {}
        feature = _feature(feature_key)
        if not is_remote_url(image_url):
            raise ValidationError(f"Image must be uploaded first: {image_url}")

        existing = self.jobs.find_completed(session.user_id, image_url, feature.value)
        if existing:
            logger.info(f"Reusing completed job {existing.id} for {feature.value}")
            return existing.id

        # The deduct is the real gate; check alone races with other submits
        check = self.credits.check(session.user_id, feature.value)
        if not check.has_credits or not self.credits.deduct(session.user_id, check.credits_required):
            raise InsufficientCreditsError(check.credits_remaining, check.credits_required)

        model_id = FAL_MODELS[feature.value]["model"]
        payload = build_model_input(feature.value, image_url, options)
        job = AIGenerationJob(
            id=str(uuid.uuid4()),
            user_id=session.user_id,
            feature_key=feature.value,
            status=JobStatus.QUEUED,
            input_image_url=image_url,
            created_at=self.clock(),
            model_id=model_id,
            slot_id=slot_id,
            project_id=options.get("project_id"),
            credits_charged=check.credits_required,
        )

        try:
            request_id = self.fal.submit(model_id, payload)
        except PermanentRemoteError as e:
            self.credits.refund(session.user_id, job.credits_charged)
            self.jobs.create(replace(
                job,
                status=JobStatus.FAILED,
                error_message=str(e),
                error_code=JobErrorCode.SUBMIT_ERROR.value,
                completed_at=self.clock(),
                credits_charged=0,
            ))
            logger.error(f"Submit failed for job {job.id}: {e}")
            raise

        try:
            job = self.jobs.create(replace(job, remote_request_id=request_id))
        except BeforeAfterError:
            self.credits.refund(session.user_id, job.credits_charged)
            raise
        logger.info(f"Submitted job {job.id} ({feature.value}) as {request_id}")
        return job.id

    def _ensure_remote(self, session: UploadSession, slot_store: SlotStore, slot_id: str, uri: str) -> str:
        """Upload a device-local image to the temp bucket so the queue can fetch it."""
        if is_remote_url(uri):
            return uri

        slot_store.set_slot_state(slot_id, SlotState.UPLOADING)
        ext = file_extension(uri)
        path = f"{session.user_id}/{uuid.uuid4().hex}.{ext}"
        try:
            url = self.uploader.upload(self.temp_bucket, path, read_local_file(uri), content_type_for(ext))
        except (BeforeAfterError, OSError) as e:
            slot_store.set_slot_state(slot_id, SlotState.ERROR, error_message="Upload failed")
            raise UploadError(uri, str(e)) from e
        slot_store.set_slot_state(slot_id, SlotState.READY)
        return url

    # ===== Poll =====

    def poll_enhancement(self, job_id: str, user_id: str | None = None) -> JobView:
        """Advance a job by at most one remote check and return its view.

        Transient remote trouble never changes the stored job. When user_id is
        given, another user's job is reported as not found.
        """
        job = self.jobs.get(job_id)
        if job is None or (user_id is not None and job.user_id != user_id):
            raise NotFoundError(f"Job {job_id} not found")
        if job.status.is_terminal:
            return JobView.of(job)

        now = self.clock()
        elapsed_ms = int((now - job.created_at).total_seconds() * 1000)
        if elapsed_ms > self.max_processing_ms:
            logger.error(f"Job {job_id} timed out after {elapsed_ms}ms")
            return self._fail(job, JobErrorCode.TIMEOUT, TIMEOUT_MESSAGE)

        if not job.remote_request_id or not job.model_id:
            raise ValidationError(f"Job {job_id} has no remote request")

        try:
            response = self.fal.status(job.model_id, job.remote_request_id)
        except TransientRemoteError as e:
            logger.warning(f"Transient poll failure for {job_id}: {e}")
            return JobView(status=job.status)

        status_code = response.status_code
        if status_code in TRANSIENT_STATUS_CODES:
            text = response.text
            logger.info(f"Transient {status_code} for {job_id}: {text[:100]}")
            queued = "IN_QUEUE" in text or "queued" in text
            return JobView(status=JobStatus.QUEUED if queued else JobStatus.PROCESSING)

        if not response.ok:
            logger.error(f"Permanent error {status_code} for {job_id}: {response.text[:200]}")
            return self._fail(job, JobErrorCode.REMOTE_ERROR, f"Processing failed ({status_code})")

        try:
            data = response.json()
        except requests.JSONDecodeError:
            logger.warning(f"Unparseable result body for {job_id}")
            return JobView(status=JobStatus.PROCESSING)

        remote_status = data.get("status")
        if remote_status == "IN_QUEUE":
            return self._advance(job, JobStatus.QUEUED)
        if remote_status == "IN_PROGRESS":
            return self._advance(job, JobStatus.PROCESSING)
        if remote_status == "FAILED":
            error = data.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else None
            return self._fail(job, JobErrorCode.REMOTE_PROCESSING_ERROR, message or "Processing failed")

        output_url = extract_output_url(data)
        if not output_url:
            return self._advance(job, JobStatus.PROCESSING)

        return self._complete(job, output_url, elapsed_ms, now)

    def _advance(self, job: AIGenerationJob, status: JobStatus) -> JobView:
        """Move forward only; an older remote status never rolls a job back."""
        if not job.status.can_advance_to(status):
            return JobView(status=job.status)
        self.jobs.transition(job.id, {job.status}, replace(job, status=status))
        return JobView.of(self.jobs.get(job.id))

    def _fail(self, job: AIGenerationJob, code: JobErrorCode, message: str) -> JobView:
        failed = replace(
            job,
            status=JobStatus.FAILED,
            error_message=message,
            error_code=code.value,
            completed_at=self.clock(),
        )

        def refund(committed: AIGenerationJob) -> None:
            if committed.credits_charged:
                self.credits.refund(committed.user_id, committed.credits_charged)

        if self.jobs.transition(job.id, {JobStatus.QUEUED, JobStatus.PROCESSING}, failed, on_commit=refund):
            logger.info(f"Job {job.id} failed ({code.value}), refunded {job.credits_charged} credits")
        return JobView.of(self.jobs.get(job.id))

    def _complete(self, job: AIGenerationJob, output_url: str, elapsed_ms: int, now: datetime) -> JobView:
        completed = replace(
            job,
            status=JobStatus.COMPLETED,
            output_url=output_url,
            processing_time_ms=elapsed_ms,
            completed_at=now,
        )
        if self.jobs.transition(job.id, {JobStatus.QUEUED, JobStatus.PROCESSING}, completed):
            logger.info(f"Job {job.id} completed in {elapsed_ms}ms")
        return JobView.of(self.jobs.get(job.id))

    def wait_for_completion(
        self,
        job_id: str,
        interval: float = 2.0,
        max_wait: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> JobView:
        """Poll until the job is terminal. Raises EnhancementTimeoutError past max_wait seconds."""
        waited = 0.0
        while True:
            view = self.poll_enhancement(job_id)
            if view.status.is_terminal:
                return view
            if max_wait is not None and waited >= max_wait:
                raise EnhancementTimeoutError(f"Job {job_id} still {view.status.value} after {waited:.0f}s")
            sleep(interval)
            waited += interval

    def job_history(self, user_id: str) -> list[AIGenerationJob]:
        """A user's jobs, newest first."""
        return self.jobs.list_for_user(user_id)

    # ===== Results =====

    def build_ai_result(self, job: AIGenerationJob, background_info: BackgroundInfo | None = None) -> AIResult:
        """Slot update for a completed job."""
        if job.status is not JobStatus.COMPLETED or not job.output_url:
            raise ValidationError(f"Job {job.id} is not completed")

        transparent_png_url = None
        if job.feature_key == FeatureKey.BACKGROUND_REMOVE.value:
            transparent_png_url = job.output_url
            background_info = background_info or BackgroundInfo.transparent()

        return AIResult(
            uri=job.output_url,
            feature_key=job.feature_key,
            transparent_png_url=transparent_png_url,
            background_info=background_info,
        )

    def apply_to_slot(
        self,
        slot_store: SlotStore,
        job_id: str,
        background_info: BackgroundInfo | None = None,
        slot_id: str | None = None,
    ) -> JobView:
        """Reflect a job's current outcome on a slot (the job's own slot by default).

        Completed jobs are applied; failed jobs put the slot in the error state.
        """
        job = self.jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        target = slot_id or job.slot_id
        if target is None:
            raise ValidationError(f"Job {job_id} is not tied to a slot")

        if job.status is JobStatus.COMPLETED:
            slot_store.apply_ai_result(target, self.build_ai_result(job, background_info))
        elif job.status is JobStatus.FAILED:
            slot_store.set_slot_state(target, SlotState.ERROR, error_message=job.error_message)
        return JobView.of(job)
