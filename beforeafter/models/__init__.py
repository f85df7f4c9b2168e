"""Data models."""

from .credits import CreditBalance, CreditCheck
from .job import AIGenerationJob, JobErrorCode, JobStatus, JobView
from .overlay import DateFormat, DateOverlay, LogoOverlay, Overlay, OverlayTransform, TextOverlay
from .project import LoadedProject, Project, ProjectRow
from .session import UploadSession
from .slot import (
    AIResult,
    BackgroundInfo,
    BackgroundType,
    FeatureKey,
    GradientConfig,
    ImageAdjustments,
    Slot,
    SlotAIState,
    SlotData,
    SlotState,
    SlotStateInfo,
)
from .template import Template
from .theme import ThemeLayer, ThemeLayerType

__all__ = [
    "AIGenerationJob",
    "AIResult",
    "BackgroundInfo",
    "BackgroundType",
    "CreditBalance",
    "CreditCheck",
    "DateFormat",
    "DateOverlay",
    "FeatureKey",
    "GradientConfig",
    "ImageAdjustments",
    "JobErrorCode",
    "JobStatus",
    "JobView",
    "LoadedProject",
    "LogoOverlay",
    "Overlay",
    "OverlayTransform",
    "Project",
    "ProjectRow",
    "Slot",
    "SlotAIState",
    "SlotData",
    "SlotState",
    "SlotStateInfo",
    "Template",
    "TextOverlay",
    "ThemeLayer",
    "ThemeLayerType",
    "UploadSession",
]
