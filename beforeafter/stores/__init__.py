"""Stores for jobs, credits, projects and overlays."""

from .credits import CreditStore, InMemoryCreditStore, SupabaseCreditStore
from .jobs import InMemoryJobStore, JobStore, SupabaseJobStore
from .overlays import FileOverlayStore
from .projects import InMemoryProjectStore, ProjectStore, SupabaseProjectStore

__all__ = [
    "CreditStore",
    "FileOverlayStore",
    "InMemoryCreditStore",
    "InMemoryJobStore",
    "InMemoryProjectStore",
    "JobStore",
    "ProjectStore",
    "SupabaseCreditStore",
    "SupabaseJobStore",
    "SupabaseProjectStore",
]
