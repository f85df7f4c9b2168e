"""API clients for external services."""

from .fal import FalClient
from .supabase import SupabaseClient, SupabaseError

__all__ = ["FalClient", "SupabaseClient", "SupabaseError"]
