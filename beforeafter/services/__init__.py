"""Business logic services."""

from .credits import CreditService
from .enhancement import EnhancementService
from .projects import ProjectService
from .renderer import CompositingRenderer
from .slots import EnhancementHistoryPolicy, SlotStore

__all__ = [
    "CompositingRenderer",
    "CreditService",
    "EnhancementHistoryPolicy",
    "EnhancementService",
    "ProjectService",
    "SlotStore",
]
