"""Federated Search Engine"""

from .budget import BudgetConfig
from .orchestrator import FederatedSearchEngine
from .ranking import is_available, paginate, relevance_score, sort_items
from .result import BranchOutcome, BranchStatus

__all__ = [
    "BranchOutcome",
    "BranchStatus",
    "BudgetConfig",
    "FederatedSearchEngine",
    "is_available",
    "paginate",
    "relevance_score",
    "sort_items",
]
