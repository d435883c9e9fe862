"""Re-export all models so Base.metadata sees them."""

from virl.db.models.monthly_usage import MonthlyUsage
from virl.db.models.subscription_history import SubscriptionHistory
from virl.db.models.workspace import Workspace
from virl.db.models.workspace_member import WorkspaceMember

__all__ = [
    "MonthlyUsage",
    "SubscriptionHistory",
    "Workspace",
    "WorkspaceMember",
]
