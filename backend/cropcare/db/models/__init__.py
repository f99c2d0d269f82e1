"""ORM models exposed for metadata discovery."""
from cropcare.db.models.farming_plan import FarmingPlan
from cropcare.db.models.user import User

__all__ = [
    "FarmingPlan",
    "User",
]
