from models.payment import Payment
from models.user_plan import UserPlan

__all__ = ["Payment", "UserPlan"]
