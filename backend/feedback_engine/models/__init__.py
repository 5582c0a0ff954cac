"""Models package — re-export all ORM classes for metadata discovery."""
from feedback_engine.models.tenant import ManagerContact, Tenant  # noqa: F401
from feedback_engine.models.feedback import FeedbackItem, FeedbackStatus  # noqa: F401
from feedback_engine.models.review import ExternalReview  # noqa: F401
from feedback_engine.models.response import (  # noqa: F401
    ACTIVE_RESPONSE_STATUSES,
    ResponsePriority,
    ResponseStatus,
    ReviewResponse,
)
from feedback_engine.models.rating_snapshot import RatingSnapshot  # noqa: F401
from feedback_engine.models.alert import AlertLog  # noqa: F401
