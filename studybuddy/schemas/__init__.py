"""
Pydantic schemas for API request/response validation.
"""

from studybuddy.schemas.common import ErrorResponse, HealthResponse
from studybuddy.schemas.progression import (
    ActivityRequest,
    AwardXPRequest,
    ProgressionResponse,
    XPHistoryResponse,
)
from studybuddy.schemas.badges import BadgeEvaluationResponse, BadgeListResponse
from studybuddy.schemas.entitlements import (
    ConsumeRequest,
    EntitlementsResponse,
    FeatureAccessResponse,
    QuestionBankResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "ActivityRequest",
    "AwardXPRequest",
    "ProgressionResponse",
    "XPHistoryResponse",
    "BadgeEvaluationResponse",
    "BadgeListResponse",
    "ConsumeRequest",
    "EntitlementsResponse",
    "FeatureAccessResponse",
    "QuestionBankResponse",
]
