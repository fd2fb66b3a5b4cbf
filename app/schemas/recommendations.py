from pydantic import BaseModel, Field
from typing import List


class RecommendationRequest(BaseModel):
    viewing_history: str = Field(..., min_length=1, max_length=4000)
    preferences: str = Field("", max_length=2000)


class Recommendation(BaseModel):
    subscription_name: str
    plan_details: str
    reason: str


class RecommendationResponse(BaseModel):
    recommendations: List[Recommendation]
