"""
Request models for the assessment API.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field, validator

from onboarding.assessments.models import SubmitReason


class SaveAnswerRequest(BaseModel):
    answer_text: str = Field("", description="Answer text; empty clears the saved answer")


class SubmitRequest(BaseModel):
    reason: SubmitReason = Field(SubmitReason.MANUAL, description="Why the attempt is being submitted")


class EvaluationRequest(BaseModel):
    """Points (and optional feedback) per response id."""

    scores: Dict[str, float] = Field(default_factory=dict, description="Points awarded per response id")
    feedback: Dict[str, Optional[str]] = Field(default_factory=dict, description="Feedback per response id")
    expected_version: Optional[int] = Field(None, ge=1, description="Attempt version the evaluator loaded")

    @validator("scores")
    def scores_must_be_finite(cls, v):
        for response_id, points in v.items():
            if points != points or points in (float("inf"), float("-inf")):
                raise ValueError(f"points for {response_id} must be a finite number")
        return v


class LockRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)
