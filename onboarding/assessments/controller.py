"""
Assessment API Controller

Thin HTTP surface over the attempt lifecycle services. Every endpoint
resolves the caller through the identity dependency, delegates to one
service operation and wraps the result in the standard success envelope;
domain errors propagate to the application's exception handler.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Request

from onboarding.api import APIResponse
from onboarding.assessments.schemas import (
    EvaluationRequest, LockRequest, SaveAnswerRequest, SubmitRequest
)
from onboarding.assessments.services import AssessmentServices
from onboarding.common.auth.dependencies import get_current_user_id
from onboarding.common.logger import app_logger

logger = app_logger.getChild("assessments.controller")

router = APIRouter()


def get_services(request: Request) -> AssessmentServices:
    """Services bound to the application's database, set up at startup."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Assessment services not initialized. Database connection may not be ready.")
    return services


@router.get("/tests")
async def list_tests_endpoint(
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    """Every active test with the caller's availability for it."""
    data = await services.attempts.list_test_statuses(user_id)
    return APIResponse.success(data)


@router.post("/tests/{test_id}/attempts")
async def start_attempt_endpoint(
    test_id: str,
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    """Start a test, or resume the caller's in-progress attempt at it."""
    data = await services.attempts.start_attempt(user_id, test_id)
    return APIResponse.success(data, message="Attempt started")


@router.get("/attempts/{attempt_id}")
async def get_attempt_endpoint(
    attempt_id: str,
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    data = await services.attempts.get_attempt(attempt_id, user_id)
    return APIResponse.success(data)


@router.put("/attempts/{attempt_id}/responses/{question_id}")
async def save_answer_endpoint(
    attempt_id: str,
    question_id: str,
    body: SaveAnswerRequest,
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    """Autosave the answer to one question."""
    data = await services.responses.save_answer(attempt_id, question_id, body.answer_text, user_id)
    return APIResponse.success(data, message="Answer saved")


@router.post("/attempts/{attempt_id}/submit")
async def submit_attempt_endpoint(
    attempt_id: str,
    body: SubmitRequest = SubmitRequest(),
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    data = await services.attempts.submit_attempt(attempt_id, user_id, body.reason)
    return APIResponse.success(data, message="Attempt submitted")


@router.get("/attempts/{attempt_id}/evaluation")
async def open_evaluation_endpoint(
    attempt_id: str,
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    """Submitted attempt with its responses, answer keys and current totals."""
    logger.debug(f"User {user_id} opened attempt {attempt_id} for evaluation")
    data = await services.evaluations.open_for_evaluation(attempt_id)
    return APIResponse.success(data)


@router.post("/attempts/{attempt_id}/evaluation")
async def save_evaluation_endpoint(
    attempt_id: str,
    body: EvaluationRequest,
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    data = await services.evaluations.save_evaluation(
        attempt_id,
        evaluator_id=user_id,
        scores=body.scores,
        feedback=body.feedback,
        expected_version=body.expected_version
    )
    return APIResponse.success(data, message="Evaluation saved")


@router.get("/attempts/{attempt_id}/re-evaluation")
async def open_reevaluation_endpoint(
    attempt_id: str,
    only_incorrect: bool = Query(True, description="Only responses awarded less than full points"),
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    logger.debug(f"User {user_id} opened attempt {attempt_id} for re-evaluation")
    data = await services.reevaluations.open_for_reevaluation(attempt_id, only_incorrect=only_incorrect)
    return APIResponse.success(data)


@router.post("/attempts/{attempt_id}/re-evaluation")
async def save_reevaluation_endpoint(
    attempt_id: str,
    body: EvaluationRequest,
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    data = await services.reevaluations.save_reevaluation(
        attempt_id,
        evaluator_id=user_id,
        scores=body.scores,
        feedback=body.feedback,
        expected_version=body.expected_version
    )
    return APIResponse.success(data, message="Re-evaluation saved")


@router.get("/attempts/{attempt_id}/evaluations")
async def list_evaluations_endpoint(
    attempt_id: str,
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    """Grading and audit history of an attempt, oldest first."""
    data = await services.evaluations.list_evaluations(attempt_id)
    return APIResponse.success(data)


@router.post("/attempts/{attempt_id}/lock")
async def lock_attempt_endpoint(
    attempt_id: str,
    body: LockRequest = LockRequest(),
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    data = await services.attempts.lock_attempt(attempt_id, user_id, body.reason)
    return APIResponse.success(data, message="Attempt locked")


@router.post("/attempts/{attempt_id}/unlock")
async def unlock_attempt_endpoint(
    attempt_id: str,
    body: LockRequest = LockRequest(),
    user_id: str = Depends(get_current_user_id),
    services: AssessmentServices = Depends(get_services)
) -> Dict[str, Any]:
    data = await services.attempts.unlock_attempt(attempt_id, user_id, body.reason)
    return APIResponse.success(data, message="Attempt unlocked")
