from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from medq.api.deps import get_question_service
from medq.api.models import GenerateQuestionsRequest, GenerateQuestionsResponse, SectionQuestionStatusResponse
from medq.core.security import get_current_uid
from medq.services.questions import QuestionGenerationService

router = APIRouter()


@router.post("/generate", status_code=status.HTTP_200_OK, response_model=GenerateQuestionsResponse, response_model_by_alias=True)
async def generate_questions(
  request: GenerateQuestionsRequest, uid: Annotated[str, Depends(get_current_uid)], service: Annotated[QuestionGenerationService, Depends(get_question_service)]
) -> GenerateQuestionsResponse:
  """Generate a small ready batch now and queue the rest in the background."""
  outcome = await service.generate(uid=uid, course_id=request.course_id, section_id=request.section_id, count=request.count)
  return GenerateQuestionsResponse.from_outcome(outcome)


@router.get("/sections/{section_id}/status", response_model=SectionQuestionStatusResponse, response_model_by_alias=True)
async def get_section_question_status(
  section_id: str, uid: Annotated[str, Depends(get_current_uid)], service: Annotated[QuestionGenerationService, Depends(get_question_service)]
) -> SectionQuestionStatusResponse:
  section = await service.get_section_status(uid, section_id)
  return SectionQuestionStatusResponse.from_record(section)
