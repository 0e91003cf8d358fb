from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from medq import __version__
from medq.api.routes import questions, tasks
from medq.config import get_settings
from medq.core.exceptions import global_exception_handler, http_exception_handler, question_generation_exception_handler, request_validation_exception_handler
from medq.core.json import MedqJSONResponse
from medq.core.lifespan import lifespan
from medq.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from medq.questions.errors import QuestionGenerationError

settings = get_settings()

app = FastAPI(default_response_class=MedqJSONResponse, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(QuestionGenerationError, question_generation_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(questions.router, prefix="/v1/questions", tags=["questions"])
app.include_router(tasks.router, prefix="/internal", tags=["tasks"])
