import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from database import RESPONSES, SURVEYS, newest_first
from errors import ApiError, NotFoundError, ValidationError
from schemas import Survey, SurveyResponse, SurveyUpdate

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await run_in_threadpool(database.ping)
        logger.info("MongoDB connected")
    except ApiError as e:
        logger.error("MongoDB error: %s", e.message)
    yield


app = FastAPI(title="Survey API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Envelopes ----------
def fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return fail(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())[1:])
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return fail(400, "; ".join(problems) or "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # unknown path or a known path with the wrong method
    if exc.status_code in (404, 405):
        return fail(404, "Route not found")
    return fail(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return fail(500, str(exc))


# ---------- Health ----------
@app.get("/api/health")
def health():
    return {"status": "OK", "message": "Survey API Running"}


# ---------- Surveys ----------
@app.get("/api/surveys")
def list_surveys():
    docs = database.get_documents(SURVEYS, sort=newest_first("createdAt"))
    return {"success": True, "data": docs}


@app.get("/api/surveys/active")
def list_active_surveys():
    docs = database.get_documents(SURVEYS, {"isActive": True}, sort=newest_first("createdAt"))
    return {"success": True, "data": docs}


def find_survey(survey_id: str):
    doc = database.get_document(SURVEYS, survey_id)
    if not doc:
        raise NotFoundError("Survey not found")
    return doc


@app.get("/api/surveys/{survey_id}")
def get_survey(survey_id: str):
    return {"success": True, "data": find_survey(survey_id)}


@app.post("/api/surveys", status_code=201)
def create_survey(payload: Optional[Survey] = None):
    # an absent or null body is treated as an empty object
    payload = payload or Survey()
    if not payload.title or not payload.title.strip() or not payload.questions:
        raise ValidationError("Title and questions required")
    doc = database.create_document(SURVEYS, payload, timestamp_fields=("createdAt", "updatedAt"))
    logger.info("Created survey %s with %d questions", doc["id"], len(payload.questions))
    return {"success": True, "data": doc}


@app.put("/api/surveys/{survey_id}")
def update_survey(survey_id: str, payload: SurveyUpdate):
    current = find_survey(survey_id)
    fields = payload.model_dump(exclude_unset=True)
    if fields.get("questions") is not None:
        # nested questions keep their defaults, same shape as on create
        fields["questions"] = [q.model_dump() for q in payload.questions]
    # description is the only field that may be cleared
    for key in ("title", "questions", "isActive"):
        if key in fields and fields[key] is None:
            del fields[key]
    fields["updatedAt"] = database.next_timestamp(current.get("updatedAt"))
    doc = database.update_document(SURVEYS, survey_id, fields)
    if not doc:
        raise NotFoundError("Survey not found")
    logger.info("Updated survey %s fields=%s", survey_id, sorted(fields))
    return {"success": True, "data": doc}


@app.delete("/api/surveys/{survey_id}")
def delete_survey(survey_id: str):
    # Two independent deletes, not atomic: a failure in between leaves orphaned responses.
    database.delete_document(SURVEYS, survey_id)
    removed = database.delete_documents(RESPONSES, {"surveyId": database.oid(survey_id)})
    logger.info("Deleted survey %s and %d responses", survey_id, removed)
    return {"success": True, "message": "Survey deleted"}


# ---------- Responses ----------
@app.post("/api/responses", status_code=201)
def submit_response(payload: Optional[SurveyResponse] = None):
    payload = payload or SurveyResponse()
    if not payload.surveyId or not payload.answers:
        raise ValidationError("Required fields missing")
    data = {"surveyId": database.oid(payload.surveyId), "answers": payload.answers}
    doc = database.create_document(RESPONSES, data, timestamp_fields=("submittedAt",))
    logger.info("Stored response %s for survey %s", doc["id"], payload.surveyId)
    return {"success": True, "data": doc}


@app.get("/api/surveys/{survey_id}/responses")
def list_responses(survey_id: str):
    docs = database.get_documents(RESPONSES, {"surveyId": database.oid(survey_id)},
                                  sort=newest_first("submittedAt"))
    return {"success": True, "data": docs, "count": len(docs)}


# ---------- Analytics ----------
@app.get("/api/surveys/{survey_id}/analytics")
def survey_analytics(survey_id: str):
    survey = find_survey(survey_id)
    total = database.count_documents(RESPONSES, {"surveyId": database.oid(survey_id)})
    return {"success": True, "data": {"totalResponses": total, "survey": survey}}


@app.get("/api/dashboard/stats")
def dashboard_stats():
    return {
        "success": True,
        "data": {
            "totalSurveys": database.count_documents(SURVEYS),
            "activeSurveys": database.count_documents(SURVEYS, {"isActive": True}),
            "totalResponses": database.count_documents(RESPONSES),
        },
    }


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = int(os.getenv("PORT", 5000))
    uvicorn.run(app, host="0.0.0.0", port=port)
