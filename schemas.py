"""
Database Schemas for the Survey API

Each top-level Pydantic model represents a MongoDB collection. The
collection name is the lowercase of the class name (survey,
surveyresponse), see database.py.

Presence of title/questions and surveyId/answers is checked by the route
handlers rather than here, so a missing field yields the API's own 400
message instead of a generic body error.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

QuestionType = Literal["multiple-choice", "checkbox", "text", "rating"]


# ---------- Surveys ----------
class Question(BaseModel):
    id: Optional[str] = None
    type: Optional[QuestionType] = Field(None, description="multiple-choice|checkbox|text|rating")
    question: str = Field(..., min_length=1)
    options: List[str] = Field(default_factory=list, description="Choices for multiple-choice/checkbox")
    required: bool = False


class Survey(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[List[Question]] = None
    isActive: bool = True


class SurveyUpdate(BaseModel):
    """Partial survey; only fields present in the request body are applied."""
    title: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[List[Question]] = None
    isActive: Optional[bool] = None


# ---------- Responses ----------
class SurveyResponse(BaseModel):
    surveyId: Optional[str] = None
    # question id -> text, rating number, or selected option(s)
    answers: Optional[Dict[str, Any]] = None
