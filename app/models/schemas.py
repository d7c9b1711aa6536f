"""API request and response models."""
from datetime import date as Date
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class OpenSessionRequest(BaseModel):
    surface: str = Field(..., description="Chat surface: patient, provider, learner, quiz, or visits")


class MessageOut(BaseModel):
    id: str
    sender: Literal["user", "assistant"]
    text: str
    created_at: datetime


class SessionOut(BaseModel):
    session_id: str = Field(..., description="Conversation id (use for follow-up messages)")
    surface: str
    greeting: str
    loading: bool = False
    messages: list[MessageOut] = Field(default_factory=list)


class ChatRequest(BaseModel):
    message: str = Field(..., description="User message to the agent")

    @field_validator("message")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


class ChatResponse(BaseModel):
    session_id: str
    reply: MessageOut = Field(..., description="Assistant reply (or fallback notice)")
    messages: list[MessageOut]


class SurfaceOut(BaseModel):
    name: str
    title: str
    greeting: str


class PatientIn(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    age: int = Field(..., ge=0, le=150)
    gender: str = Field(..., min_length=1)
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    blood_group: str | None = None
    allergies: str | None = None
    existing_conditions: str | None = None


class VisitIn(BaseModel):
    patient_name: str = Field(..., min_length=1)
    date: Date
    time: str = Field(..., min_length=1, description="HH:MM")
    location: str = ""
    reason: str = ""
    notes: str = ""


class HealthDataIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    date: Date
    mood_score: int | None = Field(None, ge=1, le=10)
    anxiety_level: int | None = Field(None, ge=1, le=10)
    stress_level: int | None = Field(None, ge=1, le=10)
    sleep_hours: float | None = Field(None, ge=0, le=24)
    sleep_quality: int | None = Field(None, ge=1, le=10)
    pain_level: int | None = Field(None, ge=1, le=10)
    energy_level: int | None = Field(None, ge=1, le=10)
    exercise_minutes: int | None = Field(None, ge=0)
    steps: int | None = Field(None, ge=0)
    heart_rate_avg: int | None = Field(None, ge=20, le=250)
    notes: str | None = None
