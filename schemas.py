import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MaterializationReportOut(BaseModel):
    success: bool = True
    generated: int
    entries: list[str]
    failed: list[str] = Field(default_factory=list)
    date: dt.date


class ErrorOut(BaseModel):
    success: bool = False
    error: str


class PasswordLeakIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    password: str = Field(default="", max_length=1024)


class PasswordLeakOut(BaseModel):
    is_leaked: bool


class SuggestCategoryIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=200)


class SuggestCategoryOut(BaseModel):
    suggested_category: Optional[str] = None
