"""Headshot generation and gallery schemas."""

from pydantic import Field

from headshot_common.utils.json_model import JsonModel
from headshot_db.schemas.headshot import HeadshotResponse


class GenerateHeadshotsRequest(JsonModel):
    style: str = Field(..., description="One of professional, business-casual, creative")
    background: str = Field(..., description="One of office, studio, outdoor, gradient")
    reference_urls: list[str] = Field(..., min_length=1, description="URLs of the uploaded reference photos")


class GenerateHeadshotsResponse(JsonModel):
    headshots: list[HeadshotResponse]
    credits_used: int
    balance: int


class HeadshotListResponse(JsonModel):
    headshots: list[HeadshotResponse]
