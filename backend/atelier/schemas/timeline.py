from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# purpose: request/response shapes for timeline steps, evidence, videos and comments
# status: active


class StepStart(BaseModel):
    expected_by: Optional[datetime] = None


class StepComplete(BaseModel):
    evidence_verified_override: bool = False


class StepEvidenceSubmit(BaseModel):
    urls: list[Any] = Field(default_factory=list)
    bid_id: Optional[int] = None


class StepVideoSubmit(BaseModel):
    urls: list[Any] = Field(default_factory=list)
    optional_note: Optional[str] = None


class StepCommentCreate(BaseModel):
    comment_text: Optional[str] = None
    media_version: Optional[int] = None


class StepCommentOut(BaseModel):
    id: int
    item_id: int
    step_number: int
    designer_id: int
    media_version: Optional[int] = None
    comment_text: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class MediaEvidenceCreate(BaseModel):
    step_id: int
    media_type: str
    file_path: Optional[str] = None
    youtube_url: Optional[str] = None
    hidden: bool = False


class EvidenceCommentCreate(BaseModel):
    comment_text: Optional[str] = None


class EvidenceCommentOut(BaseModel):
    id: int
    evidence_id: int
    user_id: int
    comment_text: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ProjectCommentCreate(BaseModel):
    comment_text: Optional[str] = None
    is_urgent: bool = False
    parent_comment_id: Optional[int] = None
    item_ref: Optional[str] = None
    video_ref: Optional[str] = None


class ProjectCommentUpdate(BaseModel):
    comment_text: Optional[str] = None
