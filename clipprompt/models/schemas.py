from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for payloads that travel as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class EditRequestStatus(str, Enum):
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    ERROR = "Error"

    @property
    def is_terminal(self) -> bool:
        return self is not EditRequestStatus.IN_PROGRESS


class VideoStatus(str, Enum):
    UPLOADED = "Uploaded"
    PROCESSING = "Processing"
    READY = "Ready"
    FAILED = "Failed"


STATUS_MESSAGES: Dict[EditRequestStatus, str] = {
    EditRequestStatus.IN_PROGRESS: "Processing your video with AI...",
    EditRequestStatus.COMPLETED: "Processing complete!",
    EditRequestStatus.ERROR: "An error occurred during processing",
}


class User(CamelModel):
    id: str
    name: str
    email: str
    avatar: Optional[str] = None
    created_date: datetime


class Video(CamelModel):
    id: str
    owner_id: str
    original_video_file: str
    edited_video_file: Optional[str] = None
    video_title: str
    video_description: Optional[str] = None
    created_date: datetime
    status: VideoStatus = VideoStatus.UPLOADED


# Edit plans are `{"effects": [{"type", "startTime"?, "endTime"?, "parameters"?}, ...]}`
# as produced by the AI service. They are kept as decoded JSON and forwarded untouched.
EditPlan = Dict[str, Any]


class EditRequest(CamelModel):
    id: str
    video_id: str
    user_id: str
    prompt_text: str
    response_json: Optional[str] = Field(default=None, alias="responseJSON")
    created_date: datetime
    status: EditRequestStatus = EditRequestStatus.IN_PROGRESS


class PromptHistoryEntry(CamelModel):
    prompt: str
    timestamp: datetime


class AIEditRequest(CamelModel):
    prompt: str
    video_id: str
    conversation_history: Optional[List[PromptHistoryEntry]] = None


class VideoProcessRequest(CamelModel):
    video_file_url: str
    edit_plan: EditPlan


class VideoProcessResponse(CamelModel):
    status: Literal["success", "error"]
    message: Optional[str] = None
    edited_video_url: Optional[str] = None


# API payloads


class LoginRequest(CamelModel):
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email used to identify the user")


class SessionResponse(CamelModel):
    token: str
    user: User
    expires_at: datetime


class VideoCreateRequest(CamelModel):
    original_video_file: str = Field(..., description="URI of the uploaded or recorded clip")
    video_title: str
    video_description: Optional[str] = None


class EditPromptRequest(CamelModel):
    prompt: str = Field(..., description="Natural-language description of the edit")


class EditStatusResponse(CamelModel):
    edit_request: EditRequest
    label: str
    detail: Optional[str] = None
    processed_video_url: Optional[str] = None
