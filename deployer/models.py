from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Literal, Optional, Union

class ImageAttachment(BaseModel):
    type: Literal["image"] = "image"
    filename: str = "image.png"
    data: str
    description: str = ""

class TextAttachment(BaseModel):
    type: Literal["text"] = "text"
    filename: str = "document.txt"
    content: str
    description: str = ""

Attachment = Union[ImageAttachment, TextAttachment]

class TaskRequest(BaseModel):
    task_id: str
    brief: str
    evaluation_url: str
    round: int = Field(default=1, ge=1)
    repo_name: Optional[str] = None
    # normalized by attachments.normalize_attachments, never rejected here
    attachments: Any = None
    secret: Optional[str] = Field(default=None, exclude=True, repr=False)

class TaskAccepted(BaseModel):
    message: str = "Task accepted"
    task_id: str
    round: int

class TaskState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: str
    repo_name: Optional[str] = Field(default=None, alias="repoName")
    repo_url: Optional[str] = Field(default=None, alias="repoUrl")
    deployment_url: Optional[str] = Field(default=None, alias="deploymentUrl")
    round: int = 1
    status: Literal["completed", "failed"]
    error: Optional[str] = None
    updated_at: str = Field(alias="updatedAt")
    # last generated document, fed back to the model on the next round
    artifact: Optional[str] = Field(default=None, exclude=True, repr=False)

    def public(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

class CallbackPayload(BaseModel):
    task_id: str
    round: int
    status: Literal["completed", "failed"]
    repo_url: Optional[str] = None
    deployment_url: Optional[str] = None
    error: Optional[str] = None
    processing_time_ms: Optional[int] = None
    timestamp: str

class PublishResult(BaseModel):
    repo_url: str
    repo_name: str

class HealthResponse(BaseModel):
    status: str = "healthy"
    llm_provider: str
    github_username: str
    timestamp: str
