"""
schemas.py

Pydantic schemas and enumerations for the LearnLink backend.
Enumerations name the closed vocabularies stored in string columns (roles,
lifecycle states, like targets, progress states); request/response schemas
describe the JSON surface of the routers.
"""
import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Role(str, Enum):
    SUPER_ADMIN = "SuperAdmin"
    MANAGER = "Manager"
    CONTRIBUTOR = "Contributor"
    STUDENT = "Student"


REVIEWER_ROLES = (Role.SUPER_ADMIN, Role.MANAGER)
UPLOADER_ROLES = (Role.SUPER_ADMIN, Role.MANAGER, Role.CONTRIBUTOR)


class UserStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"


class ResourceStatus(str, Enum):
    DRAFT = "Draft"
    PENDING = "Pending"
    PUBLISHED = "Published"
    REJECTED = "Rejected"


class TargetKind(str, Enum):
    RESOURCE = "Resource"
    LESSON = "Lesson"
    DISCUSSION = "Discussion"
    REPLY = "Reply"


class ProgressStatus(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class DiscussionType(str, Enum):
    QUESTION = "Question"
    RESOURCE = "Resource"
    STUDY_GROUP = "Study Group"
    IDEA = "Idea"


class NotificationType(str, Enum):
    APPROVED = "Approved"
    REJECTED = "Rejected"
    UPLOAD = "Upload"
    SYSTEM = "System"
    REPLY = "Reply"


class LikeTarget(BaseModel):
    """The subject of a like: a target kind plus the id of a row of that kind."""
    model_config = ConfigDict(frozen=True)

    kind: TargetKind
    id: int


# User Schemas
class RegisterRequest(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    password: str
    confirm_password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str
    role: str
    status: str
    initials: Optional[str] = ""
    suspension_reason: Optional[str] = None
    suspension_date: Optional[datetime.datetime] = None
    created_at: Optional[datetime.datetime] = None


class TokenResponse(BaseModel):
    token: str
    user: UserResponse


class RoleChangeRequest(BaseModel):
    role: Role


class SuspendRequest(BaseModel):
    reason: Optional[str] = None


# Resource Schemas
class ResourceResponse(BaseModel):
    """Schema for resource response (metadata, lifecycle state, engagement counters)."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = ""
    subject: Optional[str] = ""
    grade_level: Optional[str] = ""
    resource_type: Optional[str] = ""
    quarter: Optional[str] = ""
    file_format: Optional[str] = ""
    file_size: Optional[str] = ""
    status: str
    rejection_reason: Optional[str] = None
    view_count: int = 0
    download_count: int = 0
    rating: float = 0.0
    rating_count: int = 0
    user_id: int
    uploader: Optional[str] = None
    date_uploaded: Optional[datetime.datetime] = None


class ResourceDetailResponse(ResourceResponse):
    """Resource detail as seen by the caller: computed like count and the caller's own flags."""
    like_count: int = 0
    is_liked: bool = False
    is_saved: bool = False
    file_url: Optional[str] = None
    related: List[ResourceResponse] = []


class UploadsResponse(BaseModel):
    uploads: List[ResourceResponse]
    total: int
    counts: Dict[str, int]


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class DeleteRequest(BaseModel):
    ids: List[int] = []


class DeleteResponse(BaseModel):
    success: bool
    message: str
    deleted_count: int = 0


# Engagement Schemas
class LikeResponse(BaseModel):
    success: bool = True
    liked: bool
    count: int


class RateRequest(BaseModel):
    rating: int


class RateResponse(BaseModel):
    success: bool = True
    rating: float
    count: int


class SaveResponse(BaseModel):
    success: bool = True
    is_saved: bool


class ProgressRequest(BaseModel):
    percent: int


class ReadingHistoryItem(BaseModel):
    resource_id: int
    title: str
    subject: Optional[str] = ""
    file_format: Optional[str] = ""
    progress_status: str
    progress_percent: int
    is_bookmarked: bool
    last_accessed: Optional[datetime.datetime] = None
    completed_date: Optional[datetime.datetime] = None


# Notification Schemas
class NotificationItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    message: str
    type: str
    icon: str
    icon_color: str
    link: Optional[str] = None
    resource_id: Optional[int] = None
    is_read: bool
    created_at: datetime.datetime
    time_ago: str = ""


class NotificationList(BaseModel):
    notifications: List[NotificationItem]
    unread_count: int


# Community Schemas
class LessonCreate(BaseModel):
    resource_id: int
    title: str
    content: str
    category: Optional[str] = ""
    tags: List[str] = []


class LessonUpdate(LessonCreate):
    pass


class LessonResponse(BaseModel):
    id: int
    resource_id: int
    resource_title: str
    title: str
    content: str
    category: str
    tags: List[str]
    author: str
    like_count: int
    is_liked: bool
    date_submitted: Optional[datetime.datetime] = None


class DiscussionCreate(BaseModel):
    title: str
    content: str
    category: Optional[str] = ""
    type: DiscussionType = DiscussionType.QUESTION
    tags: List[str] = []


class DiscussionUpdate(DiscussionCreate):
    pass


class DiscussionResponse(BaseModel):
    id: int
    title: str
    content: str
    category: str
    type: str
    tags: List[str]
    status: str
    view_count: int
    like_count: int
    is_liked: bool
    reply_count: int
    author: str
    best_answer_post_id: Optional[int] = None
    date_created: Optional[datetime.datetime] = None


class ReplyCreate(BaseModel):
    content: str


class ReplyResponse(BaseModel):
    id: int
    content: str
    author: str
    like_count: int
    is_liked: bool
    is_best_answer: bool
    date_posted: Optional[datetime.datetime] = None


class DiscussionThread(BaseModel):
    discussion: DiscussionResponse
    replies: List[ReplyResponse]


class BestAnswerRequest(BaseModel):
    post_id: Optional[int] = Field(None, description="Reply to mark as best answer; null clears it")


# Dashboard Schemas
class DashboardStats(BaseModel):
    total_resources: int
    active_users: int
    total_downloads: int
    active_discussions: int


class DashboardResponse(BaseModel):
    stats: DashboardStats
    recent_resources: List[ResourceResponse]
    pending_approvals: List[ResourceResponse]
