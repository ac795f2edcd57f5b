from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Generic, List, Optional, TypeVar
from enum import Enum

T = TypeVar("T")

# Largest value the 32-bit integer id columns accept
MAX_ID = 2**31 - 1


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class MemberRole(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class NotificationType(str, Enum):
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_UPDATED = "TASK_UPDATED"
    PROJECT_INVITATION = "PROJECT_INVITATION"
    DEADLINE_APPROACHING = "DEADLINE_APPROACHING"
    NEW_MESSAGE = "NEW_MESSAGE"


def _strip(value):
    if isinstance(value, str):
        return value.strip()
    return value


# Envelope schemas
class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class NotificationMeta(PaginationMeta):
    unread: int = 0


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by every endpoint."""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    meta: Optional[PaginationMeta] = None


class ErrorDetail(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    errors: Optional[List[ErrorDetail]] = None


# OpenAPI descriptions of the error envelope, shared by every router
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation failed"},
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    403: {"model": ErrorResponse, "description": "Insufficient permission"},
    404: {"model": ErrorResponse, "description": "Not found"},
    409: {"model": ErrorResponse, "description": "Conflict"},
}


# User schemas
class UserSummary(BaseModel):
    id: int
    name: str
    email: str

    class Config:
        from_attributes = True


class User(UserSummary):
    role: UserRole
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)

    strip_name = field_validator("name", mode="before")(_strip)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None

    strip_name = field_validator("name", mode="before")(_strip)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(TokenResponse):
    user: User


# Membership schemas
class MemberAdd(BaseModel):
    email: EmailStr
    role: MemberRole = MemberRole.MEMBER

    @field_validator("role")
    @classmethod
    def role_is_assignable(cls, value: MemberRole) -> MemberRole:
        if value == MemberRole.OWNER:
            raise ValueError("Role must be MEMBER or ADMIN")
        return value


class Membership(BaseModel):
    project_id: int
    user_id: int
    role: MemberRole
    joined_at: datetime
    user: UserSummary

    class Config:
        from_attributes = True


# Project schemas
class ProjectBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = None


class ProjectCreate(ProjectBase):
    strip_name = field_validator("name", mode="before")(_strip)


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = None

    strip_name = field_validator("name", mode="before")(_strip)


class ProjectCounts(BaseModel):
    tasks: int = 0
    members: int = 0
    completed_tasks: int = 0


class Project(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    owner_id: int
    owner: UserSummary
    counts: ProjectCounts = Field(default_factory=ProjectCounts)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectWithMembers(Project):
    memberships: List[Membership] = []

    class Config:
        from_attributes = True


# Task schemas
class ProjectRef(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    project_id: int = Field(..., ge=1, le=MAX_ID)
    assigned_to: Optional[int] = Field(None, ge=1, le=MAX_ID)
    due_date: Optional[datetime] = None

    strip_title = field_validator("title", mode="before")(_strip)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    assigned_to: Optional[int] = Field(None, ge=1, le=MAX_ID)
    due_date: Optional[datetime] = None

    strip_title = field_validator("title", mode="before")(_strip)


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class Task(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    project_id: int
    project: ProjectRef
    assigned_to: Optional[int] = None
    assignee: Optional[UserSummary] = None
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# Notification schemas
class Notification(BaseModel):
    id: int
    type: NotificationType
    message: str
    user_id: int
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationList(ApiResponse[List[Notification]]):
    meta: Optional[NotificationMeta] = None


class MarkAllReadResult(BaseModel):
    updated: int
