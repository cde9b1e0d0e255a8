"""
# Tenant Record Models

Shapes of the records stored in every tenant database. One collection per record type:

| Model      | Collection   | Enumerated fields                                      |
|------------|--------------|--------------------------------------------------------|
| `User`     | `users`      | `role`: user / admin / super_admin                     |
| `Poll`     | `polls`      | `poll_type`, `status`: draft / active / closed         |
| `Activity` | `activities` |                                                        |
| `Job`      | `jobs`       | `type`, `status`: draft / published / closed           |

Every record carries a mandatory `tenant_id` plus `created_at`/`updated_at` timestamps. References
to other records (`created_by`, `user_id`, `resource_id`) hold the referenced document's `_id` as a
hex string.

Business validation beyond the shape (who may create a poll, salary formats, ...) belongs to the
route layer and is not done here.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TenantRecord(BaseModel):
    """Fields shared by every tenant record."""

    model_config = ConfigDict(extra="forbid")

    tenant_id: str = Field(..., min_length=1, description="Owning tenant; set by the model handle")
    tenant_specific: Optional[Dict[str, Any]] = Field(None, description="Free-form tenant extension data")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class User(TenantRecord):
    """A user of one tenant. `email` is unique within the tenant."""

    email: EmailStr = Field(..., description="Login email, unique per tenant")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: Literal["user", "admin", "super_admin"] = Field("user", description="Role within the tenant")
    is_active: bool = True
    last_login: Optional[datetime] = None
    preferences: Optional[Dict[str, Any]] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower()


class PollOption(BaseModel):
    id: Optional[str] = None
    text: Optional[str] = None
    value: Any = None


class PollSettings(BaseModel):
    is_anonymous: bool = False
    allow_multiple_responses: bool = False
    show_results: bool = True
    max_selections: int = Field(1, ge=1)


class Poll(TenantRecord):
    """A poll owned by a tenant user."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    question: str = Field(..., min_length=1)
    poll_type: Literal["single_choice", "multiple_choice", "rating", "text"]
    options: List[PollOption] = Field(default_factory=list)
    status: Literal["draft", "active", "closed"] = "draft"
    created_by: Optional[str] = Field(None, description="_id of the creating user")
    settings: PollSettings = Field(default_factory=PollSettings)


class Activity(TenantRecord):
    """An audit-style activity entry."""

    user_id: Optional[str] = None
    action: str = Field(..., min_length=1)
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class Job(TenantRecord):
    """A job posting."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    type: Optional[Literal["full-time", "part-time", "contract", "internship"]] = None
    status: Literal["draft", "published", "closed"] = "draft"
    created_by: Optional[str] = None
