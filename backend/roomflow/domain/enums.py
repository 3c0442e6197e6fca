"""Domain enumerations for strong typing & validation."""
from enum import Enum

class EventStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    PUBLISHED = "published"

class EventAction(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    PUBLISH = "publish"
    UNAPPROVE = "unapprove"
    UNPUBLISH = "unpublish"
    RESUBMIT = "resubmit"

class Role(str, Enum):
    ADMIN = "admin"
    REVIEWER = "reviewer"
    CONTRIBUTOR = "contributor"

class Frequency(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

class EndType(str, Enum):
    NEVER = "never"
    ON = "on"
    AFTER = "after"

class ExportScope(str, Enum):
    APPROVED = "approved"
    PUBLISHED = "published"
    BOTH = "both"
    ALL = "all"

class ActionScope(str, Enum):
    SINGLE = "single"
    SERIES = "series"
