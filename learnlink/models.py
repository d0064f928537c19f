"""
models.py

SQLAlchemy ORM models for the LearnLink backend.
Defines User, Resource, Like, ReadingHistory, Notification, UserActivityLog,
Recommendation, LessonLearned, Discussion and DiscussionPost.
Likes reference their target by (target_type, target_id) with no foreign key;
the pair is unique per user.
"""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, declarative_base

from learnlink.utils import utcnow

Base = declarative_base()


class User(Base):
    """
    User model: one account with exactly one role.
    Roles: SuperAdmin, Manager, Contributor, Student.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(25), nullable=False)
    last_name = Column(String(25), nullable=False)
    email = Column(String(120), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="Student")
    status = Column(String(20), nullable=False, default="Active")  # Active, Inactive, Suspended
    initials = Column(String(5), default="")
    grade_or_position = Column(String(100), default="")
    suspension_reason = Column(String(500), nullable=True)
    suspension_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    resources = relationship("Resource", back_populates="user")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Resource(Base):
    """
    Resource model: an uploaded learning material and its moderation state.
    status: Draft, Pending, Published, Rejected. rejection_reason is only set while Rejected.
    file_path holds the opaque object-storage key.
    """
    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    description = Column(String(500), default="")
    subject = Column(String(50), default="", index=True)
    grade_level = Column(String(30), default="")
    resource_type = Column(String(30), default="")  # Reviewer, Module, Worksheet, ...
    quarter = Column(String(50), default="")
    file_path = Column(String(500), default="")
    file_format = Column(String(20), default="")
    file_size = Column(String(20), default="")
    status = Column(String(20), nullable=False, default="Pending", index=True)
    rejection_reason = Column(String(500), nullable=True)
    view_count = Column(Integer, nullable=False, default=0)
    download_count = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=0.0)
    rating_count = Column(Integer, nullable=False, default=0)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date_uploaded = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="resources")


class Like(Base):
    """
    Like model: polymorphic engagement record.
    target_type: Resource, Lesson, Discussion, Reply.
    """
    __tablename__ = "likes"
    __table_args__ = (
        UniqueConstraint("user_id", "target_type", "target_id", name="uq_likes_user_target"),
        Index("ix_likes_target", "target_type", "target_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    target_type = Column(String(20), nullable=False)
    target_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class ReadingHistory(Base):
    """
    ReadingHistory model: one row per (user, resource).
    progress_status: Not Started, In Progress, Completed.
    """
    __tablename__ = "reading_history"
    __table_args__ = (
        UniqueConstraint("user_id", "resource_id", name="uq_reading_history_user_resource"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    progress_status = Column(String(20), nullable=False, default="Not Started")
    progress_percent = Column(Integer, nullable=False, default=0)
    last_position = Column(String(50), default="")
    is_bookmarked = Column(Boolean, nullable=False, default=False)
    last_accessed = Column(DateTime, default=utcnow)
    completed_date = Column(DateTime, nullable=True)

    resource = relationship("Resource")


class Notification(Base):
    """
    Notification model: one in-app message addressed to one user.
    type: Approved, Rejected, Upload, System, Reply.
    icon/icon_color are rendering hints for the client.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    message = Column(String(500), default="")
    type = Column(String(30), nullable=False)
    icon = Column(String(50), default="bi-bell")
    icon_color = Column(String(20), default="#dbeafe")
    link = Column(String(500), nullable=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, index=True)


class UserActivityLog(Base):
    """
    UserActivityLog model: append-only audit trail.
    activity_type: Upload, Edit, Approve, Reject, Delete, View, Download, Like, Lesson, Discussion, Login, Register.
    """
    __tablename__ = "user_activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=True, index=True)
    activity_type = Column(String(50), nullable=False)
    target_title = Column(String(200), default="")
    activity_date = Column(DateTime, default=utcnow, index=True)


class Recommendation(Base):
    """Recommendation model: a resource suggested to a user (rule based, favorites, ...)."""
    __tablename__ = "recommendations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    recommendation_type = Column(String(30), default="")


class LessonLearned(Base):
    """LessonLearned model: a community write-up about a resource."""
    __tablename__ = "lessons_learned"

    id = Column(Integer, primary_key=True, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    content = Column(String(2000), default="")
    category = Column(String(50), default="")
    tags = Column(String(500), default="")  # comma-separated
    date_submitted = Column(DateTime, default=utcnow)

    user = relationship("User")
    resource = relationship("Resource")


class Discussion(Base):
    """
    Discussion model: a community thread.
    type: Question, Resource, Study Group, Idea. best_answer_post_id points at one of its posts.
    """
    __tablename__ = "discussions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    content = Column(String(2000), default="")
    category = Column(String(50), default="")
    type = Column(String(30), default="Question")
    tags = Column(String(500), default="")  # comma-separated
    status = Column(String(20), default="Open")
    view_count = Column(Integer, nullable=False, default=0)
    best_answer_post_id = Column(Integer, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date_created = Column(DateTime, default=utcnow, index=True)

    user = relationship("User")
    posts = relationship("DiscussionPost", back_populates="discussion")


class DiscussionPost(Base):
    """DiscussionPost model: a reply inside a discussion."""
    __tablename__ = "discussion_posts"

    id = Column(Integer, primary_key=True, index=True)
    discussion_id = Column(Integer, ForeignKey("discussions.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    date_posted = Column(DateTime, default=utcnow)

    user = relationship("User")
    discussion = relationship("Discussion", back_populates="posts")
