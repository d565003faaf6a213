from sqlalchemy import (
    Column, Integer, Boolean, Float, TIMESTAMP, ForeignKey, UniqueConstraint,
    Enum as SAEnum
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from learnpath.core.database import Base
from learnpath.models.enums import CompletionStatus

# Chapter progress is split per content kind, one row per (learner, chapter).
# Rows are created on first interaction and never deleted; `completed` only moves to true.

class VideoProgress(Base):
    __tablename__ = "video_progress"

    id = Column(Integer, primary_key=True, index=True)
    learner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)
    section_id = Column(Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False) # Denormalized for easier querying
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True) # Denormalized

    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('learner_id', 'chapter_id', name='uq_video_progress_learner_chapter'),
    )

    def __repr__(self):
        return f"<VideoProgress(learner_id={self.learner_id}, chapter_id={self.chapter_id}, completed={self.completed})>"

class TextProgress(Base):
    __tablename__ = "text_progress"

    id = Column(Integer, primary_key=True, index=True)
    learner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)
    section_id = Column(Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)

    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('learner_id', 'chapter_id', name='uq_text_progress_learner_chapter'),
    )

    def __repr__(self):
        return f"<TextProgress(learner_id={self.learner_id}, chapter_id={self.chapter_id}, completed={self.completed})>"

class SectionAccess(Base):
    """A learner has opened a section at least once. Completion is derived, not stored."""
    __tablename__ = "section_access"

    id = Column(Integer, primary_key=True, index=True)
    learner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    section_id = Column(Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False)
    last_accessed_at = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint('learner_id', 'section_id', name='uq_section_access_learner_section'),
    )

class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    learner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)
    score_percentage = Column(Float, nullable=True) # Supplied by the scoring collaborator, never computed here
    attempted_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('learner_id', 'quiz_id', 'attempt_number', name='uq_quiz_attempt_number'),
    )

    def __repr__(self):
        return f"<QuizAttempt(learner_id={self.learner_id}, quiz_id={self.quiz_id}, attempt={self.attempt_number})>"

class CourseProgress(Base):
    """Derived cache of a learner's course aggregate, one row per (learner, course)."""
    __tablename__ = "course_progress"

    id = Column(Integer, primary_key=True, index=True)
    learner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)

    completed_items = Column(Integer, nullable=False, default=0)
    total_items = Column(Integer, nullable=False, default=0)
    completion_percentage = Column(Integer, nullable=False, default=0)
    completion_status = Column(
        SAEnum(CompletionStatus, name="completion_status_enum", native_enum=False,
               values_callable=lambda obj: [e.value for e in obj]),
        nullable=False, default=CompletionStatus.NOT_STARTED,
    )
    completed_at = Column(TIMESTAMP(timezone=True), nullable=True) # Set once, on the first transition into completed
    last_accessed_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    learner = relationship("User", back_populates="course_progress_entries")
    course = relationship("Course")

    __table_args__ = (
        UniqueConstraint('learner_id', 'course_id', name='uq_course_progress_learner_course'),
    )

    def __repr__(self):
        return (f"<CourseProgress(learner_id={self.learner_id}, course_id={self.course_id}, "
                f"{self.completion_percentage}% {self.completion_status})>")
