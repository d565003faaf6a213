from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey, TIMESTAMP,
    Enum as SAEnum
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from learnpath.core.database import Base
from learnpath.models.enums import ContentKind

class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    # Relationships
    sections = relationship(
        "Section", back_populates="course", cascade="all, delete-orphan",
        order_by="[Section.order_index, Section.id]",
    )
    enrollments = relationship("Enrollment", back_populates="course", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Course(id={self.id}, title='{self.title}')>"

class Section(Base):
    __tablename__ = "sections"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # Not unique: ties are broken by id
    order_index = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    # Relationships
    course = relationship("Course", back_populates="sections")
    chapters = relationship(
        "Chapter", back_populates="section", cascade="all, delete-orphan",
        order_by="[Chapter.order_index, Chapter.id]",
    )
    quiz = relationship("Quiz", back_populates="section", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Section(id={self.id}, title='{self.title}', course_id={self.course_id})>"

class Chapter(Base):
    __tablename__ = "chapters"

    id = Column(Integer, primary_key=True, index=True)
    section_id = Column(Integer, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content_type = Column(
        SAEnum(ContentKind, name="content_kind_enum", native_enum=False,
               values_callable=lambda obj: [e.value for e in obj]),
        nullable=False, default=ContentKind.TEXT,
    )
    order_index = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    # Relationships
    section = relationship("Section", back_populates="chapters")

    def __repr__(self):
        return f"<Chapter(id={self.id}, title='{self.title}', type='{self.content_type}')>"

class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    # At most one quiz per section
    section_id = Column(Integer, ForeignKey("sections.id", ondelete="CASCADE"), unique=True, nullable=False)
    title = Column(String(255), nullable=False, default="Section Quiz")

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    # Relationships
    section = relationship("Section", back_populates="quiz")

    def __repr__(self):
        return f"<Quiz(id={self.id}, section_id={self.section_id})>"
