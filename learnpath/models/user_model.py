from sqlalchemy import Column, Integer, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from learnpath.core.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False) # Firebase User ID
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)

    # Relationships
    enrollments = relationship("Enrollment", back_populates="learner", cascade="all, delete-orphan")
    course_progress_entries = relationship("CourseProgress", back_populates="learner", cascade="all, delete-orphan")

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('email', name='uq_user_email'),
        UniqueConstraint('firebase_uid', name='uq_user_firebase_uid'),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', firebase_uid='{self.firebase_uid}')>"
