"""
Database models for tutors, their saved lessons and the public lesson library
"""
import uuid
from typing import Dict, Any

from sqlalchemy import Column, Integer, Text, String, Boolean, DateTime, ForeignKey, Index, func
from sqlalchemy.dialects.postgresql import UUID, JSONB, ARRAY
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _iso(value) -> str:
    return value.isoformat() if value else None


class Tutor(Base):
    """Tutor profile keyed by the identity provider's user id"""
    __tablename__ = "tutors"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(Text, unique=True, nullable=False)
    full_name = Column(Text, nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False, server_default="false")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_tutors_is_admin', 'is_admin'),
    )


class Lesson(Base):
    """Lesson saved by a tutor; lesson_data holds the lesson JSON"""
    __tablename__ = "lessons"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tutor_id = Column(UUID(as_uuid=True), ForeignKey("tutors.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(Text, nullable=False)
    lesson_type = Column(String(50), nullable=False)
    student_level = Column(String(2), nullable=False)
    target_language = Column(String(50), nullable=False)
    source_url = Column(Text, nullable=True)
    source_text = Column(Text, nullable=True)
    lesson_data = Column(JSONB, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_lessons_tutor_created', 'tutor_id', 'created_at'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': str(self.id),
            'tutor_id': str(self.tutor_id),
            'title': self.title,
            'lesson_type': self.lesson_type,
            'student_level': self.student_level,
            'target_language': self.target_language,
            'source_url': self.source_url,
            'lesson_data': self.lesson_data,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class PublicLesson(Base):
    """Admin-curated lesson visible to everyone"""
    __tablename__ = "public_lessons"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    creator_id = Column(UUID(as_uuid=True), ForeignKey("tutors.id", ondelete="SET NULL"), nullable=True)

    title = Column(Text, nullable=False)
    content = Column(JSONB, nullable=False)
    source_url = Column(Text, nullable=True)
    source_title = Column(Text, nullable=True)
    banner_image_url = Column(Text, nullable=True)

    category = Column(String(50), nullable=False)
    cefr_level = Column(String(2), nullable=False)
    lesson_type = Column(String(50), nullable=False)
    tags = Column(ARRAY(Text), nullable=False, default=list)
    estimated_duration_minutes = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_public_lessons_category', 'category'),
        Index('idx_public_lessons_cefr_level', 'cefr_level'),
        Index('idx_public_lessons_lesson_type', 'lesson_type'),
        Index('idx_public_lessons_created_at', 'created_at'),
        Index('idx_public_lessons_category_level', 'category', 'cefr_level'),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': str(self.id),
            'creator_id': str(self.creator_id) if self.creator_id else None,
            'title': self.title,
            'content': self.content,
            'source_url': self.source_url,
            'source_title': self.source_title,
            'banner_image_url': self.banner_image_url,
            'category': self.category,
            'cefr_level': self.cefr_level,
            'lesson_type': self.lesson_type,
            'tags': list(self.tags or []),
            'estimated_duration_minutes': self.estimated_duration_minutes,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
