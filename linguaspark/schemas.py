from typing import List, Optional, Literal, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


LessonCategory = Literal[
    'general-english',
    'business',
    'travel',
    'academic',
    'conversation',
    'grammar',
    'vocabulary',
    'pronunciation',
    'culture',
]
LESSON_CATEGORIES = LessonCategory.__args__

LessonTypeName = Literal['discussion', 'grammar', 'travel', 'business', 'pronunciation']
LESSON_TYPES = LessonTypeName.__args__

CEFRLevelName = Literal['A1', 'A2', 'B1', 'B2', 'C1']
CEFR_LEVELS = CEFRLevelName.__args__


class CamelModel(BaseModel):
    """Accepts both camelCase (browser extension) and snake_case field names"""
    model_config = ConfigDict(populate_by_name=True)


# ======================= Lesson generation =======================

class GenerateLessonRequest(CamelModel):
    # Left optional so missing fields surface as VALIDATION_ERROR from the generator
    source_text: Optional[str] = Field(default=None, alias="sourceText")
    lesson_type: Optional[str] = Field(default=None, alias="lessonType")
    student_level: Optional[str] = Field(default=None, alias="studentLevel")
    target_language: Optional[str] = Field(default=None, alias="targetLanguage")
    source_url: Optional[str] = Field(default=None, alias="sourceUrl")


class GenerateLessonResponse(BaseModel):
    lesson: Dict[str, Any]
    id: Optional[str] = None
    saved: bool = False
    quality: Dict[str, Any] = Field(default_factory=dict)


class ValidateContentRequest(BaseModel):
    text: str = ""


class ValidateContentResponse(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    word_count: int = 0
    quality: Dict[str, Any] = Field(default_factory=dict)


# ======================= Saved lessons =======================

class SaveLessonRequest(BaseModel):
    title: str = Field(min_length=1)
    lesson_type: LessonTypeName
    student_level: CEFRLevelName
    target_language: str = Field(min_length=1)
    source_url: Optional[str] = None
    source_text: Optional[str] = None
    lesson_data: Dict[str, Any]


class SaveLessonResponse(BaseModel):
    success: bool = True
    id: str


# ======================= Extraction handoff =======================

class ExtractionStoreRequest(CamelModel):
    session_id: str = Field(min_length=1, alias="sessionId")
    data: Dict[str, Any]


class ExtractionRetrieveRequest(CamelModel):
    session_id: str = Field(min_length=1, alias="sessionId")


class ExtractionActionRequest(CamelModel):
    action: str
    session_id: str = Field(min_length=1, alias="sessionId")
    data: Optional[Dict[str, Any]] = None


# ======================= Public lesson library =======================

class PublicLessonMetadata(BaseModel):
    category: LessonCategory
    tags: List[str] = Field(default_factory=list)
    estimated_duration_minutes: Optional[int] = Field(default=None, ge=1)


class PublicLessonCreateRequest(BaseModel):
    lesson: Dict[str, Any]
    metadata: PublicLessonMetadata


class PublicLessonUpdateRequest(BaseModel):
    lesson: Optional[Dict[str, Any]] = None
    metadata: Optional[PublicLessonMetadata] = None


class PublicLessonListResponse(BaseModel):
    success: bool = True
    lessons: List[Dict[str, Any]]
    next_cursor: Optional[str] = Field(default=None, serialization_alias="nextCursor")
