from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from enum import Enum

# ==================== ENUMS ====================

class CourseLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

class SubModuleType(str, Enum):
    VIDEO = "video"
    ARTICLE = "article"
    QUIZ = "quiz"
    READING = "reading"
    EXERCISE = "exercise"

class MaterialType(str, Enum):
    VIDEO = "video"
    ARTICLE = "article"
    QUIZ = "quiz"

class EnrollmentStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

class DiscussionCategory(str, Enum):
    GENERAL = "general"
    PROGRAMMING = "programming"
    CAREER = "career"
    OFFICIAL = "official"
    HELP = "help"
    SHOWCASE = "showcase"

class DiscussionSort(str, Enum):
    LATEST = "latest"
    TRENDING = "trending"
    POPULAR = "popular"
    UNANSWERED = "unanswered"

class VoteType(str, Enum):
    UPVOTE = "upvote"
    DOWNVOTE = "downvote"

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    grade: str = "12"
    level: CourseLevel = CourseLevel.BEGINNER
    thumbnail: str = ""
    total_duration: str = ""
    rating: float = Field(0, ge=0, le=5)
    is_popular: bool = False

class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    grade: Optional[str] = None
    level: Optional[CourseLevel] = None
    thumbnail: Optional[str] = None
    total_duration: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    is_popular: Optional[bool] = None

class ProgressUpdate(BaseModel):
    completed_modules: List[str] = []
    completed_sub_modules: List[str] = []

# ==================== MODULE MODELS ====================

class SupportLink(BaseModel):
    title: str
    url: str
    type: str = "reference"

class SubModuleCreate(BaseModel):
    sub_module_id: Optional[str] = None  # Keep an existing id when editing
    title: str = Field(..., min_length=1)
    type: SubModuleType = SubModuleType.ARTICLE
    content: str = ""
    duration: str = ""
    video_url: Optional[str] = None
    article_url: Optional[str] = None
    support_links: List[SupportLink] = []
    order: Optional[int] = None

class QuizOption(BaseModel):
    text: str
    is_correct: bool = False

class QuizQuestion(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[QuizOption]
    explanation: str = ""
    points: int = Field(10, ge=0)

    @field_validator("options")
    @classmethod
    def exactly_one_correct(cls, v):
        correct = [o for o in v if o.is_correct]
        if len(correct) != 1:
            raise ValueError("Each question needs exactly one correct option")
        return v

class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    time_limit: Optional[int] = Field(None, ge=1)  # minutes
    passing_score: int = Field(70, ge=0, le=100)
    questions: List[QuizQuestion]

    @field_validator("questions")
    @classmethod
    def has_questions(cls, v):
        if not v:
            raise ValueError("Quiz must have at least one question")
        return v

class ModuleCreate(BaseModel):
    course_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    order: Optional[int] = Field(None, ge=1)
    duration: str = ""
    sub_modules: List[SubModuleCreate] = []
    quiz: Optional[QuizCreate] = None
    support_materials: List[SupportLink] = []
    learning_objectives: List[str] = []
    prerequisites: List[str] = []

class ModuleUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    duration: Optional[str] = None
    order: Optional[int] = Field(None, ge=1)
    sub_modules: Optional[List[SubModuleCreate]] = None
    quiz: Optional[QuizCreate] = None
    support_materials: Optional[List[SupportLink]] = None
    learning_objectives: Optional[List[str]] = None
    prerequisites: Optional[List[str]] = None

class ReorderPayload(BaseModel):
    order: List[str]  # List of module_ids in the new order

class QuizSubmission(BaseModel):
    answers: List[Optional[str]]  # Selected option text per question

# ==================== MATERIAL MODELS ====================

class MaterialCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    grade: str = "12"
    course_id: Optional[str] = None
    module_id: Optional[str] = None
    type: MaterialType = MaterialType.ARTICLE
    duration: str = ""

class MaterialUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    subject: Optional[str] = None
    grade: Optional[str] = None
    type: Optional[MaterialType] = None
    duration: Optional[str] = None

# ==================== DISCUSSION MODELS ====================

class DiscussionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    category: DiscussionCategory = DiscussionCategory.GENERAL
    tags: List[str] = []

class ReplyCreate(BaseModel):
    content: str = Field(..., min_length=1)
    parent_reply_id: Optional[str] = None

class VoteRequest(BaseModel):
    vote_type: Optional[VoteType] = None  # None removes the caller's vote
