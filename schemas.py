"""
Course Portal Schemas

Each document model below maps to a MongoDB collection. The collection name is
the lowercase of the class name. Sub-documents (questions, options, results,
submissions) live inside their parent and carry a string `id`.

Collections:
- user: accounts for admin/teacher/student
- course: enrollment unit owned by one teacher
- assignment: course work with embedded student submissions
- quiz: auto-scored quizzes with embedded questions and student results
- material: study material (uploaded file or external link)
- notice: course or global announcements
- notification: per-user inbox entries

Request models (suffix `In`, `Create`, `Update`, `Request`) describe API
payloads and are never stored as-is.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator, model_validator

Role = Literal["admin", "teacher", "student"]
QuestionType = Literal["single", "multiple", "text"]
MaterialType = Literal["pdf", "image", "video", "link", "document", "other"]
Priority = Literal["low", "medium", "high"]


def new_id() -> str:
    return str(ObjectId())


class FileRef(BaseModel):
    file_name: str
    file_url: str
    file_type: Optional[str] = None
    file_size: int = 0


# ---------------------- Stored documents ----------------------

class User(BaseModel):
    name: str
    email: str
    password_hash: str
    role: Role = "student"
    avatar: str = "default-avatar.jpg"
    courses: List[str] = []
    reset_password_token: Optional[str] = None
    reset_password_expire: Optional[datetime] = None


class Course(BaseModel):
    title: str
    # Left out of the stored document when None so the sparse unique index skips it.
    code: Optional[str] = None
    description: str = ""
    teacher: str
    students: List[str] = []
    materials: List[str] = []
    assignments: List[str] = []
    quizzes: List[str] = []
    notices: List[str] = []


class Submission(BaseModel):
    id: str = Field(default_factory=new_id)
    student: str
    content: Optional[str] = None
    attachments: List[FileRef] = []
    submitted_at: datetime
    grade: Optional[float] = None
    feedback: Optional[str] = None
    graded: bool = False
    graded_at: Optional[datetime] = None
    graded_by: Optional[str] = None


class Assignment(BaseModel):
    title: str
    description: str = ""
    course: str
    teacher: str
    deadline: Optional[datetime] = None
    total_points: float = 100
    attachments: List[FileRef] = []
    submissions: List[Submission] = []


class Option(BaseModel):
    id: str = Field(default_factory=new_id)
    text: str
    is_correct: bool = False


class Question(BaseModel):
    id: str = Field(default_factory=new_id)
    question_text: str
    type: QuestionType = "single"
    options: List[Option] = []
    correct_answers: List[str] = []
    points: float = 1
    explanation: str = ""


class EvaluatedAnswer(BaseModel):
    question: str
    selected_option: Optional[str] = None
    selected_options: List[str] = []
    text_answer: Optional[str] = None
    is_correct: bool = False


class StudentResult(BaseModel):
    student: str
    answers: List[EvaluatedAnswer] = []
    score: float = 0
    total_possible_score: float = 0
    submitted_at: datetime
    elapsed_seconds: Optional[int] = None


class Quiz(BaseModel):
    title: str
    description: str
    course: str
    teacher: str
    time_limit: Optional[int] = Field(None, description="Minutes")
    available_from: datetime
    available_to: Optional[datetime] = None
    questions: List[Question] = []
    results: List[StudentResult] = []
    is_published: bool = False


class Material(BaseModel):
    title: str
    description: str = ""
    course: str
    teacher: str
    type: MaterialType
    file: Optional[FileRef] = None
    link: Optional[str] = None
    is_published: bool = True
    order: int = 0


class Notice(BaseModel):
    title: str
    content: str
    course: Optional[str] = Field(None, description="None means a global notice")
    author: str
    priority: Priority = "medium"
    attachments: List[FileRef] = []
    pinned: bool = False
    read_by: List[str] = []


class Notification(BaseModel):
    user: str
    text: str
    link: Optional[str] = None
    read: bool = False


# ---------------------- Request payloads ----------------------

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    role: Role = "student"

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        return v

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("invalid email address")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str = Field(..., min_length=6)


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class CourseCreate(BaseModel):
    title: str
    code: Optional[str] = None
    description: str = ""

    @field_validator("title")
    @classmethod
    def _title_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Course title is required")
        return v


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None


class AssignmentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    course: str
    deadline: Optional[datetime] = None
    total_points: float = Field(100, gt=0)


class AssignmentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    total_points: Optional[float] = Field(None, gt=0)


class GradeRequest(BaseModel):
    # Left untyped: non-numeric grades must surface the bound message, not a schema error.
    grade: Any = None
    feedback: Optional[str] = None


class OptionIn(BaseModel):
    text: str
    is_correct: bool = False


class QuestionIn(BaseModel):
    question_text: str
    type: QuestionType = "single"
    options: List[OptionIn] = []
    correct_answers: List[str] = []
    points: float = Field(1, ge=0)
    explanation: str = ""

    @model_validator(mode="after")
    def _check_shape(self):
        if not self.question_text.strip():
            raise ValueError("question text is required")
        if self.type == "text":
            answers = [a for a in self.correct_answers if a and a.strip()]
            if not answers:
                raise ValueError("text questions need at least one accepted answer")
            self.correct_answers = answers
            self.options = []
        else:
            if len(self.options) < 2:
                raise ValueError("choice questions need at least two options")
            if any(not o.text.strip() for o in self.options):
                raise ValueError("options must have text")
        return self

    def to_question(self) -> Question:
        return Question(
            question_text=self.question_text.strip(),
            type=self.type,
            options=[Option(text=o.text.strip(), is_correct=o.is_correct) for o in self.options],
            correct_answers=self.correct_answers,
            points=self.points,
            explanation=self.explanation,
        )


class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    course: str
    time_limit: Optional[int] = Field(None, gt=0)
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None
    is_published: bool = False
    questions: List[QuestionIn] = []


class QuizUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    time_limit: Optional[int] = Field(None, gt=0)
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None
    is_published: Optional[bool] = None
    questions: Optional[List[QuestionIn]] = None


class AnswerIn(BaseModel):
    question: str
    selected_option: Optional[str] = None
    selected_options: Optional[List[str]] = None
    text_answer: Optional[str] = None


class QuizSubmission(BaseModel):
    answers: List[AnswerIn]
    started_at: Optional[datetime] = None


class MaterialUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None
    is_published: Optional[bool] = None
    order: Optional[int] = None


class NoticeUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    priority: Optional[Priority] = None
    pinned: Optional[bool] = None


class NotificationCreate(BaseModel):
    user: str
    text: str = Field(..., min_length=1)
    link: Optional[str] = None
