"""
Entity models for the StudySync data layer.

Field names match the column names of both stores. Booleans and structured
fields hold native Python values here; conversion to the local 0/1 and JSON
text representation happens in the repositories.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional, Type, TypeVar

E = TypeVar("E", bound="Entity")


@dataclass
class Entity:
    """Base class for all persisted records."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls: Type[E], data: Dict[str, Any]) -> E:
        """Create an entity from a row, ignoring columns the model does not know."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass
class User(Entity):
    id: str
    username: str
    password_hash: str
    level: int = 1
    streak: int = 0
    total_points: int = 0
    profile_image: Optional[str] = None
    is_blocked: bool = False
    is_admin: bool = False
    securityquestions: List[Dict[str, Any]] = field(default_factory=list)
    created_at: Optional[str] = None
    last_active: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class QuizAttempt(Entity):
    id: str
    user_id: str
    quiz_type: str
    quiz_title: str
    total_questions: int
    correct_answers: int
    score: int
    time_taken: int
    answers: Dict[str, Any] = field(default_factory=dict)
    quizzes: List[Any] = field(default_factory=list)
    timestamp: Optional[str] = None
    synced: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class UserAchievement(Entity):
    id: str
    user_id: str
    achievement_id: str
    title: str
    description: str
    icon: str
    color: str
    unlocked: bool = False
    unlocked_at: Optional[str] = None
    progress: int = 0
    max_progress: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class CustomQuiz(Entity):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    questions: List[Dict[str, Any]] = field(default_factory=list)
    synced: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Note(Entity):
    id: str
    user_id: str
    title: str
    content: str
    color: str = "bg-yellow-50 border-yellow-200"
    synced: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Todo(Entity):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    completed: bool = False
    due_date: Optional[str] = None
    priority: str = "medium"
    color: str = "bg-blue-50"
    synced: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class PomodoroSession(Entity):
    id: str
    user_id: str
    type: str
    duration: int
    completed_at: str
    date: str
    synced: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class PomodoroSettings(Entity):
    id: str
    user_id: str
    work_duration: int = 25
    break_duration: int = 5
    long_break_duration: int = 15
    sessions_until_long_break: int = 4
    completed_cycles: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Notification(Entity):
    id: str
    user_id: str
    type: str
    title: str
    message: str
    icon: Optional[str] = None
    read: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
    synced: bool = False
    timestamp: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class BugReport(Entity):
    id: str
    user_id: str
    username: str
    description: str
    type: str = "bug_report"
    category: Optional[str] = None
    screenshot_count: int = 0
    screenshots: List[str] = field(default_factory=list)
    status: str = "pending"
    priority: str = "normal"
    platform: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class ActivityLog(Entity):
    id: str
    user_id: str
    action: str
    type: str
    details: Optional[str] = None
    timestamp: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class AppSettings(Entity):
    id: str
    maintenance_mode: bool = False
    max_quizzes_per_day: int = 100
    allow_user_quiz_creation: bool = True
    enable_offline_mode: bool = True
    min_password_length: int = 6
    session_timeout: int = 86400
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class UserSettings(Entity):
    id: str
    user_id: str
    settings: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class LoginHistory(Entity):
    id: str
    user_id: str
    login_date: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
