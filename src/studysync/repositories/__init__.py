"""
Repositories package for StudySync.

One repository per entity, all sharing the remote-first, local-fallback
contract of RecordRepository.
"""

from .achievements import UserAchievementRepository
from .base import RecordRepository, TableSpec
from .content import CustomQuizRepository, NoteRepository, TodoRepository
from .login_history import LoginHistoryRepository
from .notifications import NotificationRepository
from .pomodoro import PomodoroSessionRepository, PomodoroSettingsRepository
from .quiz_attempts import QuizAttemptRepository
from .reports import ActivityLogRepository, BugReportRepository
from .settings import AppSettingsRepository, UserSettingsRepository
from .users import UserRepository, normalize_username

__all__ = [
    "RecordRepository",
    "TableSpec",
    "UserRepository",
    "normalize_username",
    "QuizAttemptRepository",
    "UserAchievementRepository",
    "CustomQuizRepository",
    "NoteRepository",
    "TodoRepository",
    "PomodoroSessionRepository",
    "PomodoroSettingsRepository",
    "NotificationRepository",
    "BugReportRepository",
    "ActivityLogRepository",
    "AppSettingsRepository",
    "UserSettingsRepository",
    "LoginHistoryRepository",
]
