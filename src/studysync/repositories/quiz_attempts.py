from ..models import QuizAttempt
from .base import RecordRepository, TableSpec


class QuizAttemptRepository(RecordRepository[QuizAttempt]):
    """Completed quiz attempts, newest first."""

    spec = TableSpec(
        table="quiz_attempts",
        model=QuizAttempt,
        bool_fields=("synced",),
        json_fields={"answers": dict, "quizzes": list},
        order=(("timestamp", True),),
        timestamp_fields=("timestamp",),
    )
