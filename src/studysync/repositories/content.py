"""Repositories for user-authored study content: quizzes, notes and todos."""

from typing import List

from ..errors import RepositoryResult
from ..models import CustomQuiz, Note, Todo
from .base import RecordRepository, TableSpec


class CustomQuizRepository(RecordRepository[CustomQuiz]):
    spec = TableSpec(
        table="custom_quizzes",
        model=CustomQuiz,
        bool_fields=("synced",),
        json_fields={"tags": list, "questions": list},
    )

    async def list_all(self) -> RepositoryResult[List[CustomQuiz]]:
        return await self.find_many()


class NoteRepository(RecordRepository[Note]):
    spec = TableSpec(table="notes", model=Note, bool_fields=("synced",))

    async def list_all(self) -> RepositoryResult[List[Note]]:
        return await self.find_many()


class TodoRepository(RecordRepository[Todo]):
    spec = TableSpec(table="todos", model=Todo, bool_fields=("completed", "synced"))

    async def set_completed(self, todo_id: str, completed: bool = True) -> RepositoryResult[Todo]:
        return await self.update(todo_id, {"completed": completed})
