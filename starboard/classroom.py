"""Classroom operations on top of the sync orchestrator.

Every mutation is a whole-Document read-modify-write: read with
``get_data()``, change the copy, persist with ``save_data()``. User input is
checked before anything reaches the orchestrator.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from .credentials import hash_password, verify_password
from .document import (
    achievement_thresholds,
    default_settings,
    generate_student_id,
    iter_students,
    utc_now,
)

if TYPE_CHECKING:
    from .sync import SyncOrchestrator

logger = logging.getLogger(__name__)


class ClassroomError(Exception):
    """A user input error or a rejected save."""


@dataclass
class StarChange:
    """Result of adding or removing stars."""

    student_id: str
    name: str
    old_stars: int | float
    new_stars: int | float
    achievements: list[int] = field(default_factory=list)

    @property
    def delta(self) -> int | float:
        return self.new_stars - self.old_stars


@dataclass
class LeaderboardEntry:
    rank: int
    student_id: str
    name: str
    class_name: str
    stars: int
    badges: list[str] = field(default_factory=list)


@dataclass
class Statistics:
    total_students: int = 0
    total_stars: int = 0
    gold: int = 0
    silver: int = 0
    bronze: int = 0
    classes: int = 0


def _require(value: str | None, message: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ClassroomError(message)
    return value


class ClassroomService:
    """Class, student, teacher and settings management."""

    def __init__(self, sync: "SyncOrchestrator"):
        self._sync = sync

    async def _commit(self, data: dict[str, Any]) -> None:
        if not await self._sync.save_data(data):
            raise ClassroomError("Invalid data structure")

    def _class(self, data: dict[str, Any], class_name: str) -> dict[str, Any]:
        class_record = data["classes"].get(class_name)
        if class_record is None:
            raise ClassroomError(f"Class '{class_name}' does not exist")
        return class_record

    def _student(
        self, data: dict[str, Any], class_name: str, student_id: str
    ) -> dict[str, Any]:
        student = self._class(data, class_name)["students"].get(student_id)
        if student is None:
            raise ClassroomError(f"Student '{student_id}' not found in '{class_name}'")
        return student

    # ==================== Classes ====================

    def list_classes(self) -> list[str]:
        return list(self._sync.get_data()["classes"])

    async def create_class(self, name: str, description: str = "") -> None:
        name = _require(name, "Please enter a class name")
        data = self._sync.get_data()
        if name in data["classes"]:
            raise ClassroomError("Class already exists")

        record: dict[str, Any] = {"students": {}, "created": utc_now()}
        if description.strip():
            record["description"] = description.strip()
        data["classes"][name] = record
        await self._commit(data)
        logger.info(f"Created class {name}")

    async def update_class(
        self, old_name: str, new_name: str, description: str | None = None
    ) -> None:
        """Rename a class and/or change its description."""
        new_name = _require(new_name, "Please enter a class name")
        data = self._sync.get_data()
        record = self._class(data, old_name)
        if new_name != old_name:
            if new_name in data["classes"]:
                raise ClassroomError("Class name already exists")
            data["classes"][new_name] = data["classes"].pop(old_name)
        if description is not None:
            record["description"] = description.strip()
        await self._commit(data)

    async def rename_class(self, old_name: str, new_name: str) -> None:
        await self.update_class(old_name, new_name)

    async def delete_class(self, name: str) -> None:
        data = self._sync.get_data()
        self._class(data, name)
        del data["classes"][name]
        await self._commit(data)
        logger.info(f"Deleted class {name}")

    # ==================== Students ====================

    async def add_student(self, class_name: str, name: str, stars: int = 0) -> str:
        """Add a student and return the generated id."""
        name = _require(name, "Please enter a student name")
        if not class_name:
            raise ClassroomError("Please select a class first")
        data = self._sync.get_data()
        students = self._class(data, class_name)["students"]

        student_id = generate_student_id()
        while student_id in students:
            student_id = generate_student_id()

        students[student_id] = {
            "name": name,
            "stars": max(0, int(stars)),
            "created": utc_now(),
        }
        await self._commit(data)
        return student_id

    async def update_student(
        self,
        class_name: str,
        student_id: str,
        name: str,
        new_class: str | None = None,
        stars: int | None = None,
    ) -> str:
        """Rename a student, optionally moving them and setting their stars.

        Moving to another class issues a new id there.

        Returns:
            The student's (possibly new) id.
        """
        name = _require(name, "Please fill all required fields")
        data = self._sync.get_data()
        student = self._student(data, class_name, student_id)
        student["name"] = name
        if stars is not None:
            student["stars"] = max(0, int(stars))

        if new_class and new_class != class_name:
            target = self._class(data, new_class)["students"]
            del data["classes"][class_name]["students"][student_id]
            student_id = generate_student_id()
            while student_id in target:
                student_id = generate_student_id()
            student["created"] = utc_now()
            target[student_id] = student

        await self._commit(data)
        return student_id

    async def remove_student(self, class_name: str, student_id: str) -> None:
        data = self._sync.get_data()
        self._student(data, class_name, student_id)
        del data["classes"][class_name]["students"][student_id]
        await self._commit(data)

    async def modify_stars(
        self, class_name: str, student_id: str, amount: int
    ) -> StarChange:
        """Add (or with a negative amount remove) stars, never going below 0."""
        data = self._sync.get_data()
        student = self._student(data, class_name, student_id)

        old_stars = student["stars"]
        student["stars"] = max(0, old_stars + amount)
        await self._commit(data)

        thresholds = achievement_thresholds(data)
        crossed = [
            milestone
            for milestone in sorted(thresholds.values())
            if old_stars < milestone <= student["stars"]
        ]
        for milestone in crossed:
            logger.info(f"{student['name']} earned the {milestone} star achievement")

        return StarChange(
            student_id=student_id,
            name=student["name"],
            old_stars=old_stars,
            new_stars=student["stars"],
            achievements=crossed,
        )

    # ==================== Teachers ====================

    async def create_teacher(
        self, username: str, password: str, confirm_password: str
    ) -> None:
        username = (username or "").strip()
        if not username or not password:
            raise ClassroomError("Please fill all fields")
        if password != confirm_password:
            raise ClassroomError("Passwords do not match")

        data = self._sync.get_data()
        if username in data["teachers"]:
            raise ClassroomError("Username already exists")

        data["teachers"][username] = hash_password(password)
        await self._commit(data)

    async def update_teacher(
        self, old_username: str, new_username: str, password: str | None = None
    ) -> None:
        """Rename a teacher and/or set a new password (blank keeps the old one)."""
        new_username = _require(new_username, "Username is required")
        data = self._sync.get_data()
        teachers = data["teachers"]
        if old_username not in teachers:
            raise ClassroomError(f"Teacher '{old_username}' does not exist")
        if new_username != old_username:
            if new_username in teachers:
                raise ClassroomError("Username already exists")
            teachers[new_username] = teachers.pop(old_username)
        if password:
            teachers[new_username] = hash_password(password)
        await self._commit(data)

    async def delete_teacher(self, username: str) -> None:
        data = self._sync.get_data()
        if username not in data["teachers"]:
            raise ClassroomError(f"Teacher '{username}' does not exist")
        del data["teachers"][username]
        await self._commit(data)

    def authenticate(self, username: str, password: str) -> bool:
        stored = self._sync.get_data()["teachers"].get(username)
        if stored is None:
            return False
        return verify_password(stored, password)

    # ==================== Settings ====================

    async def update_achievement_thresholds(
        self, bronze: int, silver: int, gold: int
    ) -> None:
        if not bronze < silver < gold:
            raise ClassroomError("Thresholds must be in ascending order")
        data = self._sync.get_data()
        data["settings"]["achievementThresholds"] = {
            "bronze": int(bronze),
            "silver": int(silver),
            "gold": int(gold),
        }
        await self._commit(data)

    async def update_settings(self, **values: Any) -> None:
        data = self._sync.get_data()
        data["settings"].update(values)
        await self._commit(data)

    async def reset_settings(self) -> None:
        data = self._sync.get_data()
        data["settings"] = default_settings()
        await self._commit(data)

    # ==================== Queries ====================

    def achievement_badges(self, stars: int, data: dict[str, Any] | None = None) -> list[str]:
        """Badges for a star count: the best of gold/silver plus bronze."""
        thresholds = achievement_thresholds(data or self._sync.get_data())
        badges = []
        if stars >= thresholds["gold"]:
            badges.append("gold")
        elif stars >= thresholds["silver"]:
            badges.append("silver")
        if stars >= thresholds["bronze"]:
            badges.append("bronze")
        return badges

    def leaderboard(
        self, class_name: str | None = None, query: str = ""
    ) -> list[LeaderboardEntry]:
        """Rank students by stars, for one class or globally when no class is given."""
        data = self._sync.get_data()
        query = query.strip().lower()

        rows = [
            (cname, sid, student)
            for cname, sid, student in iter_students(data)
            if class_name is None or cname == class_name
        ]
        if query:
            rows = [row for row in rows if query in row[2]["name"].lower()]
        rows.sort(key=lambda row: row[2]["stars"], reverse=True)

        return [
            LeaderboardEntry(
                rank=index + 1,
                student_id=sid,
                name=student["name"],
                class_name=cname,
                stars=student["stars"],
                badges=self.achievement_badges(student["stars"], data),
            )
            for index, (cname, sid, student) in enumerate(rows)
        ]

    def statistics(self) -> Statistics:
        data = self._sync.get_data()
        thresholds = achievement_thresholds(data)
        stats = Statistics(classes=len(data["classes"]))
        for _, _, student in iter_students(data):
            stars = student.get("stars", 0)
            stats.total_students += 1
            stats.total_stars += stars
            if stars >= thresholds["gold"]:
                stats.gold += 1
            elif stars >= thresholds["silver"]:
                stats.silver += 1
            elif stars >= thresholds["bronze"]:
                stats.bronze += 1
        return stats
