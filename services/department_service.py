"""
Department reference data: public listing and the idempotent seed.
"""
from typing import Dict, List, Optional, Sequence

from database.repository import IdentityRepository
from services.schemas import DepartmentPublic
from core.logger import logger


def _seed(n: int, name: str, code: str, description: Optional[str] = None) -> Dict[str, object]:
    return {
        "id": f"550e8400-e29b-41d4-a716-4466554400{n:02d}",
        "name": name,
        "code": code,
        "description": description or f"Department of {name}",
        "is_active": True,
    }


DEFAULT_DEPARTMENTS = [
    _seed(1, "Computer Engineering", "BM"),
    _seed(2, "Electrical and Electronics Engineering", "EE"),
    _seed(3, "Mechanical Engineering", "ME"),
    _seed(4, "Industrial Engineering", "IE"),
    _seed(5, "Civil Engineering", "CE"),
    _seed(6, "Software Engineering", "SE"),
    _seed(7, "Biomedical Engineering", "BME"),
    _seed(8, "Chemical Engineering", "CHE"),
    _seed(9, "Business Administration", "BUS"),
    _seed(10, "Economics", "ECO"),
    _seed(11, "Psychology", "PSY"),
    _seed(12, "Law", "LAW", "Faculty of Law"),
    _seed(13, "Medicine", "MED", "Faculty of Medicine"),
    _seed(14, "Educational Sciences", "EDU"),
    _seed(15, "Architecture", "ARCH"),
]

_SEED_FIELDS = ("name", "description", "is_active")


class DepartmentService:
    def __init__(self, repository: IdentityRepository):
        self.repository = repository

    def list_active(self) -> List[DepartmentPublic]:
        """Active departments ordered by name."""
        return [DepartmentPublic.model_validate(d) for d in self.repository.list_active_departments()]

    def seed(self, departments: Sequence[Dict[str, object]] = DEFAULT_DEPARTMENTS) -> Dict[str, int]:
        """
        Insert or update departments keyed by code. Safe to run repeatedly.

        Returns:
            Counts of created and updated departments
        """
        created = updated = 0
        for data in departments:
            existing = self.repository.find_department_by_code(data["code"])
            if existing is None:
                self.repository.add_department(**data)
                created += 1
                continue

            changed = False
            for field in _SEED_FIELDS:
                if field in data and getattr(existing, field) != data[field]:
                    setattr(existing, field, data[field])
                    changed = True
            if changed:
                self.repository.save_department(existing)
                updated += 1

        logger.info(f"Department seed complete: {created} created, {updated} updated")
        return {"created": created, "updated": updated}
