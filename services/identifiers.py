"""
Generate human-readable student and employee numbers.

Student numbers:  <DeptCode><YY><4-digit seq>   e.g. CS240001
Employee numbers: <DeptCode><5-digit seq>       e.g. CS00001

The next number is the current maximum in the scope plus one. Two concurrent
registrations can compute the same candidate; the unique constraint on the
profile table is the arbiter, and the loser moves on to the next value.
"""
from typing import Callable, TypeVar

from auth.errors import IdentifierExhaustedError
from database.repository import IdentityRepository, UniqueViolation
from core.logger import logger

T = TypeVar("T")

STUDENT_SEQ_WIDTH = 4
EMPLOYEE_SEQ_WIDTH = 5


def student_prefix(dept_code: str, year: int) -> str:
    return f"{dept_code}{year % 100:02d}"


class IdentifierGenerator:
    """Scan-max-then-increment allocation with retry on unique conflicts."""

    def __init__(self, repository: IdentityRepository, max_attempts: int = 5):
        self.repository = repository
        self.max_attempts = max_attempts

    def next_student_number(self, dept_code: str, year: int) -> str:
        """Next candidate student number for (dept_code, year); not reserved."""
        prefix = student_prefix(dept_code, year)
        seq = self.repository.max_student_sequence(prefix, STUDENT_SEQ_WIDTH) + 1
        return f"{prefix}{seq:0{STUDENT_SEQ_WIDTH}d}"

    def next_employee_number(self, dept_code: str) -> str:
        """Next candidate employee number for dept_code; not reserved."""
        seq = self.repository.max_employee_sequence(dept_code, EMPLOYEE_SEQ_WIDTH) + 1
        return f"{dept_code}{seq:0{EMPLOYEE_SEQ_WIDTH}d}"

    def allocate_student_number(self, dept_code: str, year: int, insert: Callable[[str], T]) -> T:
        """
        Insert a row keyed by a fresh student number.

        Args:
            dept_code: Department code prefix
            year: Enrollment year (last two digits are used)
            insert: Called with each candidate; must raise UniqueViolation on collision

        Returns:
            Whatever `insert` returned for the winning candidate
        """
        prefix = student_prefix(dept_code, year)
        start = self.repository.max_student_sequence(prefix, STUDENT_SEQ_WIDTH) + 1
        return self._allocate(prefix, STUDENT_SEQ_WIDTH, start, insert)

    def allocate_employee_number(self, dept_code: str, insert: Callable[[str], T]) -> T:
        """Insert a row keyed by a fresh employee number (see allocate_student_number)."""
        start = self.repository.max_employee_sequence(dept_code, EMPLOYEE_SEQ_WIDTH) + 1
        return self._allocate(dept_code, EMPLOYEE_SEQ_WIDTH, start, insert)

    def _allocate(self, prefix: str, width: int, start: int, insert: Callable[[str], T]) -> T:
        seq = start
        for attempt in range(1, self.max_attempts + 1):
            if seq >= 10 ** width:
                break
            candidate = f"{prefix}{seq:0{width}d}"
            try:
                return insert(candidate)
            except UniqueViolation:
                logger.warning(
                    f"Identifier {candidate} taken concurrently (attempt {attempt}/{self.max_attempts}), retrying"
                )
                seq += 1
        raise IdentifierExhaustedError()
