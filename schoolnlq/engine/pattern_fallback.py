"""
Pattern Fallback Generator

Deterministic regex-to-SQL table for the most frequent question shapes. Used
only when the generation backend is disabled, unconfigured, or fails outright.

Templates are fixed in code and carry the tenant placeholder, so they skip
the keyword checks but still go through tenant substitution.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from schoolnlq.engine.validator import TENANT_PLACEHOLDER, SQLValidator
from schoolnlq.models.query import GeneratedQuery, TenantContext

logger = logging.getLogger(__name__)

CLASS_NAME_MAP = {
    "twelve": "XII", "12th": "XII", "12": "XII",
    "eleven": "XI", "11th": "XI", "11": "XI",
    "ten": "X", "10th": "X", "10": "X",
    "nine": "IX", "9th": "IX", "9": "IX",
    "eight": "VIII", "8th": "VIII", "8": "VIII",
    "seven": "VII", "7th": "VII", "7": "VII",
    "six": "VI", "6th": "VI", "6": "VI",
    "five": "V", "5th": "V", "5": "V",
    "four": "IV", "4th": "IV", "4": "IV",
    "three": "III", "3rd": "III", "3": "III",
    "two": "II", "2nd": "II", "2": "II",
    "one": "I", "1st": "I", "1": "I",
}  # fmt: skip

_CLASS = (
    r"class\s+([xiv\d]+|twelve|eleven|ten|nine|eight|seven|six|five|four|three|two|one"
    r"|1st|2nd|3rd|\d+th)"
)
_ASK = r"(?:show|list|find|get|which|who)"
_T = TENANT_PLACEHOLDER


def normalize_class_name(value: str) -> str:
    """Map numerals, ordinals and number words to the roman class name."""
    normalized = value.lower().strip()
    return CLASS_NAME_MAP.get(normalized, value.upper())


@dataclass(frozen=True)
class PatternRule:
    """One question shape and the SQL template it produces."""

    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str]], str]
    description: str


def _absent_in_class(match: re.Match[str]) -> str:
    class_name = normalize_class_name(match.group(1))
    return f"""
        SELECT DISTINCT s.*, c.name AS class_name, a.status, a.date
        FROM students s
        JOIN classes c ON s.class_id = c.id
        LEFT JOIN attendances a ON s.id = a.student_id AND a.date = CURRENT_DATE
        WHERE s.school_id = '{_T}'
        AND c.name ILIKE '%{class_name}%'
        AND (a.status = 'absent' OR a.status IS NULL)
        ORDER BY s.roll_number
    """


def _students_in_class(match: re.Match[str]) -> str:
    class_name = normalize_class_name(match.group(1))
    return f"""
        SELECT s.*, c.name AS class_name
        FROM students s
        JOIN classes c ON s.class_id = c.id
        WHERE s.school_id = '{_T}'
        AND c.name ILIKE '%{class_name}%'
        AND s.is_active = true
        ORDER BY s.roll_number
    """


def _absent_today(match: re.Match[str]) -> str:
    return f"""
        SELECT DISTINCT s.*, c.name AS class_name, a.status, a.date
        FROM students s
        JOIN classes c ON s.class_id = c.id
        JOIN attendances a ON s.id = a.student_id
        WHERE s.school_id = '{_T}'
        AND a.school_id = '{_T}'
        AND a.date = CURRENT_DATE
        AND a.status = 'absent'
        ORDER BY c.name, s.roll_number
    """


def _pending_fees(match: re.Match[str]) -> str:
    return f"""
        SELECT s.*, f.amount, f.due_date, f.fee_type, f.status, f.id AS fee_id
        FROM students s
        JOIN fees f ON s.id = f.student_id
        WHERE s.school_id = '{_T}'
        AND f.school_id = '{_T}'
        AND f.status = 'pending'
        ORDER BY f.due_date, s.first_name
    """


def _low_attendance(match: re.Match[str]) -> str:
    return f"""
        SELECT s.*, c.name AS class_name,
        COUNT(CASE WHEN a.status = 'present' THEN 1 END) * 100.0 / NULLIF(COUNT(a.id), 0) AS attendance_percentage
        FROM students s
        JOIN classes c ON s.class_id = c.id
        JOIN attendances a ON s.id = a.student_id
        WHERE s.school_id = '{_T}'
        AND a.school_id = '{_T}'
        AND a.date >= CURRENT_DATE - INTERVAL '30 days'
        GROUP BY s.id, c.name
        HAVING COUNT(CASE WHEN a.status = 'present' THEN 1 END) * 100.0 / NULLIF(COUNT(a.id), 0) < 75
        ORDER BY attendance_percentage ASC
    """


def _top_performers(match: re.Match[str]) -> str:
    return f"""
        SELECT s.*, c.name AS class_name,
        AVG(er.marks_obtained * 100.0 / NULLIF(er.max_marks, 0)) AS avg_percentage
        FROM students s
        JOIN classes c ON s.class_id = c.id
        JOIN exam_results er ON s.id = er.student_id
        WHERE s.school_id = '{_T}'
        AND er.school_id = '{_T}'
        GROUP BY s.id, c.name
        ORDER BY avg_percentage DESC
        LIMIT 10
    """


def _upcoming_exams(match: re.Match[str]) -> str:
    return f"""
        SELECT e.*, c.name AS class_name
        FROM exams e
        LEFT JOIN classes c ON e.class_id = c.id
        WHERE e.school_id = '{_T}'
        AND e.start_date >= CURRENT_DATE
        ORDER BY e.start_date ASC
    """


def _count_in_class(match: re.Match[str]) -> str:
    class_name = normalize_class_name(match.group(1))
    return f"""
        SELECT COUNT(*) AS student_count, c.name AS class_name
        FROM students s
        JOIN classes c ON s.class_id = c.id
        WHERE s.school_id = '{_T}'
        AND c.name ILIKE '%{class_name}%'
        AND s.is_active = true
        GROUP BY c.name
        ORDER BY c.name
    """


def _any_students(match: re.Match[str]) -> str:
    return f"""
        SELECT s.*, c.name AS class_name
        FROM students s
        JOIN classes c ON s.class_id = c.id
        WHERE s.school_id = '{_T}'
        AND s.is_active = true
        ORDER BY c.name, s.roll_number
        LIMIT 50
    """


DEFAULT_RULES: tuple[PatternRule, ...] = (
    PatternRule(
        "absent_in_class",
        re.compile(
            _ASK + r".*students?.*(?:in|from|of).*" + _CLASS
            + r".*(?:absent|not present|missing).*(?:today|now)",
            re.IGNORECASE,
        ),
        _absent_in_class,
        "Find students absent today in a specific class",
    ),
    PatternRule(
        "students_in_class",
        re.compile(_ASK + r".*students?.*(?:in|from|of).*" + _CLASS, re.IGNORECASE),
        _students_in_class,
        "Find all students in a specific class",
    ),
    PatternRule(
        "absent_today",
        re.compile(
            _ASK + r".*students?.*(?:absent|not present|missing).*(?:today|now)", re.IGNORECASE
        ),
        _absent_today,
        "Find all students absent today",
    ),
    PatternRule(
        "pending_fees",
        re.compile(_ASK + r".*(?:pending|unpaid|due).*fees?", re.IGNORECASE),
        _pending_fees,
        "Find students with pending fees",
    ),
    PatternRule(
        "low_attendance",
        re.compile(_ASK + r".*students?.*(?:low|poor|bad).*attendance", re.IGNORECASE),
        _low_attendance,
        "Find students with low attendance",
    ),
    PatternRule(
        "top_performers",
        re.compile(
            _ASK + r".*(?:top|best|highest).*(?:performing|scoring|marks|results?).*students?",
            re.IGNORECASE,
        ),
        _top_performers,
        "Find top performing students",
    ),
    PatternRule(
        "upcoming_exams",
        re.compile(
            r"(?:show|list|find|get|which|what).*(?:upcoming|future|scheduled).*exams?",
            re.IGNORECASE,
        ),
        _upcoming_exams,
        "Find upcoming exams",
    ),
    PatternRule(
        "count_in_class",
        re.compile(r"(?:count|number|how many).*students?.*(?:in|from|of).*" + _CLASS, re.IGNORECASE),
        _count_in_class,
        "Count students in a class",
    ),
    PatternRule(
        "any_students",
        re.compile(r"student", re.IGNORECASE),
        _any_students,
        "General student query",
    ),
)


class PatternFallbackGenerator:
    """
    First-match-wins regex table producing tenant-scoped SQL.

    Args:
        validator: Supplies tenant substitution for the compiled templates
        rules: Ordered rule table
    """

    def __init__(
        self,
        validator: SQLValidator | None = None,
        rules: tuple[PatternRule, ...] = DEFAULT_RULES,
    ):
        self.validator = validator or SQLValidator()
        self.rules = rules

    def match(self, question: str) -> tuple[PatternRule, str] | None:
        """Return the first matching rule and its SQL (placeholder intact)."""
        normalized = question.lower().strip()
        for rule in self.rules:
            found = rule.pattern.search(normalized)
            if found:
                return rule, " ".join(rule.build(found).split())
        return None

    def generate(self, question: str, tenant: TenantContext) -> GeneratedQuery | None:
        """Build a GeneratedQuery, or None when no rule matches."""
        matched = self.match(question)
        if matched is None:
            logger.info("No fallback pattern matched", extra={"question": question[:100]})
            return None

        rule, template = matched
        logger.info(f"Fallback pattern '{rule.name}' matched", extra={"rule": rule.name})
        return GeneratedQuery(
            raw_text=template,
            sanitized_sql=self.validator.compile_template(template, tenant),
            description=rule.description,
            source="pattern",
        )
