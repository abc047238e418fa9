"""
Result Analyzer

Heuristic post-processing of result rows for ratio, percentage and average
questions, for the case where the generated SQL returned records instead of
the aggregate. Also builds the deterministic one-line summary that the
formatting prompt rephrases.

Analysis is strictly best-effort: internal failures are logged as
AnalysisError and the caller gets an empty AnalysisResult.
"""

import logging
from typing import Any

from schoolnlq.errors import AnalysisError
from schoolnlq.models.query import AnalysisResult

logger = logging.getLogger(__name__)

GROUPING_FIELDS = ("stream", "category", "type", "status", "class_name", "subject_name")
COUNT_FIELDS = ("count", "student_count", "total_count", "num_students")
ID_FIELDS = ("student_id", "id")
NUMERIC_FIELDS = ("marks_obtained", "max_marks", "amount", "percentage", "avg_percentage")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_float(value: Any) -> float:
    """Lenient numeric coercion; anything unparseable counts as 0."""
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def _fmt_count(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def format_inr(amount: float) -> str:
    """Format an amount with Indian digit grouping (12,34,567.5)."""
    negative = amount < 0
    text = f"{abs(amount):.3f}".rstrip("0").rstrip(".")
    integer, _, fraction = text.partition(".")
    if len(integer) > 3:
        head, tail = integer[:-3], integer[-3:]
        groups: list[str] = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        integer = ",".join([*groups, tail])
    result = f"{integer}.{fraction}" if fraction else integer
    return f"-{result}" if negative else result


class ResultAnalyzer:
    """Ratio, percentage and average heuristics over result rows."""

    def analyze(self, question: str, rows: list[dict[str, Any]]) -> AnalysisResult:
        """
        Apply the first heuristic that produces a result.

        Absence of a match is not an error; the caller falls back to a generic
        summary.
        """
        if not rows:
            return AnalysisResult()

        query = question.lower()
        try:
            if "ratio" in query:
                result = self.ratio(rows)
                if result:
                    return result
            if "percentage" in query or "percent" in query:
                result = self.percentage(rows)
                if result:
                    return result
            if "average" in query or "mean" in query or "avg" in query:
                result = self.average(rows)
                if result:
                    return result
        except AnalysisError as e:
            logger.warning(f"Analysis skipped: {e.message}", extra=e.context)
        except (TypeError, ValueError, ZeroDivisionError, AttributeError) as e:
            error = AnalysisError(f"Heuristic failed: {e}", {"question": question[:100]})
            logger.warning(f"Analysis skipped: {error.message}", extra=error.context)
        return AnalysisResult()

    def ratio(self, rows: list[dict[str, Any]]) -> AnalysisResult | None:
        """Ratio between the two largest groups of a categorical column."""
        group_field = self._find_field(rows[0], GROUPING_FIELDS)
        if group_field is None:
            return None

        groups = self._group_counts(rows, group_field)
        entries = [(name, count) for name, count in groups.items() if count > 0]
        if len(entries) < 2:
            return None

        # sorted() is stable, so ties keep first-seen order
        (group1, count1), (group2, count2) = sorted(entries, key=lambda e: e[1], reverse=True)[:2]
        total = count1 + count2
        ratio = f"{count1 / count2:.2f}:1"
        pct1 = round(count1 / total * 100, 1)
        pct2 = round(count2 / total * 100, 1)

        insights = {
            "ratio": {
                "field": group_field,
                "groups": {group1: count1, group2: count2},
                "ratio": ratio,
                "percentages": {group1: pct1, group2: pct2},
            }
        }
        narrative = (
            f"The ratio of {group1} to {group2} is {ratio} "
            f"({pct1}% {group1}, {pct2}% {group2}). "
            f"Total: {_fmt_count(count1)} {group1} and {_fmt_count(count2)} {group2}."
        )
        return AnalysisResult(narrative=narrative, insights=insights)

    def percentage(self, rows: list[dict[str, Any]]) -> AnalysisResult | None:
        """Frequency distribution over a categorical column."""
        group_field = self._find_field(rows[0], GROUPING_FIELDS)
        if group_field is None:
            return None

        groups: dict[str, int] = {}
        for row in rows:
            value = row.get(group_field)
            if value not in (None, ""):
                key = str(value)
                groups[key] = groups.get(key, 0) + 1

        total = sum(groups.values())
        if total == 0:
            return None

        percentages = {group: round(count / total * 100, 1) for group, count in groups.items()}
        breakdown = ", ".join(f"{group}: {pct}%" for group, pct in percentages.items())
        return AnalysisResult(
            narrative=f"Breakdown: {breakdown}",
            insights={"percentages": percentages, "field": group_field, "counts": groups},
        )

    def average(self, rows: list[dict[str, Any]]) -> AnalysisResult | None:
        """Mean of the first numeric field with positive values."""
        for field in NUMERIC_FIELDS:
            if field not in rows[0]:
                continue
            values = [v for v in (_to_float(row.get(field)) for row in rows) if v > 0]
            if not values:
                continue
            avg = sum(values) / len(values)
            display = f"{avg:.2f}"
            return AnalysisResult(
                narrative=f"The average {field.replace('_', ' ')} is {display}.",
                insights={
                    "average": {
                        "field": field,
                        "value": round(avg, 2),
                        "display": display,
                        "samples": len(values),
                    }
                },
            )
        return None

    def summarize(
        self,
        question: str,
        rows: list[dict[str, Any]],
        analysis: AnalysisResult | None = None,
    ) -> str:
        """Deterministic one-line description of a result set."""
        if not rows:
            return "No results found."

        if analysis is None:
            analysis = self.analyze(question, rows)

        count = len(rows)
        query = question.lower()

        if analysis.narrative:
            return (
                f"{analysis.narrative}\n\n"
                f"Here are the detailed results ({_plural(count, 'record', 'records')}):"
            )

        if "student" in query:
            if "unpaid" in query or "pending" in query or "fee" in query:
                total = self._total_amount(rows)
                students = _plural(count, "student", "students")
                if total > 0:
                    return (
                        f"Here are the students with unpaid fees ({students}, "
                        f"total: ₹{format_inr(total)}):"
                    )
                return f"Here are the students with unpaid fees ({students}):"
            if "absent" in query:
                return f"Here are the absent students ({_plural(count, 'student', 'students')}):"
            return f"Here are the students ({_plural(count, 'student', 'students')}):"

        if "fee" in query:
            total = self._total_amount(rows)
            records = _plural(count, "record", "records")
            if total > 0:
                return f"Here are the fee records ({records}, total: ₹{format_inr(total)}):"
            return f"Here are the fee records ({records}):"

        if "exam" in query or "result" in query:
            return f"Here are the exam results ({_plural(count, 'result', 'results')}):"

        if "attendance" in query:
            return f"Here are the attendance records ({_plural(count, 'record', 'records')}):"

        return f"Here are the results ({_plural(count, 'item', 'items')}):"

    @staticmethod
    def _find_field(row: dict[str, Any], candidates: tuple[str, ...]) -> str | None:
        for field in candidates:
            if field in row:
                return field
        return None

    def _group_counts(self, rows: list[dict[str, Any]], group_field: str) -> dict[str, float]:
        groups: dict[str, float] = {}
        count_field = next((f for f in COUNT_FIELDS if _is_number(rows[0].get(f))), None)

        if count_field:
            # Rows are already aggregated (e.g. COUNT(...) GROUP BY stream)
            for row in rows:
                group = row.get(group_field)
                count = row.get(count_field)
                if group not in (None, "") and _is_number(count) and count > 0:
                    key = str(group)
                    groups[key] = groups.get(key, 0) + count
            return groups

        id_field = next((f for f in ID_FIELDS if rows[0].get(f) is not None), None)
        seen: set[tuple[str, Any]] = set()
        for index, row in enumerate(rows):
            group = row.get(group_field)
            if group in (None, ""):
                continue
            key = str(group)
            identity = (key, str(row.get(id_field))) if id_field else (key, index)
            if identity in seen:
                continue
            seen.add(identity)
            groups[key] = groups.get(key, 0) + 1
        return groups

    @staticmethod
    def _total_amount(rows: list[dict[str, Any]]) -> float:
        return sum(_to_float(row.get("amount") or row.get("fee_amount") or 0) for row in rows)
