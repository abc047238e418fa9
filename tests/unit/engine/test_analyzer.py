"""
Unit tests for ResultAnalyzer.

Tests ratio, percentage and average heuristics and the deterministic
summaries that the formatting prompt rephrases.
"""

import pytest

from schoolnlq.engine.analyzer import ResultAnalyzer, format_inr


@pytest.fixture
def analyzer():
    """Create analyzer instance."""
    return ResultAnalyzer()


class TestRatio:
    """Test ratio between the two largest groups."""

    def test_ratio_without_id_field(self, analyzer):
        """Rows without ids count one each."""
        rows = [{"stream": "Science"}, {"stream": "Science"}, {"stream": "Arts"}]

        result = analyzer.analyze("What is the ratio of science to arts students?", rows)

        ratio = result.insights["ratio"]
        assert ratio["groups"] == {"Science": 2, "Arts": 1}
        assert ratio["ratio"] == "2.00:1"
        assert ratio["percentages"] == {"Science": 66.7, "Arts": 33.3}
        assert result.narrative == (
            "The ratio of Science to Arts is 2.00:1 (66.7% Science, 33.3% Arts). "
            "Total: 2 Science and 1 Arts."
        )

    def test_ratio_deduplicates_by_student_id(self, analyzer):
        """A student listed once per subject counts once."""
        rows = [
            {"student_id": "a", "stream": "Science"},
            {"student_id": "a", "stream": "Science"},
            {"student_id": "b", "stream": "Science"},
            {"student_id": "c", "stream": "Arts"},
        ]

        result = analyzer.ratio(rows)

        assert result.insights["ratio"]["groups"] == {"Science": 2, "Arts": 1}

    def test_ratio_uses_aggregated_counts(self, analyzer):
        """Rows that already carry a count column are summed."""
        rows = [
            {"stream": "Science", "student_count": 30},
            {"stream": "Arts", "student_count": 10},
        ]

        result = analyzer.ratio(rows)

        assert result.insights["ratio"]["ratio"] == "3.00:1"
        assert result.insights["ratio"]["percentages"] == {"Science": 75.0, "Arts": 25.0}

    def test_ratio_needs_two_groups(self, analyzer):
        """A single group is not a ratio."""
        assert analyzer.ratio([{"stream": "Science"}, {"stream": "Science"}]) is None

    def test_ratio_needs_grouping_field(self, analyzer):
        """Rows without a categorical column are skipped."""
        assert analyzer.ratio([{"name": "a"}, {"name": "b"}]) is None


class TestPercentage:
    """Test frequency distribution."""

    def test_breakdown(self, analyzer):
        """Percentages per status value."""
        rows = [
            {"status": "present"},
            {"status": "present"},
            {"status": "present"},
            {"status": "absent"},
        ]

        result = analyzer.analyze("percentage of students present", rows)

        assert result.insights["percentages"] == {"present": 75.0, "absent": 25.0}
        assert result.narrative == "Breakdown: present: 75.0%, absent: 25.0%"


class TestAverage:
    """Test mean of positive numeric values."""

    def test_average_filters_zero(self, analyzer):
        """Zero marks are excluded from the average."""
        rows = [{"marks_obtained": 40}, {"marks_obtained": 0}, {"marks_obtained": 80}]

        result = analyzer.analyze("What is the average marks?", rows)

        average = result.insights["average"]
        assert average["display"] == "60.00"
        assert average["value"] == 60.0
        assert average["samples"] == 2
        assert result.narrative == "The average marks obtained is 60.00."

    def test_average_parses_numeric_strings(self, analyzer):
        """Decimal columns serialized as strings still count."""
        rows = [{"amount": "1500.50"}, {"amount": "499.50"}]

        result = analyzer.average(rows)

        assert result.insights["average"]["display"] == "1000.00"

    def test_average_without_numeric_field(self, analyzer):
        """No known numeric column means no average."""
        assert analyzer.average([{"name": "x"}]) is None


class TestAnalyze:
    """Test heuristic selection and fallthrough."""

    def test_no_keywords_no_match(self, analyzer, student_rows):
        """Plain listings are not analyzed."""
        result = analyzer.analyze("show students", student_rows)

        assert not result.matched
        assert result.insights == {}

    def test_empty_rows(self, analyzer):
        """Nothing to analyze in an empty result."""
        assert not analyzer.analyze("ratio of science to arts", []).matched

    def test_ratio_falls_through_to_average(self, analyzer):
        """A failed ratio does not block the average heuristic."""
        rows = [{"marks_obtained": 50}, {"marks_obtained": 70}]

        result = analyzer.analyze("ratio and average of marks", rows)

        assert result.insights["average"]["display"] == "60.00"

    def test_internal_failure_returns_empty(self, analyzer, caplog):
        """Heuristic failures are logged, never raised."""
        rows = [{"stream": "Science"}, {"stream": "Arts"}]
        analyzer.ratio = lambda rows: 1 / 0

        result = analyzer.analyze("ratio of streams", rows)

        assert not result.matched
        assert "Analysis skipped" in caplog.text


class TestSummarize:
    """Test deterministic result summaries."""

    def test_empty(self, analyzer):
        assert analyzer.summarize("show students", []) == "No results found."

    def test_narrative_first(self, analyzer, student_rows):
        """Matched analysis leads the summary."""
        summary = analyzer.summarize("ratio of science to arts", student_rows)

        assert summary.startswith("The ratio of Science to Arts is 2.00:1")
        assert summary.endswith("Here are the detailed results (3 records):")

    def test_unpaid_fees_total(self, analyzer):
        """Fee summaries carry an INR total."""
        rows = [{"amount": 125000}, {"amount": "2500.5"}]

        summary = analyzer.summarize("students with pending fees", rows)

        assert summary == "Here are the students with unpaid fees (2 students, total: ₹1,27,500.5):"

    def test_absent_students(self, analyzer):
        summary = analyzer.summarize("which students are absent", [{"id": 1}])

        assert summary == "Here are the absent students (1 student):"

    @pytest.mark.parametrize(
        ("question", "expected"),
        [
            ("show fee records", "Here are the fee records (2 records):"),
            ("exam results for class X", "Here are the exam results (2 results):"),
            ("attendance for today", "Here are the attendance records (2 records):"),
            ("list classes", "Here are the results (2 items):"),
        ],
    )
    def test_topic_phrasing(self, analyzer, question, expected):
        assert analyzer.summarize(question, [{"x": 1}, {"x": 2}]) == expected


class TestFormatInr:
    """Test Indian digit grouping."""

    @pytest.mark.parametrize(
        ("amount", "expected"),
        [
            (0, "0"),
            (999, "999"),
            (1000, "1,000"),
            (100000, "1,00,000"),
            (12345678.5, "1,23,45,678.5"),
            (-2500, "-2,500"),
        ],
    )
    def test_grouping(self, amount, expected):
        assert format_inr(amount) == expected
