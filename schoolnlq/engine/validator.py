"""
SQL Validator / Sanitizer

Lexical safety gate between untrusted generation output and the store.

Checks run in a fixed order:
1. Strip Markdown code fences and surrounding whitespace
2. Reject denylisted statement-altering keywords (case-insensitive)
3. Require the statement to start with SELECT
4. Require exactly one statement (a single trailing semicolon is dropped)
5. Replace the tenant placeholder with the caller's tenant id

Substitution runs only after every check has passed, so text smuggled in via
the placeholder is never able to skip the denylist scan.

NO LLM calls and no parsing beyond statement splitting. This is a
conservative lexical filter, not a query planner.
"""

import logging
import re
from typing import Literal

import sqlparse

from schoolnlq.errors import SQLValidationError
from schoolnlq.models.query import (
    TENANT_ID_PATTERN,
    RawGenerationText,
    SanitizedSQL,
    TenantContext,
)

logger = logging.getLogger(__name__)

TENANT_PLACEHOLDER = "<school_id_from_context>"

DENYLIST = (
    "DROP",
    "DELETE",
    "TRUNCATE",
    "ALTER",
    "CREATE",
    "INSERT",
    "UPDATE",
    "GRANT",
    "REVOKE",
)

_FENCE_OPEN = re.compile(r"```sql[ \t]*\n?", re.IGNORECASE)
_FENCE_ANY = re.compile(r"```[ \t]*\n?")

KeywordMatch = Literal["substring", "token"]


class SQLValidator:
    """
    Validates generated text and produces SanitizedSQL.

    Args:
        keyword_match: "substring" rejects a denylisted keyword anywhere,
            including inside identifiers such as ``update_count``. "token"
            only rejects whole words.
    """

    def __init__(self, keyword_match: KeywordMatch = "substring"):
        if keyword_match not in ("substring", "token"):
            raise ValueError(f"Unknown keyword match mode: {keyword_match}")
        self.keyword_match = keyword_match
        self._token_patterns = {
            keyword: re.compile(rf"\b{keyword}\b", re.IGNORECASE) for keyword in DENYLIST
        }

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def validate(self, raw: RawGenerationText | str, tenant: TenantContext) -> SanitizedSQL:
        """
        Run every check and substitute the tenant placeholder.

        Raises:
            SQLValidationError: Naming the first rule that failed
        """
        text = raw.text if isinstance(raw, RawGenerationText) else raw
        sql = self._check(text)

        if TENANT_PLACEHOLDER not in sql:
            logger.warning(
                "Validated SQL carries no tenant placeholder",
                extra={"tenant_id": tenant.tenant_id},
            )

        sql = self.substitute_tenant(sql, tenant)
        logger.debug(f"SQL passed validation: {sql[:200]}", extra={"tenant_id": tenant.tenant_id})
        return SanitizedSQL(sql=sql)

    def validate_statement(self, text: str) -> SanitizedSQL:
        """
        Validate caller-supplied SQL that was already tenant-scoped.

        Used by /execute-sql to re-fetch large results. The placeholder must
        not appear, since there is no tenant to substitute.

        Raises:
            SQLValidationError: If any check fails or a placeholder remains
        """
        sql = self._check(text)
        if TENANT_PLACEHOLDER in sql:
            raise SQLValidationError(
                "placeholder",
                "SQL still contains the tenant placeholder",
            )
        return SanitizedSQL(sql=sql)

    def compile_template(self, template: str, tenant: TenantContext) -> SanitizedSQL:
        """
        Turn a fixed, code-defined SQL template into SanitizedSQL.

        Only tenant substitution is applied; templates are not generated text.
        """
        return SanitizedSQL(sql=self.substitute_tenant(template.strip(), tenant))

    # ------------------------------------------------------------------
    # Individual rules
    # ------------------------------------------------------------------

    @staticmethod
    def strip_formatting(text: str) -> str:
        """Remove Markdown code fences and surrounding whitespace."""
        text = _FENCE_OPEN.sub("", text)
        text = _FENCE_ANY.sub("", text)
        return text.strip()

    def find_denylisted(self, sql: str) -> str | None:
        """Return the first denylisted keyword present, if any."""
        upper = sql.upper()
        for keyword in DENYLIST:
            if self.keyword_match == "substring":
                if keyword in upper:
                    return keyword
            elif self._token_patterns[keyword].search(sql):
                return keyword
        return None

    @staticmethod
    def substitute_tenant(sql: str, tenant: TenantContext) -> str:
        """
        Replace every tenant placeholder with the tenant id.

        Raises:
            SQLValidationError: If the tenant id could break out of a string literal
        """
        tenant_id = tenant.tenant_id
        if not TENANT_ID_PATTERN.match(tenant_id):
            raise SQLValidationError(
                "tenant_id",
                "Tenant identifier contains characters that are not allowed in SQL",
            )
        return sql.replace(TENANT_PLACEHOLDER, tenant_id)

    def _check(self, text: str) -> str:
        sql = self.strip_formatting(text)
        if not sql:
            raise SQLValidationError("empty", "No SQL statement was generated")

        keyword = self.find_denylisted(sql)
        if keyword:
            logger.warning(f"Rejected SQL with denylisted keyword {keyword}")
            raise SQLValidationError(
                "denylist",
                f"Dangerous SQL keyword detected: {keyword}",
                {"keyword": keyword},
            )

        if not sql.upper().startswith("SELECT"):
            logger.warning("Rejected SQL that does not start with SELECT")
            raise SQLValidationError("select_only", "Only SELECT queries are allowed")

        statements = [stmt for stmt in sqlparse.split(sql) if stmt.strip()]
        if len(statements) > 1:
            logger.warning(f"Rejected SQL with {len(statements)} statements")
            raise SQLValidationError(
                "single_statement",
                "Multiple SQL statements detected - only a single SELECT is allowed",
            )

        if sql.endswith(";"):
            sql = sql[:-1].rstrip()
        return sql
