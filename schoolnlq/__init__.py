"""
School NLQ

Natural-language-to-SQL query engine for a multi-tenant school ERP.
Turns free-text questions into validated, tenant-scoped, read-only SQL,
executes it, and streams results plus a narrated summary back to the client.
"""

__version__ = "0.1.0"
