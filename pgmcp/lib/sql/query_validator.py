"""Classification of caller-supplied SQL.

Raw queries are executed as written; this module only decides whether a
statement is read-only, which makes it safe to re-run after a dropped
connection.
"""

import pglast
from pglast import ast
from pglast.parser import ParseError

from pgmcp.lib.logging_config import get_logger

logger = get_logger(__name__)


def _is_read_only_select(node) -> bool:
    if not isinstance(node, ast.SelectStmt):
        return False
    if node.intoClause is not None or node.lockingClause:
        return False
    if node.withClause is not None:
        for cte in node.withClause.ctes or ():
            if not _is_read_only_select(cte.ctequery):
                return False
    for branch in (node.larg, node.rarg):
        if branch is not None and not _is_read_only_select(branch):
            return False
    return True


def _is_read_only_statement(node) -> bool:
    if isinstance(node, ast.ExplainStmt):
        for option in node.options or ():
            if getattr(option, 'defname', '').lower() == 'analyze':
                return False
        return _is_read_only_select(node.query)
    return _is_read_only_select(node)


def is_read_only_query(query: str) -> bool:
    """Return True if every statement in the query only reads data.

    Plain SELECT (no INTO, no FOR UPDATE/SHARE, only read-only CTEs and set
    operation branches) and EXPLAIN without ANALYZE of such a SELECT count
    as read-only. Text that cannot be parsed is treated as a write.

    Args:
        query: SQL text

    Returns:
        Whether the query is read-only
    """
    if not query or not query.strip():
        return False
    try:
        parsed = pglast.parse_sql(query)
    except (ParseError, pglast.Error) as e:
        logger.debug(f"Could not parse query for classification: {e}")
        return False
    return bool(parsed) and all(_is_read_only_statement(raw.stmt) for raw in parsed)
