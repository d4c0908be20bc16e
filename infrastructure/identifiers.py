"""
SQL identifier quoting.

Table and column names cannot be bound as parameters, so they are embedded
as quoted identifiers. Callers resolve names against the live schema first;
quoting is the second line, never the only one.
"""


def quote_identifier(name: str) -> str:
    """
    Quote a table or column name for direct use in SQL text.

    Wraps the name in double quotes and doubles any embedded double quote.
    Empty input yields an empty string; this is escaping, not validation.

    Example:
        >>> quote_identifier('users')
        '"users"'
        >>> quote_identifier('we"ird')
        '"we""ird"'
    """
    if not name:
        return ""
    return '"' + str(name).replace('"', '""') + '"'


def qualified_table(table: str, schema: str = "public") -> str:
    """Render schema.table with the table name quoted, e.g. public."users"."""
    return f"{schema}.{quote_identifier(table)}"
