"""
PostgreSQL text[] literal handling for policy role lists.

pg_policies exports roles as an array literal such as ``{public}`` or
``{authenticated,"Read Only"}``.
"""

from typing import Iterable

PUBLIC_ROLE = "public"

_SPECIAL_CHARS = set('{},"\\')


def parse_array_literal(literal: str) -> list[str]:
    """
    Parse a one-dimensional PostgreSQL array literal into its elements.

    Args:
        literal: Text such as ``{a,b}`` or ``{"x, y",z}``.

    Returns:
        The elements in order, with quoting and escapes removed.

    Raises:
        ValueError: If the text is not a brace-delimited array.
    """
    text = literal.strip()
    if len(text) < 2 or text[0] != "{" or text[-1] != "}":
        raise ValueError(f"Not an array literal: {literal!r}")

    body = text[1:-1]
    items: list[str] = []
    if not body.strip():
        return items

    current: list[str] = []
    quoted = False
    in_quotes = False
    escaped = False

    for ch in body:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            in_quotes = not in_quotes
            quoted = True
        elif ch == "," and not in_quotes:
            items.append(_finish_element(current, quoted))
            current, quoted = [], False
        else:
            current.append(ch)

    if in_quotes or escaped:
        raise ValueError(f"Unterminated array literal: {literal!r}")
    items.append(_finish_element(current, quoted))
    return items


def _finish_element(chars: list[str], quoted: bool) -> str:
    value = "".join(chars)
    # Unquoted elements ignore surrounding whitespace
    return value if quoted else value.strip()


def format_array_literal(items: Iterable[str]) -> str:
    """Render elements as a PostgreSQL array literal, quoting where needed."""
    return "{" + ",".join(_format_element(item) for item in items) + "}"


def _format_element(item: str) -> str:
    needs_quotes = (
        not item
        or item.upper() == "NULL"
        or item != item.strip()
        or any(ch in _SPECIAL_CHARS or ch.isspace() for ch in item)
    )
    if not needs_quotes:
        return item
    escaped = item.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def normalize_roles(roles) -> tuple[str, ...]:
    """
    Turn an array literal, list, tuple, or None into a sorted, de-duplicated tuple.

    None and empty strings fall back to ``public``, matching the
    CREATE POLICY default.

    Raises:
        ValueError: If roles is any other type or holds a non-string name.
    """
    if roles is None or roles == "":
        return (PUBLIC_ROLE,)
    if isinstance(roles, str):
        roles = parse_array_literal(roles) if roles.strip().startswith("{") else [roles]
    elif not isinstance(roles, (list, tuple)):
        raise ValueError(f"roles must be an array literal or a list, got {type(roles).__name__}")

    for role in roles:
        if not isinstance(role, str):
            raise ValueError(f"role names must be strings, got {type(role).__name__}")
    return tuple(sorted(set(roles)))
