# rlscat Utils
from rlscat.utils.crypto import hash_password, verify_password
from rlscat.utils.roles import (
    PUBLIC_ROLE,
    parse_array_literal,
    format_array_literal,
    normalize_roles,
)

__all__ = [
    "hash_password",
    "verify_password",
    "PUBLIC_ROLE",
    "parse_array_literal",
    "format_array_literal",
    "normalize_roles",
]
