"""
RLS policy model.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, Integer, Text, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from rlscat.models.database import Base


def _utcnow():
    """Get current UTC time."""
    return datetime.now(timezone.utc)


class Permissive(str, Enum):
    """How a policy combines with the other policies on its table."""

    PERMISSIVE = "PERMISSIVE"
    RESTRICTIVE = "RESTRICTIVE"


class Command(str, Enum):
    """Statement type a policy applies to."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "ALL"

    @property
    def allows_using(self) -> bool:
        return self is not Command.INSERT

    @property
    def allows_check(self) -> bool:
        return self in (Command.INSERT, Command.UPDATE, Command.ALL)


class RlsPolicy(Base):
    """Stored row of the policy catalog."""

    __tablename__ = "rls_policies"
    __table_args__ = (
        UniqueConstraint("table_name", "policy_name", name="uq_rls_policies_table_policy"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(255), index=True)
    policy_name: Mapped[str] = mapped_column(String(255))
    permissive: Mapped[Permissive] = mapped_column(
        SQLEnum(Permissive), default=Permissive.PERMISSIVE
    )
    command: Mapped[Command] = mapped_column(SQLEnum(Command), default=Command.ALL)
    roles: Mapped[str] = mapped_column(Text, default='["public"]')  # JSON list
    using_expression: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    check_expression: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    @property
    def role_list(self) -> list[str]:
        return json.loads(self.roles)

    def __repr__(self) -> str:
        return f"<RlsPolicy(table={self.table_name}, name={self.policy_name}, command={self.command.value})>"
