"""
Policy records and the in-memory policy catalog.
"""

import json
import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from rlscat.models.policy import Command, Permissive
from rlscat.utils.roles import PUBLIC_ROLE, format_array_literal, normalize_roles

logger = logging.getLogger(__name__)

BUNDLED_SNAPSHOT = "rls_policies.json"

FIELDS = (
    "table_name",
    "policy_name",
    "permissive",
    "command",
    "roles",
    "using_expression",
    "check_expression",
)


class CatalogError(ValueError):
    """Base error for invalid policy snapshots."""


class PolicyValidationError(CatalogError):
    """A record breaks one or more policy rules."""

    def __init__(self, key: tuple[str, str], problems: list[str]):
        self.key = key
        self.problems = problems
        super().__init__(f"{key[0]}.{key[1]}: " + "; ".join(problems))


class DuplicatePolicyError(CatalogError):
    """Two records share the same (table_name, policy_name)."""

    def __init__(self, key: tuple[str, str]):
        self.key = key
        super().__init__(f"Duplicate policy {key[1]!r} on table {key[0]!r}")


def _parse_enum(enum_cls, value, default):
    if value is None or value == "":
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        raise CatalogError(f"Invalid {enum_cls.__name__.lower()}: {value!r}")


def _text_field(data: dict[str, Any], name: str) -> str:
    value = data.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise CatalogError(f"{name} must be a string, got {type(value).__name__}")
    return value


def _expression_field(data: dict[str, Any], name: str) -> Optional[str]:
    value = data.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise CatalogError(f"{name} must be a string or null, got {type(value).__name__}")
    return value if value.strip() else None


@dataclass(frozen=True)
class PolicyRecord:
    """One row-level-security policy on one table."""

    table_name: str
    policy_name: str
    permissive: Permissive = Permissive.PERMISSIVE
    command: Command = Command.ALL
    roles: tuple[str, ...] = (PUBLIC_ROLE,)
    using_expression: Optional[str] = None
    check_expression: Optional[str] = None

    def __post_init__(self):
        try:
            roles = normalize_roles(self.roles)
        except ValueError as e:
            raise CatalogError(str(e))
        # frozen dataclass
        object.__setattr__(self, "roles", roles)

    @property
    def key(self) -> tuple[str, str]:
        return (self.table_name, self.policy_name)

    @property
    def label(self) -> str:
        return f"{self.table_name}.{self.policy_name}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PolicyRecord":
        """Build a record from an exported mapping."""
        if not isinstance(data, dict):
            raise CatalogError(f"Policy record must be a mapping, got {type(data).__name__}")

        unknown = set(data) - set(FIELDS)
        if unknown:
            raise CatalogError(f"Unknown policy fields: {', '.join(sorted(unknown))}")

        return cls(
            table_name=_text_field(data, "table_name"),
            policy_name=_text_field(data, "policy_name"),
            permissive=_parse_enum(Permissive, data.get("permissive"), Permissive.PERMISSIVE),
            command=_parse_enum(Command, data.get("command"), Command.ALL),
            roles=data.get("roles"),
            using_expression=_expression_field(data, "using_expression"),
            check_expression=_expression_field(data, "check_expression"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the exported mapping, roles as an array literal."""
        return {
            "table_name": self.table_name,
            "policy_name": self.policy_name,
            "permissive": self.permissive.value,
            "command": self.command.value,
            "roles": format_array_literal(self.roles),
            "using_expression": self.using_expression,
            "check_expression": self.check_expression,
        }

    def problems(self) -> list[str]:
        """List every rule this record breaks."""
        problems = []
        if not self.table_name.strip():
            problems.append("table_name is empty")
        if not self.policy_name.strip():
            problems.append("policy_name is empty")
        if not self.roles:
            problems.append("roles is empty")
        elif any(not role.strip() for role in self.roles):
            problems.append("roles contains an empty name")
        if self.using_expression is not None and not self.command.allows_using:
            problems.append(f"{self.command.value} policies cannot have a USING expression")
        if self.check_expression is not None and not self.command.allows_check:
            problems.append(f"{self.command.value} policies cannot have a CHECK expression")
        return problems

    def validate(self) -> "PolicyRecord":
        problems = self.problems()
        if problems:
            raise PolicyValidationError(self.key, problems)
        return self

    def applies_to_role(self, role: str) -> bool:
        return PUBLIC_ROLE in self.roles or role in self.roles

    def applies_to_command(self, command: Command) -> bool:
        return self.command is Command.ALL or command is Command.ALL or self.command is command


# =============================================================================
# Snapshot parsing
# =============================================================================


def _records_from_data(data: Any) -> list[PolicyRecord]:
    if data is None:
        return []

    if isinstance(data, dict):
        # YAML layout: {table_name: [policy, ...]}
        records = []
        for table_name, policies in data.items():
            if not isinstance(policies, list):
                raise CatalogError(f"Policies for table {table_name!r} must be a list")
            for policy in policies:
                if not isinstance(policy, dict):
                    raise CatalogError(f"Policy record must be a mapping, got {type(policy).__name__}")
                records.append(PolicyRecord.from_dict({**policy, "table_name": table_name}))
        return records

    if isinstance(data, list):
        return [PolicyRecord.from_dict(item) for item in data]

    raise CatalogError("Snapshot must be a list of policies or a mapping of tables")


def parse_records(text: str, fmt: str = "json") -> list[PolicyRecord]:
    """
    Parse snapshot text into records.

    Args:
        text: The snapshot content.
        fmt: "json" or "yaml".

    Raises:
        CatalogError: On syntax errors or malformed records.
    """
    fmt = fmt.lower()
    if fmt == "json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CatalogError(f"Invalid JSON: {e}")
    elif fmt in ("yaml", "yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise CatalogError(f"Invalid YAML: {e}")
    else:
        raise CatalogError(f"Unsupported snapshot format: {fmt}")

    return _records_from_data(data)


def format_from_path(path: str | Path) -> str:
    suffix = Path(path).suffix.lower()
    return "yaml" if suffix in (".yaml", ".yml") else "json"


def load_records(path: str | Path) -> list[PolicyRecord]:
    """Read a snapshot file, picking the format from its extension."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Snapshot file not found: {path}")
    text = path.read_text(encoding="utf-8")
    return parse_records(text, format_from_path(path))


# =============================================================================
# Catalog
# =============================================================================


class PolicyCatalog:
    """Validated, immutable set of policies keyed by (table, policy name)."""

    def __init__(self, records: Iterable[PolicyRecord]):
        by_key: dict[tuple[str, str], PolicyRecord] = {}
        for record in records:
            record.validate()
            if record.key in by_key:
                raise DuplicatePolicyError(record.key)
            by_key[record.key] = record
        self._records = dict(sorted(by_key.items()))

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records.values())

    def __contains__(self, key) -> bool:
        return key in self._records

    @property
    def records(self) -> list[PolicyRecord]:
        return list(self._records.values())

    def tables(self) -> list[str]:
        return sorted({table for table, _ in self._records})

    def for_table(self, table_name: str) -> list[PolicyRecord]:
        return [r for r in self._records.values() if r.table_name == table_name]

    def get(self, table_name: str, policy_name: str) -> Optional[PolicyRecord]:
        return self._records.get((table_name, policy_name))

    def filter(
        self,
        table: Optional[str] = None,
        command: Optional[Command] = None,
        role: Optional[str] = None,
    ) -> list[PolicyRecord]:
        """
        Select policies by table, command and role.

        ALL policies match any command, and policies granted to ``public``
        match any role.
        """
        result = []
        for record in self._records.values():
            if table is not None and record.table_name != table:
                continue
            if command is not None and not record.applies_to_command(command):
                continue
            if role is not None and not record.applies_to_role(role):
                continue
            result.append(record)
        return result

    def to_list(self) -> list[dict[str, Any]]:
        return [r.to_dict() for r in self._records.values()]

    def to_json(self) -> str:
        return json.dumps(self.to_list(), indent=2, ensure_ascii=False)

    def to_yaml(self) -> str:
        nested: dict[str, list[dict[str, Any]]] = {}
        for record in self._records.values():
            item = record.to_dict()
            del item["table_name"]
            nested.setdefault(record.table_name, []).append(item)
        return yaml.dump(nested, default_flow_style=False, allow_unicode=True, sort_keys=False)

    def diff(self, other: "PolicyCatalog") -> dict[str, dict]:
        """
        Compare this catalog (current) with another (incoming).

        Returns:
            {
                "added": {label: record_dict, ...},
                "removed": {label: record_dict, ...},
                "modified": {label: {"old": ..., "new": ...}, ...},
                "unchanged": {label: record_dict, ...}
            }
        """
        diff = {"added": {}, "removed": {}, "modified": {}, "unchanged": {}}

        for key, new in other._records.items():
            old = self._records.get(key)
            if old is None:
                diff["added"][new.label] = new.to_dict()
            elif old != new:
                diff["modified"][new.label] = {"old": old.to_dict(), "new": new.to_dict()}
            else:
                diff["unchanged"][new.label] = new.to_dict()

        for key, old in self._records.items():
            if key not in other._records:
                diff["removed"][old.label] = old.to_dict()

        return diff


def load_catalog(path: str | Path) -> PolicyCatalog:
    return PolicyCatalog(load_records(path))


def load_bundled() -> PolicyCatalog:
    """Load the snapshot shipped with the package."""
    text = resources.files("rlscat.data").joinpath(BUNDLED_SNAPSHOT).read_text(encoding="utf-8")
    catalog = PolicyCatalog(parse_records(text, "json"))
    logger.debug(f"Loaded {len(catalog)} bundled policies")
    return catalog
