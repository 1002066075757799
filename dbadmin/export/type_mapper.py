"""
Type Mapper

Maps column types between engines for cross-engine table copies. Rules
are read from YAML:

    type_mappings:
      mysql_to_postgresql:
        TINYINT:
          target_type: SMALLINT
          safe_fallback: INTEGER
          precision_loss: true
        ENUM:
          target_type: TEXT
          requires_user: true
          user_options:
            - {label: "Convert to TEXT", value: TEXT}
            - {label: "Convert to VARCHAR(255)", value: VARCHAR(255)}

Lookup compares type names case-insensitively. A name with arguments
(VARCHAR2(100), Array(String)) falls back to the rule for its base name;
the arguments are carried onto target_type only when the rule sets
keep_args, and are dropped otherwise (INT(11) -> INTEGER).

Per column, in priority order:
1. No rule: the type passes through unchanged (direct)
2. requires_user: provisionally mapped to target_type, pending a choice
3. precision_loss: mapped to safe_fallback, with a warning
4. Otherwise: mapped to target_type (direct)
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml

from dbadmin.core.config import Settings, get_settings
from dbadmin.errors import ErrorCode, TypeMappingError, invalid_type_choice
from dbadmin.models import ColumnInfo, EngineKind

logger = logging.getLogger(__name__)

PACKAGED_RULES = Path(__file__).resolve().parent.parent / "configs" / "type_mapping.yaml"
USER_RULES = Path.home() / ".dbadmin" / "type_mapping.yaml"

_TYPE_ARGS = re.compile(r"\s*\(.*\)\s*$")


# =============================================================================
# RULES
# =============================================================================

@dataclass
class TypeOption:
    label: str
    value: str

    def to_dict(self) -> dict:
        return {"label": self.label, "value": self.value}


@dataclass
class TypeRule:
    target_type: str = ""
    safe_fallback: str = ""
    precision_loss: bool = False
    requires_user: bool = False
    user_options: List[TypeOption] = field(default_factory=list)
    note: str = ""
    keep_args: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TypeRule":
        return cls(
            target_type=str(data.get("target_type", "") or ""),
            safe_fallback=str(data.get("safe_fallback", "") or ""),
            precision_loss=bool(data.get("precision_loss", False)),
            requires_user=bool(data.get("requires_user", False)),
            user_options=[
                TypeOption(label=str(o.get("label", "")), value=str(o.get("value", "")))
                for o in data.get("user_options") or []
            ],
            note=str(data.get("note", "") or ""),
            keep_args=bool(data.get("keep_args", False)),
        )

    @property
    def option_values(self) -> List[str]:
        return [o.value for o in self.user_options]

    def to_dict(self) -> dict:
        return {
            "targetType": self.target_type,
            "safeFallback": self.safe_fallback,
            "precisionLoss": self.precision_loss,
            "requiresUser": self.requires_user,
            "userOptions": [o.to_dict() for o in self.user_options],
            "note": self.note,
            "keepArgs": self.keep_args,
        }


@dataclass
class TypeSummary:
    total: int = 0
    direct: int = 0
    fallback: int = 0
    user_choice: int = 0
    lossy_count: int = 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "direct": self.direct,
            "fallback": self.fallback,
            "userChoice": self.user_choice,
            "lossyCount": self.lossy_count,
        }


@dataclass
class TypeMappingResult:
    success: bool = True
    mapped: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    requires_user: Dict[str, TypeRule] = field(default_factory=dict)
    summary: TypeSummary = field(default_factory=TypeSummary)
    # Columns per pending source type
    pending_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "mapped": dict(self.mapped),
            "warnings": list(self.warnings),
            "requiresUser": {k: r.to_dict() for k, r in self.requires_user.items()},
            "summary": self.summary.to_dict(),
        }


def mapping_key(source: EngineKind, target: EngineKind) -> str:
    return f"{EngineKind.parse(source).value}_to_{EngineKind.parse(target).value}"


def base_type(type_name: str) -> str:
    """Uppercased type name without its (length/precision) arguments."""
    return _TYPE_ARGS.sub("", type_name).strip().upper()


def type_args(type_name: str) -> str:
    """The "(...)" argument suffix of a type name, or an empty string."""
    match = _TYPE_ARGS.search(type_name)
    return match.group(0).strip() if match else ""


# =============================================================================
# MAPPER
# =============================================================================

class TypeMapper:
    """
    Usage:
        mapper = TypeMapper.load_default()
        result = mapper.map_types(EngineKind.MYSQL, EngineKind.POSTGRESQL, schema.columns)
        mapper.apply_user_choices(result, {"ENUM": "VARCHAR(255)"})
    """

    def __init__(self, rules: Optional[Mapping[str, Mapping[str, TypeRule]]] = None):
        self.rules: Dict[str, Dict[str, TypeRule]] = {
            key: dict(table) for key, table in (rules or {}).items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TypeMapper":
        raw = (data or {}).get("type_mappings") or {}
        if not isinstance(raw, dict):
            raise TypeMappingError(
                "type_mappings must be a mapping of '<source>_to_<target>' tables",
                code=ErrorCode.ERR_TYPE_MAPPING_CONFIG,
            )
        rules = {}
        for key, table in raw.items():
            rules[str(key)] = {
                str(type_name): TypeRule.from_dict(rule or {})
                for type_name, rule in (table or {}).items()
            }
        return cls(rules)

    @classmethod
    def from_file(cls, path: Path) -> "TypeMapper":
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise TypeMappingError(
                f"Failed to load type mapping rules from {path}: {e}",
                code=ErrorCode.ERR_TYPE_MAPPING_CONFIG,
                original_error=e,
                details={"path": str(path)},
            )

        mapper = cls.from_dict(data or {})
        logger.info(f"Loaded type mapping rules from {path} ({len(mapper.rules)} engine pair(s))")
        return mapper

    @classmethod
    def load_default(cls, settings: Optional[Settings] = None) -> "TypeMapper":
        """Configured path, then ~/.dbadmin/type_mapping.yaml, then the packaged rules."""
        settings = settings or get_settings()
        if settings.type_mapping_path:
            return cls.from_file(settings.type_mapping_path)
        if USER_RULES.exists():
            return cls.from_file(USER_RULES)
        return cls.from_file(PACKAGED_RULES)

    def pairs(self) -> List[str]:
        return sorted(self.rules)

    def find_rule(self, table: Mapping[str, TypeRule], type_name: str) -> Tuple[Optional[TypeRule], str]:
        """
        Rule for ``type_name`` plus the argument suffix to carry onto its
        target. The full name is tried before the base name; keys compare
        case-insensitively, so ``Array(String)`` reaches an ``Array`` rule.
        """
        folded = {name.upper(): rule for name, rule in table.items()}
        rule = table.get(type_name) or folded.get(type_name.strip().upper())
        if rule is not None:
            return rule, ""

        rule = folded.get(base_type(type_name))
        if rule is None:
            return None, ""
        return rule, type_args(type_name) if rule.keep_args else ""

    def map_types(
        self, source: Any, target: Any, columns: Sequence[ColumnInfo]
    ) -> TypeMappingResult:
        source, target = EngineKind.parse(source), EngineKind.parse(target)
        result = TypeMappingResult(summary=TypeSummary(total=len(columns)))

        table = self.rules.get(mapping_key(source, target)) if source is not target else None
        if not table:
            for col in columns:
                result.mapped[col.type] = col.type
            result.summary.direct = len(columns)
            return result

        for col in columns:
            rule, args = self.find_rule(table, col.type)
            if rule is None:
                result.mapped[col.type] = col.type
                result.summary.direct += 1
            elif rule.requires_user:
                result.requires_user[col.type] = rule
                result.pending_counts[col.type] = result.pending_counts.get(col.type, 0) + 1
                result.mapped[col.type] = rule.target_type
                result.summary.user_choice += 1
            elif rule.precision_loss:
                result.mapped[col.type] = rule.safe_fallback
                result.summary.fallback += 1
                result.summary.lossy_count += 1
                result.warnings.append(f"{col.type} → {rule.safe_fallback} (precision loss)")
            else:
                target_type = rule.target_type
                if args and "(" not in target_type:
                    target_type += args
                result.mapped[col.type] = target_type
                result.summary.direct += 1

        if result.warnings:
            logger.info(
                f"Type mapping {source.value} -> {target.value}: "
                f"{result.summary.lossy_count} lossy column(s), {len(result.requires_user)} type(s) pending"
            )
        return result

    def apply_user_choices(self, result: TypeMappingResult, choices: Mapping[str, str]) -> None:
        """
        Resolve pending types. Every choice is validated first, so an
        invalid one leaves ``result`` untouched.

        Raises:
            TypeMappingError: If a choice is not among the rule's options
        """
        accepted = {}
        for source_type, choice in choices.items():
            rule = result.requires_user.get(source_type)
            if rule is None:
                logger.debug(f"Ignoring choice for {source_type}: no pending decision")
                continue
            if choice not in rule.option_values:
                raise invalid_type_choice(source_type, choice, rule.option_values)
            accepted[source_type] = choice

        for source_type, choice in accepted.items():
            result.mapped[source_type] = choice
            result.summary.user_choice -= result.pending_counts.pop(source_type, 1)
            del result.requires_user[source_type]
