"""
Configuration for PNRGOV Reconciliation

Comparison settings loaded from an optional YAML document with environment
overrides. Marker rules are built once here and stay fixed for the run.
"""

import os
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

import yaml

from src.edifact.scanner import DEFAULT_MARKER_RULES, MarkerKind, MarkerRule
from src.edifact.validator import DEFAULT_RCI_LOOKAHEAD
from src.reconciliation.models import MatchingStrategy

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024
DEFAULT_EXTENSIONS = (".txt", ".edi", ".edifact")

_KNOWN_KEYS = {
    "matching_strategy",
    "strict_validation",
    "max_file_size",
    "rci_lookahead",
    "report_same_file_repeats",
    "file_extensions",
    "marker_rules",
    "work_dir",
}


@dataclass(frozen=True)
class ComparisonConfig:
    """Settings for one comparison run."""
    matching_strategy: MatchingStrategy = MatchingStrategy.PNR_NAME
    strict_validation: bool = False
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    rci_lookahead: int = DEFAULT_RCI_LOOKAHEAD
    report_same_file_repeats: bool = True
    file_extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    marker_rules: Tuple[MarkerRule, ...] = field(default=DEFAULT_MARKER_RULES)
    work_dir: Optional[str] = None

    def with_overrides(self, **changes: Any) -> "ComparisonConfig":
        """Return a copy with the given fields replaced (None values ignored)."""
        return replace(self, **{key: value for key, value in changes.items() if value is not None})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matching_strategy": self.matching_strategy.value,
            "strict_validation": self.strict_validation,
            "max_file_size": self.max_file_size,
            "rci_lookahead": self.rci_lookahead,
            "report_same_file_repeats": self.report_same_file_repeats,
            "file_extensions": list(self.file_extensions),
            "marker_rules": [rule.name for rule in self.marker_rules if rule.enabled],
            "work_dir": self.work_dir,
        }


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {name}: {value!r}")


def parse_marker_rule(data: Dict[str, Any]) -> MarkerRule:
    """
    Build a MarkerRule from its YAML mapping.

    Example:
        name: forwarder_una
        kind: all_of
        conditions: ["INFO ", "Message body [UNA"]
        content_after: "Message body ["
        enabled: true

    Raises:
        ValueError: If the mapping is incomplete or the kind is unknown
    """
    if not isinstance(data, dict) or not data.get("name"):
        raise ValueError(f"Marker rule must be a mapping with a name: {data!r}")

    try:
        kind = MarkerKind(str(data.get("kind", "contains")).lower())
    except ValueError:
        valid = ", ".join(member.value for member in MarkerKind)
        raise ValueError(f"Unknown marker kind {data.get('kind')!r} for rule {data['name']}. Valid kinds: {valid}") from None

    conditions = data.get("conditions")
    if isinstance(conditions, str):
        conditions = [conditions]
    if not conditions:
        raise ValueError(f"Marker rule {data['name']} has no conditions")

    return MarkerRule(
        name=str(data["name"]),
        kind=kind,
        conditions=tuple(str(condition) for condition in conditions),
        content_after=str(data.get("content_after", "")),
        enabled=_parse_bool(data.get("enabled", True), f"{data['name']}.enabled"),
        idle_only=_parse_bool(data.get("idle_only", False), f"{data['name']}.idle_only"),
    )


def _apply_rule_switches(rules: Tuple[MarkerRule, ...], switches: Dict[str, Any]) -> Tuple[MarkerRule, ...]:
    """Enable/disable built-in rules by name."""
    unknown = set(switches) - {rule.name for rule in rules}
    if unknown:
        raise ValueError(f"Unknown marker rules: {sorted(unknown)}")
    return tuple(
        replace(rule, enabled=_parse_bool(switches[rule.name], rule.name)) if rule.name in switches else rule
        for rule in rules
    )


def config_from_dict(data: Dict[str, Any]) -> ComparisonConfig:
    """
    Build a ComparisonConfig from a mapping.

    `marker_rules` is either a list of rule mappings (replacing the
    built-in list) or a mapping of built-in rule name -> enabled flag.

    Raises:
        ValueError: On unknown keys or invalid values
    """
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    config = ComparisonConfig()
    changes: Dict[str, Any] = {}

    if "matching_strategy" in data:
        changes["matching_strategy"] = MatchingStrategy.from_name(str(data["matching_strategy"]))
    if "strict_validation" in data:
        changes["strict_validation"] = _parse_bool(data["strict_validation"], "strict_validation")
    if "report_same_file_repeats" in data:
        changes["report_same_file_repeats"] = _parse_bool(
            data["report_same_file_repeats"], "report_same_file_repeats"
        )
    for key in ("max_file_size", "rci_lookahead"):
        if key in data:
            value = int(data[key])
            if value <= 0:
                raise ValueError(f"{key} must be positive, got {value}")
            changes[key] = value
    if "file_extensions" in data:
        extensions: List[str] = [str(ext).lower() for ext in data["file_extensions"]]
        changes["file_extensions"] = tuple(ext if ext.startswith(".") else f".{ext}" for ext in extensions)
    if data.get("work_dir"):
        changes["work_dir"] = str(data["work_dir"])

    rules = data.get("marker_rules")
    if isinstance(rules, list):
        changes["marker_rules"] = tuple(parse_marker_rule(rule) for rule in rules)
    elif isinstance(rules, dict):
        changes["marker_rules"] = _apply_rule_switches(DEFAULT_MARKER_RULES, rules)
    elif rules is not None:
        raise ValueError("marker_rules must be a list of rules or a mapping of rule switches")

    return config.with_overrides(**changes)


def apply_environment(config: ComparisonConfig) -> ComparisonConfig:
    """Apply RECON_MATCHING_STRATEGY / RECON_STRICT_VALIDATION overrides."""
    strategy = os.getenv("RECON_MATCHING_STRATEGY")
    strict = os.getenv("RECON_STRICT_VALIDATION")

    return config.with_overrides(
        matching_strategy=MatchingStrategy.from_name(strategy) if strategy else None,
        strict_validation=_parse_bool(strict, "RECON_STRICT_VALIDATION") if strict else None,
    )


def load_config(path: Optional[str] = None) -> ComparisonConfig:
    """
    Load comparison settings.

    Args:
        path: Optional YAML file; defaults apply when omitted

    Returns:
        ComparisonConfig with environment overrides applied

    Raises:
        FileNotFoundError: If `path` does not exist
        ValueError: If the document is not a mapping or holds invalid values
    """
    config = ComparisonConfig()

    if path:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        config = config_from_dict(data)
        logger.info(f"Loaded configuration from {path}")

    return apply_environment(config)
