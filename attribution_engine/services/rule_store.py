"""
Attribution Rule Store.

Holds the ordered, scoped pattern rules and the organization refcode mappings
that the attribution resolver consults.

Scopes:
    - Global rules (organization_id is None) apply to every organization.
    - Organization rules apply only to their organization and are always
      consulted before global rules (explicit two-pass lookup).

Ordering within a scope:
    priority ascending, then confidence descending, then name ascending.
    The sort is stable, so equal rules keep their load order.

Invariants enforced at construction (RuleStoreError):
    - (pattern, pattern_kind) is unique within a scope.
    - Rule confidence lies in the high tier band [0.85, 0.95].
    - Regex patterns compile.
    - A refcode appears at most once per organization in the mappings.

Normalization:
    Tracking codes and non-regex patterns are trimmed and lower-cased. Regex
    patterns are compiled with re.IGNORECASE and applied to the lower-cased
    code.

Usage:
    from attribution_engine.services.rule_store import RuleStore

    store = RuleStore(rules=rules, mappings=mappings)
    rule = store.match_rule("org_1", "fb_summer24")
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Pattern, Tuple

from attribution_engine.core.errors import RuleStoreError
from attribution_engine.models.enums import Channel, PatternKind
from attribution_engine.models.schemas import AttributionRule, RefcodeMapping
from attribution_engine.sql.attribution_queries import (
    get_attribution_rules_query,
    get_refcode_mappings_query,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Default global rules
# =============================================================================

# Well-known refcode conventions shared by every organization. Organizations
# override any of these with their own scoped rules.
_DEFAULT_PREFIXES: List[Tuple[str, str]] = [
    ('jp', Channel.META.value),
    ('th', Channel.META.value),
    ('meta_', Channel.META.value),
    ('fb_', Channel.META.value),
    ('ig_', Channel.META.value),
    ('facebook_', Channel.META.value),
    ('instagram_', Channel.META.value),
    ('txt', Channel.SMS.value),
    ('sms', Channel.SMS.value),
    ('text_', Channel.SMS.value),
    ('em', Channel.EMAIL.value),
    ('email', Channel.EMAIL.value),
    ('mail_', Channel.EMAIL.value),
    ('newsletter', Channel.EMAIL.value),
]

DEFAULT_RULE_CONFIDENCE: float = 0.90
DEFAULT_RULE_PRIORITY: int = 100

# Pattern rules score inside the high tier band: above every mapping or fuzzy
# match, below a deterministic click-id match.
HIGH_TIER_MIN_CONFIDENCE: float = 0.85
HIGH_TIER_MAX_CONFIDENCE: float = 0.95


def default_global_rules() -> List[AttributionRule]:
    """
    Build the built-in global prefix rules.

    Longer prefixes get a lower priority number so that, e.g., "email_x"
    matches the "email" rule rather than the shorter "em" rule.
    """
    return [
        AttributionRule(
            id=f"global_{prefix}",
            organization_id=None,
            name=f"{channel.upper()} prefix '{prefix}'",
            pattern=prefix,
            pattern_kind=PatternKind.PREFIX,
            channel=channel,
            confidence=DEFAULT_RULE_CONFIDENCE,
            priority=DEFAULT_RULE_PRIORITY - len(prefix),
        )
        for prefix, channel in _DEFAULT_PREFIXES
    ]


# =============================================================================
# Normalization and matching helpers
# =============================================================================


def normalize_code(code: Optional[str]) -> str:
    """Trim and lower-case a tracking code; None becomes an empty string."""
    if code is None:
        return ''
    return code.strip().lower()


def _pattern_key(rule: AttributionRule) -> Tuple[str, str]:
    pattern = rule.pattern if rule.pattern_kind == PatternKind.REGEX else normalize_code(rule.pattern)
    return (pattern, rule.pattern_kind.value)


def _sort_key(rule: AttributionRule) -> Tuple[int, float, str]:
    return (rule.priority, -rule.confidence, rule.name)


def pattern_matches(
    rule: AttributionRule,
    code: str,
    compiled: Optional[Pattern[str]] = None,
) -> bool:
    """
    Test one rule against an already-normalized tracking code.

    Args:
        rule: The rule to test.
        code: Lower-cased, trimmed tracking code.
        compiled: Pre-compiled regex for REGEX rules (compiled on demand
            when omitted).

    Returns:
        True if the rule's pattern matches the code.
    """
    if not code:
        return False

    kind = rule.pattern_kind
    if kind == PatternKind.REGEX:
        regex = compiled or re.compile(rule.pattern, re.IGNORECASE)
        return regex.search(code) is not None

    pattern = normalize_code(rule.pattern)
    if kind == PatternKind.EXACT:
        return code == pattern
    if kind == PatternKind.PREFIX:
        return code.startswith(pattern)
    if kind == PatternKind.SUFFIX:
        return code.endswith(pattern)
    if kind == PatternKind.CONTAINS:
        return pattern in code
    return False


# =============================================================================
# Rule Store
# =============================================================================


class RuleStore:
    """
    Immutable, validated view over attribution rules and refcode mappings.

    The store is built once per request and shared read-only by every
    resolver call in a batch, so it is safe to use from several threads.
    """

    def __init__(
        self,
        rules: Iterable[AttributionRule] = (),
        mappings: Iterable[RefcodeMapping] = (),
    ) -> None:
        self._rules_by_scope: Dict[Optional[str], List[AttributionRule]] = {}
        self._compiled: Dict[str, Pattern[str]] = {}
        self._mappings: Dict[Tuple[str, str], RefcodeMapping] = {}
        self._refcodes_by_org: Dict[str, List[str]] = {}

        seen: Dict[Optional[str], Dict[Tuple[str, str], str]] = {}
        for rule in rules:
            scope_seen = seen.setdefault(rule.organization_id, {})
            key = _pattern_key(rule)
            if key in scope_seen:
                scope = rule.organization_id or 'global'
                raise RuleStoreError(
                    f"Duplicate rule pattern {key[0]!r} ({key[1]}) in scope {scope}: "
                    f"{scope_seen[key]!r} and {rule.name!r}"
                )
            scope_seen[key] = rule.name

            if not HIGH_TIER_MIN_CONFIDENCE <= rule.confidence <= HIGH_TIER_MAX_CONFIDENCE:
                raise RuleStoreError(
                    f"Rule {rule.name!r} confidence {rule.confidence} is outside the high tier band "
                    f"[{HIGH_TIER_MIN_CONFIDENCE}, {HIGH_TIER_MAX_CONFIDENCE}]"
                )

            if rule.pattern_kind == PatternKind.REGEX:
                try:
                    self._compiled[rule.id] = re.compile(rule.pattern, re.IGNORECASE)
                except re.error as e:
                    raise RuleStoreError(
                        f"Invalid regex in rule {rule.name!r}: {rule.pattern!r} ({e})"
                    ) from e

            if rule.is_active:
                self._rules_by_scope.setdefault(rule.organization_id, []).append(rule)

        for scope_rules in self._rules_by_scope.values():
            scope_rules.sort(key=_sort_key)

        for mapping in mappings:
            code = normalize_code(mapping.refcode)
            if not code:
                continue
            key = (mapping.organization_id, code)
            if key in self._mappings:
                raise RuleStoreError(
                    f"Duplicate refcode mapping {code!r} for organization {mapping.organization_id}"
                )
            self._mappings[key] = mapping
            self._refcodes_by_org.setdefault(mapping.organization_id, []).append(code)

        for codes in self._refcodes_by_org.values():
            codes.sort()

        logger.debug(
            f"RuleStore built: {sum(len(r) for r in self._rules_by_scope.values())} active rules, "
            f"{len(self._mappings)} refcode mappings"
        )

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def match_rule(self, organization_id: str, code: Optional[str]) -> Optional[AttributionRule]:
        """
        Find the winning pattern rule for a tracking code.

        Pass 1 walks the organization's rules, pass 2 the global rules; the
        first rule that matches wins.
        """
        normalized = normalize_code(code)
        if not normalized:
            return None

        for scope in (organization_id, None):
            for rule in self._rules_by_scope.get(scope, []):
                if pattern_matches(rule, normalized, self._compiled.get(rule.id)):
                    return rule
        return None

    # -------------------------------------------------------------------------
    # Refcode mappings
    # -------------------------------------------------------------------------

    def find_mapping(self, organization_id: str, code: Optional[str]) -> Optional[RefcodeMapping]:
        """Exact (normalized) refcode mapping lookup for one organization."""
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self._mappings.get((organization_id, normalized))

    def known_refcodes(self, organization_id: str) -> List[str]:
        """Normalized refcodes of one organization, sorted ascending."""
        return list(self._refcodes_by_org.get(organization_id, []))

    # -------------------------------------------------------------------------
    # Construction from database rows
    # -------------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        rule_rows: Iterable[Mapping[str, Any]],
        mapping_rows: Iterable[Mapping[str, Any]],
        include_defaults: bool = True,
    ) -> 'RuleStore':
        """
        Build a store from raw database rows.

        Built-in global rules are added unless a stored global rule already
        claims the same (pattern, pattern_kind).
        """
        rules = [AttributionRule(**dict(row)) for row in rule_rows]
        if include_defaults:
            taken = {_pattern_key(r) for r in rules if r.is_global}
            rules.extend(r for r in default_global_rules() if _pattern_key(r) not in taken)
        mappings = [RefcodeMapping(**dict(row)) for row in mapping_rows]
        return cls(rules=rules, mappings=mappings)


async def load_rule_store(conn: Any, organization_id: str) -> RuleStore:
    """
    Load the rule store for one organization from the database.

    Args:
        conn: asyncpg connection (or anything exposing an async fetch()).
        organization_id: Organization whose scoped rules and mappings load.

    Raises:
        RuleStoreError: If the stored rules violate a store invariant.
    """
    rule_rows = await conn.fetch(get_attribution_rules_query(), organization_id)
    mapping_rows = await conn.fetch(get_refcode_mappings_query(), organization_id)
    logger.info(
        f"Loaded {len(rule_rows)} rules and {len(mapping_rows)} refcode mappings "
        f"for organization {organization_id}"
    )
    return RuleStore.from_records(rule_rows, mapping_rows)
