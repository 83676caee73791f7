"""Feature description classification and name matching.

Archetype feature descriptions are free text with no formal schema. This
module turns that text into structured signals (level, replacement target,
modification target, classification) and matches targets against a class's
base feature names despite tiering and formatting differences.

Every function except ``resolve_associations`` and ``parse_archetype`` is
pure: text in, structured result out. The matcher can be replaced without
touching diff or apply logic as long as two rules hold:

1. Classification priority is replacement > modification > additive > unknown.
2. ``normalize_name`` strips exactly one trailing tier marker.
"""

from __future__ import annotations

import asyncio
import html
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from rapidfuzz import fuzz, process

from archetype_manager.core.config import get_settings
from archetype_manager.core.exceptions import MatchFailure, ParseAmbiguity
from archetype_manager.core.logging import get_logger
from archetype_manager.models.features import (
    ArchetypeDefinition,
    ArchetypeFeature,
    FeatureClassification,
    FeatureRecord,
)


if TYPE_CHECKING:
    from archetype_manager.host.interfaces import FeatureResolver

logger = get_logger(__name__)


# =============================================================================
# Patterns
# =============================================================================

_TAG_RE = re.compile(r"<[^>]+>")
_PARENTHETICAL_RE = re.compile(r"\([^()]*\)")
_TIER_RE = re.compile(r"\d+|(?=[ivx]+$)x{0,3}(?:ix|iv|v?i{0,3})")
_SLUG_RE = re.compile(r"[^a-z0-9]+")

LEVEL_RE = re.compile(r"\blevel\s*:\s*(\d+)", re.IGNORECASE)
REPLACES_RE = re.compile(
    r"\breplaces?\s+(?:the\s+)?(.+?)(?:\s+class\s+(?:features?|abilit(?:y|ies)))?\s*\.",
    re.IGNORECASE,
)
MODIFIES_RE = re.compile(
    r"\bmodif(?:y|ies|ying)\s+(?:the\s+)?(.+?)(?:\s+class\s+(?:features?|abilit(?:y|ies)))?\s*\.",
    re.IGNORECASE,
)
AS_BUT_RE = re.compile(r"\bas the .+? (?:class feature|ability),?\s+but\b", re.IGNORECASE)


@dataclass(frozen=True)
class Classification:
    """Result of classifying one description.

    Attributes:
        type: The edit intent.
        target: Raw (un-normalized) target text, for replacement and
            modification only.
    """

    type: FeatureClassification
    target: str | None = None


# =============================================================================
# Text Helpers
# =============================================================================


def _plain_text(description: str | None) -> str:
    """Strip markup and collapse whitespace."""
    if not description:
        return ""
    text = html.unescape(_TAG_RE.sub(" ", description))
    return " ".join(text.split())


def strip_parentheticals(text: str) -> str:
    """Lowercase ``text``, drop every parenthetical (nested ones included), collapse spaces."""
    text = text.lower()
    count = 1
    while count:
        text, count = _PARENTHETICAL_RE.subn(" ", text)
    return " ".join(text.split())


def _is_tier_marker(token: str) -> bool:
    return bool(token) and _TIER_RE.fullmatch(token) is not None


def normalize_name(name: str | None) -> str:
    """Normalize a feature name for matching.

    Lowercases, trims, removes every parenthetical, and strips one trailing
    tier marker (integer or roman numeral) when it is the final token. A
    marker is left alone when the token before it is also a marker, which
    keeps the function idempotent.

    Args:
        name: Feature name as displayed.

    Returns:
        Normalized name, or ``''`` for empty input.

    Example:
        >>> normalize_name("Armor Training 3 (Ex)")
        'armor training'
    """
    if not name:
        return ""
    tokens = strip_parentheticals(name).split()
    if len(tokens) > 1 and _is_tier_marker(tokens[-1]) and not _is_tier_marker(tokens[-2]):
        tokens = tokens[:-1]
    return " ".join(tokens)


def slugify(name: str) -> str:
    """Lowercase, dash-separated identifier for an archetype or feature name."""
    return _SLUG_RE.sub("-", name.lower()).strip("-")


# =============================================================================
# Parsing
# =============================================================================


def parse_level(description: str | None) -> int | None:
    """Extract the level from a ``Level: N`` label.

    Args:
        description: Feature description, possibly HTML.

    Returns:
        The first labelled level, or None.
    """
    match = LEVEL_RE.search(_plain_text(description))
    return int(match.group(1)) if match else None


def parse_replaces(description: str | None) -> str | None:
    """Extract the target of a "replaces X." sentence."""
    match = REPLACES_RE.search(_plain_text(description))
    return match.group(1).strip() if match else None


def parse_modifies(description: str | None) -> str | None:
    """Extract the target of a "modifies X." sentence."""
    match = MODIFIES_RE.search(_plain_text(description))
    return match.group(1).strip() if match else None


def is_as_but_variant(description: str | None) -> bool:
    """Check for "as the X class feature, but ..." phrasing."""
    return AS_BUT_RE.search(_plain_text(description)) is not None


def classify_feature(description: str | None) -> Classification:
    """Classify a feature description into an edit intent.

    Priority is fixed: a replaces-pattern wins over a modifies-pattern, which
    wins over a bare Level tag. Anything else is unknown.

    Args:
        description: Feature description, possibly HTML.

    Returns:
        Classification with the raw target for replacement/modification.
    """
    if not description:
        return Classification(FeatureClassification.UNKNOWN)

    replaces = parse_replaces(description)
    if replaces:
        return Classification(FeatureClassification.REPLACEMENT, replaces)

    modifies = parse_modifies(description)
    if modifies:
        return Classification(FeatureClassification.MODIFICATION, modifies)

    if parse_level(description) is not None:
        return Classification(FeatureClassification.ADDITIVE)

    return Classification(FeatureClassification.UNKNOWN)


# =============================================================================
# Matching
# =============================================================================


def match_target(
    normalized_target: str | None,
    base_records: Iterable[FeatureRecord],
) -> FeatureRecord | None:
    """Return the first base record whose normalized name equals the target.

    Args:
        normalized_target: Target name; normalized again, which is a no-op
            for already-normalized input.
        base_records: Candidate base records in progression order.

    Returns:
        The first matching record, or None.
    """
    wanted = normalize_name(normalized_target)
    if not wanted:
        return None
    for record in base_records:
        if normalize_name(record.name) == wanted:
            return record
    return None


def suggest_matches(
    target: str | None,
    base_records: Sequence[FeatureRecord],
    *,
    limit: int = 3,
    score_cutoff: float = 60.0,
) -> list[str]:
    """Rank base feature names by similarity to an unmatched target.

    Suggestions are shown to the user for manual correction and are never
    used to pair records automatically.

    Args:
        target: The unmatched target.
        base_records: Base records to rank.
        limit: Maximum number of suggestions.
        score_cutoff: Minimum rapidfuzz ratio (0-100).

    Returns:
        Distinct record names, best first.
    """
    wanted = normalize_name(target)
    if not wanted or not base_records:
        return []
    choices = [normalize_name(record.name) for record in base_records]
    ranked = process.extract(
        wanted, choices, scorer=fuzz.ratio, limit=limit * 2, score_cutoff=score_cutoff
    )
    names: list[str] = []
    for _, _, index in ranked:
        name = base_records[index].name
        if name not in names:
            names.append(name)
    return names[:limit]


def _claim_record(
    raw_target: str,
    candidates: Sequence[FeatureRecord],
) -> FeatureRecord | None:
    """Match a raw target, preferring a record with the same tier marker."""
    exact = strip_parentheticals(raw_target)
    for record in candidates:
        if strip_parentheticals(record.name) == exact:
            return record
    return match_target(raw_target, candidates)


# =============================================================================
# Resolution
# =============================================================================


async def _resolve_name(resolver: FeatureResolver, identifier: str | None) -> str | None:
    if not identifier:
        return None
    try:
        result = await resolver.resolve(identifier)
    except Exception as exc:
        logger.warning("Failed to resolve feature", identifier=identifier, error=str(exc))
        return None
    if result is None:
        return None
    if isinstance(result, Mapping):
        return result.get("name")
    return getattr(result, "name", None)


async def resolve_associations(
    raw_list: Sequence[Mapping[str, Any]] | None,
    resolver: FeatureResolver,
) -> list[dict[str, Any]]:
    """Resolve each entry's identifier to a display name.

    Lookups run concurrently. A lookup that raises or returns nothing leaves
    ``resolvedName`` as None for that entry only.

    Args:
        raw_list: Host entries carrying ``id`` (or ``uuid``) and ``level``.
        resolver: Host resolver.

    Returns:
        Copies of the entries with ``resolvedName`` set, in input order.
    """
    if not raw_list:
        return []
    names = await asyncio.gather(
        *(_resolve_name(resolver, entry.get("uuid") or entry.get("id")) for entry in raw_list)
    )
    return [{**entry, "resolvedName": name} for entry, name in zip(raw_list, names)]


# =============================================================================
# Archetype Parsing
# =============================================================================


def _feature_from_override(
    raw: Mapping[str, Any],
    override: Mapping[str, Any],
    candidates: list[FeatureRecord],
) -> ArchetypeFeature:
    raw_target = override.get("target")
    classification = FeatureClassification(
        override.get("classification") or override.get("type") or FeatureClassification.UNKNOWN
    )
    matched = _claim_record(raw_target, candidates) if raw_target else None
    return ArchetypeFeature(
        name=override.get("name") or raw["name"],
        level=override.get("level"),
        classification=classification,
        target=normalize_name(raw_target) or None,
        matched_record=matched,
        source_id=raw.get("id") or raw.get("uuid"),
        description=override.get("description") or _description_of(raw),
        source="override",
        needs_user_input=classification is FeatureClassification.UNKNOWN
        or (bool(raw_target) and matched is None),
    )


def _description_of(raw: Mapping[str, Any]) -> str:
    description = raw.get("description", "")
    if isinstance(description, Mapping):
        return description.get("value", "") or ""
    return description or ""


def parse_archetype(
    name: str,
    raw_features: Sequence[Mapping[str, Any]],
    base_records: Sequence[FeatureRecord],
    *,
    class_key: str | None = None,
    slug: str | None = None,
    overrides: Mapping[str, Any] | None = None,
    strict: bool = False,
    warn: bool | None = None,
) -> ArchetypeDefinition:
    """Classify an archetype's features against a class's base records.

    Curated overrides, keyed by feature slug, replace automatic parsing for
    the features they name. Each matched base record is claimed once, so
    tiered targets ("armor training 1" ... "armor training 4") pair with
    distinct records.

    Args:
        name: Archetype display name.
        raw_features: Feature documents with ``name``, ``description`` and
            ``id``/``uuid``.
        base_records: The class's base feature records.
        class_key: Class the archetype belongs to.
        slug: Tracking key; derived from ``name`` when omitted.
        overrides: ``{feature_slug: {...}}`` from a curated repository entry.
        strict: Raise on the first unresolved feature instead of flagging it.
        warn: Log a warning per unresolved feature. Defaults to the
            ``show_parse_warnings`` setting.

    Returns:
        A frozen ArchetypeDefinition.

    Raises:
        ParseAmbiguity: In strict mode, for a feature classified unknown.
        MatchFailure: In strict mode, for an unmatched target.
    """
    overrides = overrides or {}
    if warn is None:
        warn = get_settings().show_parse_warnings
    available = list(base_records)
    features: list[ArchetypeFeature] = []

    for raw in raw_features:
        feature_name = raw["name"]
        override = overrides.get(slugify(feature_name))
        if override:
            feature = _feature_from_override(raw, override, available)
        else:
            description = _description_of(raw)
            classification = classify_feature(description)
            matched = (
                _claim_record(classification.target, available)
                if classification.target
                else None
            )
            needs_input = classification.type is FeatureClassification.UNKNOWN or (
                classification.target is not None and matched is None
            )
            feature = ArchetypeFeature(
                name=feature_name,
                level=parse_level(description),
                classification=classification.type,
                target=normalize_name(classification.target) or None,
                matched_record=matched,
                source_id=raw.get("id") or raw.get("uuid"),
                description=description,
                needs_user_input=needs_input,
                suggestions=tuple(suggest_matches(classification.target, available))
                if classification.target and matched is None
                else (),
            )

        if feature.matched_record is not None:
            available.remove(feature.matched_record)

        if feature.classification is FeatureClassification.UNKNOWN:
            if strict:
                raise ParseAmbiguity(
                    "Could not classify archetype feature", feature_name=feature.name
                )
            if warn:
                logger.warning("Feature needs manual classification", feature=feature.name)
        elif feature.target and feature.matched_record is None:
            if strict:
                raise MatchFailure(
                    "Archetype feature target matches no base feature",
                    feature_name=feature.name,
                    target=feature.target,
                )
            if warn:
                logger.warning(
                    "Feature target not found in base features",
                    feature=feature.name,
                    target=feature.target,
                    suggestions=list(feature.suggestions),
                )
        features.append(feature)

    definition = ArchetypeDefinition(
        name=name,
        slug=slug or slugify(name),
        class_key=class_key,
        features=tuple(features),
    )
    logger.debug(
        "Archetype parsed",
        slug=definition.slug,
        features=len(features),
        unresolved=len(definition.unresolved_features),
    )
    return definition


__all__ = [
    "Classification",
    "normalize_name",
    "strip_parentheticals",
    "slugify",
    "parse_level",
    "parse_replaces",
    "parse_modifies",
    "is_as_but_variant",
    "classify_feature",
    "match_target",
    "suggest_matches",
    "resolve_associations",
    "parse_archetype",
]
