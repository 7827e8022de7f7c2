"""
Source catalogue: the static per-site rules used by the pipelines.
Selectors are maintained configuration and can be overridden from config.yaml.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote_plus

from product_scraper.errors import InvalidQueryError
from product_scraper.models import NOT_AVAILABLE, RECORD_FIELDS

logger = logging.getLogger(__name__)

URL_FIELDS = frozenset({'image_url', 'detail_url'})


@dataclass(frozen=True)
class FieldRule:
    """How to read one record field from inside a product container."""

    name: str
    selector: str
    attribute: Optional[str] = None
    default: str = NOT_AVAILABLE
    suffix_selector: Optional[str] = None
    suffix_separator: str = "."

    @property
    def is_url(self) -> bool:
        return self.name in URL_FIELDS


@dataclass(frozen=True)
class ChallengeDetector:
    """Case-insensitive markers that identify a bot-challenge page."""

    markers: Tuple[str, ...] = ("captcha", "robot")
    title_markers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class InterstitialDetector:
    """A gate element plus the control that is expected to dismiss it."""

    gate_selector: str
    continue_selector: str


@dataclass(frozen=True)
class SourceSpec:
    """Immutable scrape rules for one site."""

    source_id: str
    search_url_template: str
    origin: str
    container_selector: str
    fields: Tuple[FieldRule, ...]
    ready_selector: str
    cap: int
    challenge: Optional[ChallengeDetector] = None
    interstitial: Optional[InterstitialDetector] = None

    def __post_init__(self):
        if self.cap < 1:
            raise ValueError(f"{self.source_id}: cap must be a positive integer, got {self.cap}")
        if '{query}' not in self.search_url_template:
            raise ValueError(f"{self.source_id}: search_url_template must contain '{{query}}'")
        names = [rule.name for rule in self.fields]
        if 'name' not in names:
            raise ValueError(f"{self.source_id}: a 'name' field rule is required")
        unknown = set(names) - set(RECORD_FIELDS)
        if unknown:
            raise ValueError(f"{self.source_id}: unknown record fields {sorted(unknown)}")

    def field_rule(self, name: str) -> Optional[FieldRule]:
        for rule in self.fields:
            if rule.name == name:
                return rule
        return None


def normalize_query(query: Optional[str]) -> str:
    """
    Trim the query and collapse whitespace runs to single spaces.

    Raises:
        InvalidQueryError: If nothing is left after trimming.
    """
    normalized = " ".join((query or "").split())
    if not normalized:
        raise InvalidQueryError("Search query must not be empty")
    return normalized


def build_search_url(spec: SourceSpec, query: str) -> str:
    """Embed a query into the source's search URL, whitespace joined by '+'."""
    return spec.search_url_template.format(query=quote_plus(normalize_query(query)))


AMAZON = SourceSpec(
    source_id='amazon',
    search_url_template='https://www.amazon.in/s?k={query}',
    origin='https://www.amazon.in',
    container_selector='.s-card-container',
    ready_selector='.s-card-container',
    cap=11,
    fields=(
        FieldRule('name', '.a-size-medium.a-spacing-none.a-color-base.a-text-normal'),
        FieldRule('rating', '.a-icon-star-small'),
        FieldRule('review_count', '.a-size-base.s-underline-text'),
        FieldRule('recent_purchase_volume', '.a-row.a-size-base .a-size-base.a-color-secondary'),
        FieldRule('price', '.a-price-whole', default='Out of Stock'),
        FieldRule('original_price', '.a-offscreen'),
        FieldRule('discount_label', '.a-size-base.a-color-price'),
        FieldRule('availability', '.a-size-medium.a-color-success', default='In Stock'),
        FieldRule('image_url', '.s-image', attribute='src'),
        FieldRule('detail_url', 'a', attribute='href'),
    ),
    challenge=ChallengeDetector(
        markers=("captcha", "enter the characters you see below", "not a robot"),
        title_markers=("robot check",),
    ),
    interstitial=InterstitialDetector(
        gate_selector='form[action="/errors/validateCaptcha"]',
        continue_selector='form[action="/errors/validateCaptcha"] button[type="submit"]',
    ),
)

FLIPKART = SourceSpec(
    source_id='flipkart',
    search_url_template='https://www.flipkart.com/search?q={query}',
    origin='https://www.flipkart.com',
    container_selector='._75nlfW',
    ready_selector='._75nlfW',
    cap=10,
    fields=(
        FieldRule('name', '.KzDlHZ', suffix_selector='.J\\+igdf'),
        FieldRule('price', '.Nx9bqj._4b5DiR'),
        FieldRule('original_price', '.yRaY8j.ZYYwLA'),
        FieldRule('image_url', '.DByuf4', attribute='src'),
        FieldRule('detail_url', 'a', attribute='href'),
    ),
    challenge=ChallengeDetector(
        markers=("captcha", "are you a human", "are you a robot", "not a robot"),
    ),
    interstitial=InterstitialDetector(
        gate_selector='div:has-text("experiencing a rush")',
        continue_selector='button:has-text("Try Again"), a:has-text("Try Again")',
    ),
)

DEFAULT_SOURCES: Tuple[SourceSpec, ...] = (AMAZON, FLIPKART)


def _apply_override(spec: SourceSpec, override: Dict[str, Any]) -> SourceSpec:
    changes: Dict[str, Any] = {}
    for key in ('search_url_template', 'origin', 'container_selector', 'ready_selector'):
        if key in override:
            changes[key] = override[key]
    if 'cap' in override:
        changes['cap'] = int(override['cap'])

    field_overrides = override.get('fields') or {}
    if field_overrides:
        rules: List[FieldRule] = []
        for rule in spec.fields:
            if rule.name in field_overrides:
                rules.append(replace(rule, selector=field_overrides[rule.name]))
            else:
                rules.append(rule)
        known = {rule.name for rule in spec.fields}
        for name, selector in field_overrides.items():
            if name not in known:
                attribute = {'image_url': 'src', 'detail_url': 'href'}.get(name)
                rules.append(FieldRule(name, selector, attribute=attribute))
        changes['fields'] = tuple(rules)

    if 'challenge_markers' in override:
        changes['challenge'] = ChallengeDetector(markers=tuple(override['challenge_markers']))

    return replace(spec, **changes)


def load_sources(overrides: Optional[Dict[str, Dict[str, Any]]] = None,
                 base: Tuple[SourceSpec, ...] = DEFAULT_SOURCES) -> Tuple[SourceSpec, ...]:
    """
    Build the process-wide source catalogue.

    Args:
        overrides: Mapping of source id to overridden settings (from config.yaml)
        base: Built-in source specs to start from

    Returns:
        Tuple of immutable SourceSpec objects in configured order
    """
    overrides = overrides or {}
    sources = []
    for spec in base:
        override = overrides.get(spec.source_id)
        if override:
            logger.info(f"Applying configuration overrides to source '{spec.source_id}': {sorted(override)}")
            spec = _apply_override(spec, override)
        sources.append(spec)

    unknown = set(overrides) - {spec.source_id for spec in base}
    for source_id in sorted(unknown):
        logger.warning(f"Ignoring overrides for unknown source: {source_id}")

    return tuple(sources)
