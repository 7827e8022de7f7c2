"""
Extraction engine: turns rendered product containers into ProductRecords
using a source's selector table.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from playwright.async_api import ElementHandle, Page, Error as PlaywrightError

from product_scraper.errors import ExtractionFault
from product_scraper.models import ProductRecord
from product_scraper.sources import FieldRule, SourceSpec

logger = logging.getLogger(__name__)


def normalize_text(value: Optional[str]) -> str:
    """Collapse whitespace runs and trim. No numeric coercion is applied."""
    if not value:
        return ''
    return ' '.join(value.split())


def absolute_url(origin: str, value: str) -> str:
    """Resolve a relative or protocol-relative URL against the source origin."""
    return urljoin(origin.rstrip('/') + '/', value)


async def _read(container: ElementHandle, selector: str, attribute: Optional[str]) -> str:
    element = await container.query_selector(selector)
    if element is None:
        return ''
    if attribute:
        return normalize_text(await element.get_attribute(attribute))
    return normalize_text(await element.text_content())


async def read_field(container: ElementHandle, rule: FieldRule, origin: str) -> str:
    """
    Read one field from a product container.

    A missing sub-element yields an empty string; the caller substitutes the sentinel.
    """
    value = await _read(container, rule.selector, rule.attribute)
    if rule.suffix_selector and value:
        suffix = await _read(container, rule.suffix_selector, None)
        if suffix:
            value = f"{value}{rule.suffix_separator}{suffix}"
    if value and rule.is_url:
        value = absolute_url(origin, value)
    return value


class ExtractionEngine:
    """Selector-driven extraction of product records from a loaded page."""

    async def extract(self, page: Page, spec: SourceSpec) -> List[ProductRecord]:
        """
        Extract up to ``spec.cap`` records in document order.

        Containers whose name is empty after normalisation are dropped before
        the cap is applied.

        Raises:
            ExtractionFault: If the DOM could not be read
        """
        try:
            containers = await page.query_selector_all(spec.container_selector)
        except PlaywrightError as e:
            raise ExtractionFault(f"could not query '{spec.container_selector}': {e}", spec.source_id) from e

        logger.debug(f"[{spec.source_id}] {len(containers)} containers match '{spec.container_selector}'")

        records: List[ProductRecord] = []
        dropped = 0
        for container in containers:
            if len(records) >= spec.cap:
                break
            try:
                values = await self._read_container(container, spec)
            except PlaywrightError as e:
                raise ExtractionFault(f"failed reading product container: {e}", spec.source_id) from e

            if not values.get('name'):
                dropped += 1
                continue
            records.append(ProductRecord(**values))

        if dropped:
            logger.debug(f"[{spec.source_id}] Dropped {dropped} containers without a product name")
        logger.info(f"📦 [{spec.source_id}] Extracted {len(records)} products (cap {spec.cap})")
        return records

    async def _read_container(self, container: ElementHandle, spec: SourceSpec) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for rule in spec.fields:
            value = await read_field(container, rule, spec.origin)
            if rule.name == 'name':
                values['name'] = value
            else:
                values[rule.name] = value or rule.default
        return values
