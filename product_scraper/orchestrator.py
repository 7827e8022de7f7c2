"""
Scrape orchestrator: runs one retry-wrapped pipeline per source concurrently
and folds every settled outcome into an AggregateResult.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from product_scraper.config import ScraperConfig, config as default_config
from product_scraper.errors import RetryExhaustedError, ScrapeError
from product_scraper.extraction import ExtractionEngine
from product_scraper.models import AggregateResult, ProductRecord, SourceResult
from product_scraper.navigation import NavigationController
from product_scraper.retry import with_retry
from product_scraper.session import SessionManager
from product_scraper.sources import SourceSpec, build_search_url, load_sources, normalize_query

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineOutput:
    """Result of one successful pipeline attempt."""

    records: List[ProductRecord]
    ready_timed_out: bool = False


class ScrapeOrchestrator:
    """Runs the per-source pipelines for a query and merges their outcomes."""

    def __init__(self, config: ScraperConfig, sources: Optional[Sequence[SourceSpec]] = None,
                 session_manager: Optional[SessionManager] = None,
                 navigator: Optional[NavigationController] = None,
                 extractor: Optional[ExtractionEngine] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.config = config
        self.sources = tuple(sources) if sources is not None else load_sources(config.source_overrides)
        if not self.sources:
            raise ValueError("At least one source must be configured")
        self.session_manager = session_manager or SessionManager(config.launch_config())
        self.navigator = navigator or NavigationController.from_config(config)
        self.extractor = extractor or ExtractionEngine()
        self._sleep = sleep

    async def run_source(self, spec: SourceSpec, query: str) -> PipelineOutput:
        """
        One pipeline attempt: acquire, navigate, mitigate, wait, extract, release.

        Each call gets a fresh browser session, released on every exit path.
        """
        url = build_search_url(spec, query)
        async with self.session_manager.session() as session:
            page = session.page
            await self.navigator.navigate(page, url)
            await self.navigator.mitigate_challenge(page, spec.challenge)
            await self.navigator.handle_interstitial(page, spec.interstitial)

            if not await self.navigator.wait_for_ready(page, spec.ready_selector):
                logger.info(f"[{spec.source_id}] No products rendered, returning empty results")
                await self.navigator.save_debug_artifacts(page, f"{spec.source_id}_not_ready")
                return PipelineOutput(records=[], ready_timed_out=True)

            records = await self.extractor.extract(page, spec)
            logger.debug(f"[{spec.source_id}] Blocked {session.blocked_requests} requests")
            return PipelineOutput(records=records)

    async def _scrape_source(self, spec: SourceSpec, query: str) -> SourceResult:
        output = await with_retry(
            lambda: self.run_source(spec, query),
            max_attempts=self.config.max_attempts,
            base_delay=self.config.backoff_base,
            sleep=self._sleep,
            label=spec.source_id,
        )
        return SourceResult.ok(output.records, ready_timed_out=output.ready_timed_out)

    @staticmethod
    def _settle(spec: SourceSpec, outcome) -> SourceResult:
        if isinstance(outcome, SourceResult):
            return outcome
        if isinstance(outcome, RetryExhaustedError):
            reason = f"{type(outcome.last_error).__name__}: {outcome.last_error}"
        elif isinstance(outcome, ScrapeError):
            reason = f"{type(outcome).__name__}: {outcome}"
        else:
            reason = f"unexpected {type(outcome).__name__}: {outcome}"
        logger.error(f"❌ [{spec.source_id}] Source failed: {reason}")
        return SourceResult.failed(reason)

    async def scrape(self, query: str) -> AggregateResult:
        """
        Scrape every configured source for one query.

        Raises:
            InvalidQueryError: If the query is blank. No browser is started.
        """
        query = normalize_query(query)
        logger.info(f"🔍 Scraping {', '.join(s.source_id for s in self.sources)} for: {query}")

        outcomes = await asyncio.gather(
            *(self._scrape_source(spec, query) for spec in self.sources),
            return_exceptions=True,
        )

        results: Dict[str, SourceResult] = {}
        for spec, outcome in zip(self.sources, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            results[spec.source_id] = self._settle(spec, outcome)

        aggregate = AggregateResult(results=results, timestamp=datetime.now(timezone.utc))
        summary = ", ".join(
            f"{source_id}={len(result.records)}" if result.is_ok else f"{source_id}=failed"
            for source_id, result in aggregate.results.items()
        )
        logger.info(f"✅ Scrape completed for '{query}': {summary}")
        return aggregate


async def scrape_products(query: str, config: Optional[ScraperConfig] = None) -> AggregateResult:
    """Scrape all built-in sources for a query using the process configuration."""
    orchestrator = ScrapeOrchestrator(config or default_config)
    return await orchestrator.scrape(query)
