"""
Session manager: owns one headless browser and one page per pipeline attempt.
Handles hardened launch, request filtering and guaranteed teardown.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Iterable, Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright, Route
from playwright_stealth import Stealth

from product_scraper.config import LaunchConfig, DEFAULT_BLOCKED_RESOURCE_KINDS
from product_scraper.errors import SessionAcquisitionFailure
from product_scraper.fingerprint import build_fingerprint

logger = logging.getLogger(__name__)


def should_block(resource_kind: str, blocked_kinds: Iterable[str] = DEFAULT_BLOCKED_RESOURCE_KINDS,
                 url: Optional[str] = None) -> bool:
    """
    Decide whether a request is aborted before it reaches the network.

    Args:
        resource_kind: Playwright resource type (document, script, xhr, image, ...)
        blocked_kinds: Resource types that are never loaded
        url: Optional request URL; stylesheets served under another type are caught by extension

    Returns:
        True if the request should be aborted
    """
    if (resource_kind or 'other').lower() in blocked_kinds:
        return True
    if url and url.split('?', 1)[0].split('#', 1)[0].lower().endswith('.css'):
        return True
    return False


@dataclass
class BrowserSession:
    """One browser process plus the single page a pipeline drives."""

    playwright: Optional[Playwright] = None
    browser: Optional[Browser] = None
    context: Optional[BrowserContext] = None
    page: Optional[Page] = None
    blocked_requests: int = 0


class SessionManager:
    """Launches, filters and tears down isolated browser sessions."""

    def __init__(self, launch_config: LaunchConfig,
                 playwright_factory: Callable[[], Any] = async_playwright):
        self.launch_config = launch_config
        self._playwright_factory = playwright_factory

    async def acquire(self) -> BrowserSession:
        """
        Launch a hardened headless browser and open one page in it.

        Raises:
            SessionAcquisitionFailure: If the browser or page could not be created.
                Anything created before the failure is released first.
        """
        session = BrowserSession()
        cfg = self.launch_config
        try:
            session.playwright = await self._playwright_factory().start()

            launch_kwargs = {'headless': cfg.headless, 'args': list(cfg.args)}
            if cfg.executable_path:
                launch_kwargs['executable_path'] = cfg.executable_path
            session.browser = await session.playwright.chromium.launch(**launch_kwargs)

            session.context = await session.browser.new_context(**build_fingerprint(cfg.user_agent))
            session.page = await session.context.new_page()
            session.page.set_default_navigation_timeout(cfg.navigation_timeout * 1000)

            if cfg.enable_stealth:
                await self._apply_stealth(session.page)

            logger.debug(f"🚀 Browser session acquired (headless={cfg.headless})")
            return session
        except Exception as e:
            logger.error(f"❌ Failed to acquire browser session: {e}")
            await self.release(session)
            raise SessionAcquisitionFailure(f"could not start browser session: {e}") from e

    async def _apply_stealth(self, page: Page) -> None:
        try:
            await Stealth().apply_stealth_async(page)
            logger.debug("Applied stealth evasions to page")
        except Exception as e:
            logger.warning(f"Failed to apply stealth evasions (non-critical): {e}")

    async def configure_filtering(self, session: BrowserSession,
                                  blocked_kinds: Optional[Iterable[str]] = None) -> None:
        """
        Abort requests for blocked resource kinds; documents, scripts and XHR proceed.

        Args:
            session: Session whose page is filtered
            blocked_kinds: Resource kinds to abort (defaults to the launch config's set)
        """
        blocked = frozenset(blocked_kinds if blocked_kinds is not None
                            else self.launch_config.blocked_resource_kinds)

        async def handle_route(route: Route) -> None:
            request = route.request
            if should_block(request.resource_type, blocked, request.url):
                session.blocked_requests += 1
                await route.abort()
            else:
                await route.continue_()

        await session.page.route("**/*", handle_route)
        logger.debug(f"Request filtering enabled, blocking: {sorted(blocked)}")

    async def release(self, session: BrowserSession) -> None:
        """
        Close page, context, browser and driver in that order.

        Every step is best-effort: failures are logged and never raised, so
        teardown cannot mask the pipeline's own outcome.
        """
        steps = (
            ('page', session.page, 'close'),
            ('context', session.context, 'close'),
            ('browser', session.browser, 'close'),
            ('playwright', session.playwright, 'stop'),
        )
        for label, handle, method in steps:
            if handle is None:
                continue
            try:
                await getattr(handle, method)()
            except Exception as e:
                logger.warning(f"⚠️ Failed to close {label} during session release: {e}")

        session.page = session.context = session.browser = session.playwright = None
        logger.debug("Browser session released")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        """Acquire a filtered session and release it on every exit path."""
        session = await self.acquire()
        try:
            await self.configure_filtering(session)
            yield session
        finally:
            await self.release(session)
