"""
Navigation and mitigation controller.
Drives a page to a search URL, handles bot-challenge and interstitial pages with a single
bounded mitigation each, and waits for product containers to render.
"""

import logging
import time
from enum import Enum
from pathlib import Path
from typing import List, Optional

import aiofiles
from playwright.async_api import Page, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from product_scraper.errors import ExtractionFault, NavigationTimeout, NetworkFailure
from product_scraper.sources import ChallengeDetector, InterstitialDetector

logger = logging.getLogger(__name__)

BODY_TEXT_SCRIPT = "() => document.body ? document.body.innerText : ''"


class InterstitialState(Enum):
    DETECT = "detect"
    ATTEMPT_RECOVERY = "attempt_recovery"
    FALLBACK_RELOAD = "fallback_reload"
    DONE = "done"


class InterstitialOutcome(Enum):
    ABSENT = "absent"
    RECOVERED = "recovered"
    RELOADED = "reloaded"
    ACCEPTED_AS_IS = "accepted_as_is"


class NavigationController:
    """Navigation, challenge/interstitial mitigation and readiness waits for one page."""

    def __init__(self, navigation_timeout: float = 10.0, ready_timeout: float = 30.0,
                 interstitial_timeout: float = 10.0, challenge_reload_timeout: float = 15.0,
                 debug: bool = False, debug_dir: str = "debug_artifacts",
                 logger: Optional[logging.Logger] = None):
        self.navigation_timeout = navigation_timeout
        self.ready_timeout = ready_timeout
        self.interstitial_timeout = interstitial_timeout
        self.challenge_reload_timeout = challenge_reload_timeout
        self.debug_mode = debug
        self.debug_dir = Path(debug_dir)
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config) -> 'NavigationController':
        return cls(
            navigation_timeout=config.navigation_timeout,
            ready_timeout=config.ready_timeout,
            interstitial_timeout=config.interstitial_timeout,
            challenge_reload_timeout=config.challenge_reload_timeout,
            debug=config.debug,
            debug_dir=config.debug_dir,
        )

    async def navigate(self, page: Page, url: str, timeout: Optional[float] = None) -> None:
        """
        Load a URL and wait for DOM-ready and network quiet within one time budget.

        Network quiet is Playwright's ``networkidle`` (no open connections for
        500 ms) and shares the budget with ``goto``. A page that keeps polling
        past the budget fails with NavigationTimeout and is retried.

        Args:
            page: Playwright page object
            url: Target URL
            timeout: Bound in seconds for the whole navigation (defaults to navigation_timeout)

        Raises:
            NavigationTimeout: If the bound is exceeded
            NetworkFailure: If the browser could not load the page
        """
        timeout = timeout if timeout is not None else self.navigation_timeout
        deadline = time.monotonic() + timeout
        self.logger.info(f"🌐 Navigating to: {url}")
        try:
            await page.goto(url, wait_until='domcontentloaded', timeout=timeout * 1000)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise NavigationTimeout(f"network did not settle within {timeout}s for {url}")
            await page.wait_for_load_state('networkidle', timeout=remaining * 1000)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"navigation to {url} exceeded {timeout}s: {e}") from e
        except PlaywrightError as e:
            raise NetworkFailure(f"navigation to {url} failed: {e}") from e

    async def detect_challenge(self, page: Page, detector: Optional[ChallengeDetector]) -> bool:
        """Check page title and body text for bot-challenge markers."""
        if detector is None:
            return False
        try:
            title = (await page.title() or '').lower()
            body = (await page.evaluate(BODY_TEXT_SCRIPT) or '').lower()
        except PlaywrightError as e:
            self.logger.warning(f"⚠️ Could not read page for challenge detection: {e}")
            return False

        for marker in detector.title_markers:
            if marker.lower() in title:
                self.logger.debug(f"Challenge marker '{marker}' found in title")
                return True
        for marker in detector.markers:
            if marker.lower() in title or marker.lower() in body:
                self.logger.debug(f"Challenge marker '{marker}' found in page")
                return True
        return False

    async def mitigate_challenge(self, page: Page, detector: Optional[ChallengeDetector]) -> bool:
        """
        Reload once if a bot challenge is showing.

        Returns:
            True if the page is clear of a challenge afterwards. A challenge that
            survives the single reload is accepted; extraction will find nothing.
        """
        if not await self.detect_challenge(page, detector):
            return True

        self.logger.warning("🛡️ Bot challenge detected, reloading once")
        try:
            await page.reload(wait_until='domcontentloaded', timeout=self.challenge_reload_timeout * 1000)
        except PlaywrightError as e:
            self.logger.warning(f"⚠️ Reload after challenge failed: {e}")

        if await self.detect_challenge(page, detector):
            self.logger.warning("🛡️ Challenge still present after reload, continuing to extraction")
            return False

        self.logger.info("✅ Challenge cleared after reload")
        return True

    async def handle_interstitial(self, page: Page,
                                  detector: Optional[InterstitialDetector]) -> InterstitialOutcome:
        """
        Pass a gate page with one recovery attempt and one fallback reload.

        DETECT -> ATTEMPT_RECOVERY -> (RECOVERED | FALLBACK_RELOAD) -> DONE
        """
        state = InterstitialState.DETECT
        outcome = InterstitialOutcome.ABSENT

        while state is not InterstitialState.DONE:
            if state is InterstitialState.DETECT:
                if detector is not None and await self._gate_present(page, detector):
                    self.logger.warning("🚧 Interstitial page detected, attempting to continue")
                    state = InterstitialState.ATTEMPT_RECOVERY
                else:
                    state = InterstitialState.DONE

            elif state is InterstitialState.ATTEMPT_RECOVERY:
                if await self._attempt_recovery(page, detector):
                    self.logger.info("✅ Interstitial dismissed")
                    outcome = InterstitialOutcome.RECOVERED
                    state = InterstitialState.DONE
                else:
                    state = InterstitialState.FALLBACK_RELOAD

            elif state is InterstitialState.FALLBACK_RELOAD:
                if await self._fallback_reload(page):
                    outcome = InterstitialOutcome.RELOADED
                else:
                    outcome = InterstitialOutcome.ACCEPTED_AS_IS
                state = InterstitialState.DONE

        return outcome

    async def _gate_present(self, page: Page, detector: InterstitialDetector) -> bool:
        try:
            return await page.query_selector(detector.gate_selector) is not None
        except PlaywrightError as e:
            self.logger.debug(f"Interstitial detection failed: {e}")
            return False

    async def _attempt_recovery(self, page: Page, detector: InterstitialDetector) -> bool:
        timeout_ms = self.interstitial_timeout * 1000
        try:
            control = await page.query_selector(detector.continue_selector)
            if control is None:
                self.logger.warning("⚠️ Interstitial continue control not found")
                return False
            await control.click(timeout=timeout_ms)
            await page.wait_for_selector(detector.gate_selector, state='detached', timeout=timeout_ms)
            await page.wait_for_load_state('domcontentloaded', timeout=timeout_ms)
            return True
        except PlaywrightError as e:
            self.logger.warning(f"⚠️ Interstitial recovery failed: {e}")
            return False

    async def _fallback_reload(self, page: Page) -> bool:
        self.logger.info("🔄 Falling back to a plain reload")
        try:
            await page.reload(wait_until='domcontentloaded', timeout=self.interstitial_timeout * 1000)
            return True
        except PlaywrightError as e:
            self.logger.warning(f"⚠️ Fallback reload failed, continuing with current page: {e}")
            return False

    async def wait_for_ready(self, page: Page, selector: str, timeout: Optional[float] = None) -> bool:
        """
        Wait for the product container to appear.

        Returns:
            False when the wait times out (page loaded but no products rendered)

        Raises:
            ExtractionFault: If the page failed in any way other than timing out
        """
        timeout = timeout if timeout is not None else self.ready_timeout
        try:
            await page.wait_for_selector(selector, timeout=timeout * 1000)
            return True
        except PlaywrightTimeoutError:
            self.logger.info(f"⏳ Selector '{selector}' not found within {timeout}s, treating as no results")
            return False
        except PlaywrightError as e:
            raise ExtractionFault(f"failed while waiting for '{selector}': {e}") from e

    async def save_debug_artifacts(self, page: Page, label: str) -> List[Path]:
        """Save a full-page screenshot and the HTML when debug mode is on."""
        if not self.debug_mode:
            return []

        saved = []
        safe_label = label.replace(' ', '_').replace('/', '_').lower()
        stem = f"{safe_label}_{int(time.time() * 1000)}"
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)

            screenshot_path = self.debug_dir / f"{stem}.png"
            await page.screenshot(path=str(screenshot_path), full_page=True)
            saved.append(screenshot_path)

            html_path = self.debug_dir / f"{stem}.html"
            html_content = await page.content()
            async with aiofiles.open(html_path, 'w', encoding='utf-8') as f:
                await f.write(html_content)
            saved.append(html_path)

            self.logger.info(f"📸 Debug artifacts saved: {', '.join(str(p) for p in saved)}")
        except Exception as e:
            self.logger.error(f"Failed to save debug artifacts for {label}: {e}")
        return saved
