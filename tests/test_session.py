"""
Tests for the session manager: request filtering, acquisition and teardown.
"""

import asyncio

import pytest

from product_scraper.config import LaunchConfig
from product_scraper.errors import SessionAcquisitionFailure
from product_scraper.session import BrowserSession, SessionManager, should_block

from fakes import FakePage


@pytest.mark.parametrize("kind", ['stylesheet', 'font', 'image', 'media', 'other'])
def test_blocked_kinds(kind):
    assert should_block(kind)


@pytest.mark.parametrize("kind", ['document', 'script', 'xhr', 'fetch'])
def test_allowed_kinds(kind):
    assert not should_block(kind)


def test_css_url_blocked_regardless_of_kind():
    assert should_block('script', url='https://cdn.example/app.css?v=3')
    assert not should_block('script', url='https://cdn.example/app.js')


def test_custom_blocked_set():
    assert should_block('script', {'script'})
    assert not should_block('image', {'script'})


class FakeRequest:
    def __init__(self, resource_type, url):
        self.resource_type = resource_type
        self.url = url


class FakeRoute:
    def __init__(self, resource_type, url='https://site.example/x'):
        self.request = FakeRequest(resource_type, url)
        self.action = None

    async def abort(self):
        self.action = 'abort'

    async def continue_(self):
        self.action = 'continue'


class Closable:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    async def close(self):
        self.calls += 1
        if self.error:
            raise self.error

    async def stop(self):
        await self.close()


class FakeBrowser(Closable):
    def __init__(self, page=None, context_error=None):
        super().__init__()
        self.page = page or FakePage()
        self.context_error = context_error
        self.context_kwargs = None

    async def new_context(self, **kwargs):
        if self.context_error:
            raise self.context_error
        self.context_kwargs = kwargs
        return FakeContext(self.page)


class FakeContext(Closable):
    def __init__(self, page):
        super().__init__()
        self.page = page

    async def new_page(self):
        return self.page


class FakeChromium:
    def __init__(self, browser=None, error=None):
        self.browser = browser
        self.error = error
        self.launch_kwargs = None

    async def launch(self, **kwargs):
        self.launch_kwargs = kwargs
        if self.error:
            raise self.error
        return self.browser


class FakePlaywright(Closable):
    def __init__(self, chromium):
        super().__init__()
        self.chromium = chromium


class FakeDriver:
    def __init__(self, playwright):
        self.playwright = playwright

    async def start(self):
        return self.playwright


def make_manager(chromium, **launch_overrides):
    playwright = FakePlaywright(chromium)
    launch = LaunchConfig(enable_stealth=False, **launch_overrides)
    return SessionManager(launch, playwright_factory=lambda: FakeDriver(playwright)), playwright


def test_acquire_launches_hardened_browser():
    browser = FakeBrowser()
    chromium = FakeChromium(browser)
    manager, _ = make_manager(chromium, executable_path='/usr/bin/chromium', navigation_timeout=12)

    session = asyncio.run(manager.acquire())

    assert session.page is browser.page
    assert chromium.launch_kwargs['headless'] is True
    assert chromium.launch_kwargs['executable_path'] == '/usr/bin/chromium'
    assert '--no-sandbox' in chromium.launch_kwargs['args']
    assert '--disable-gpu' in chromium.launch_kwargs['args']
    assert '--no-first-run' in chromium.launch_kwargs['args']
    assert 'HeadlessChrome' not in browser.context_kwargs['user_agent']
    assert browser.page.default_navigation_timeout == 12000


def test_acquire_omits_executable_path_when_unset():
    chromium = FakeChromium(FakeBrowser())
    manager, _ = make_manager(chromium)
    asyncio.run(manager.acquire())
    assert 'executable_path' not in chromium.launch_kwargs


def test_launch_failure_raises_and_stops_driver():
    chromium = FakeChromium(error=RuntimeError("no chromium binary"))
    manager, playwright = make_manager(chromium)

    with pytest.raises(SessionAcquisitionFailure):
        asyncio.run(manager.acquire())
    assert playwright.calls == 1


def test_page_failure_releases_browser():
    browser = FakeBrowser(context_error=RuntimeError("context refused"))
    manager, playwright = make_manager(FakeChromium(browser))

    with pytest.raises(SessionAcquisitionFailure):
        asyncio.run(manager.acquire())
    assert browser.calls == 1
    assert playwright.calls == 1


def test_filtering_aborts_blocked_requests():
    page = FakePage()
    session = BrowserSession(page=page)
    manager = SessionManager(LaunchConfig(enable_stealth=False))

    async def run():
        await manager.configure_filtering(session)
        routes = [FakeRoute('image'), FakeRoute('document'), FakeRoute('xhr'),
                  FakeRoute('font'), FakeRoute('script', 'https://x.example/site.css')]
        for route in routes:
            await page.route_handler(route)
        return routes

    routes = asyncio.run(run())

    assert [r.action for r in routes] == ['abort', 'continue', 'continue', 'abort', 'abort']
    assert session.blocked_requests == 3


def test_release_swallows_close_failures():
    page = Closable(error=RuntimeError("page already closed"))
    context = Closable()
    browser = Closable(error=RuntimeError("browser crashed"))
    playwright = Closable()
    session = BrowserSession(playwright=playwright, browser=browser, context=context, page=page)
    manager = SessionManager(LaunchConfig(enable_stealth=False))

    asyncio.run(manager.release(session))

    assert (page.calls, context.calls, browser.calls, playwright.calls) == (1, 1, 1, 1)
    assert session.browser is None and session.page is None


def test_session_context_releases_on_error():
    browser = FakeBrowser()
    manager, playwright = make_manager(FakeChromium(browser))

    async def run():
        async with manager.session():
            raise ValueError("pipeline blew up")

    with pytest.raises(ValueError):
        asyncio.run(run())
    assert browser.page.closed
    assert browser.calls == 1
    assert playwright.calls == 1
