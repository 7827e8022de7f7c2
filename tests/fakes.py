"""
In-memory stand-ins for the Playwright objects the scraper touches.
"""

from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from product_scraper.sources import FieldRule, SourceSpec


class FakeElement:
    def __init__(self, text: Optional[str] = None, attrs: Optional[Dict[str, str]] = None,
                 children: Optional[Dict[str, 'FakeElement']] = None,
                 click_error: Optional[Exception] = None, on_click: Optional[Callable[[], None]] = None):
        self.text = text
        self.attrs = attrs or {}
        self.children = children or {}
        self.click_error = click_error
        self.on_click = on_click
        self.clicks = 0

    async def query_selector(self, selector: str):
        return self.children.get(selector)

    async def text_content(self):
        return self.text

    async def get_attribute(self, name: str):
        return self.attrs.get(name)

    async def click(self, timeout: float = 0):
        self.clicks += 1
        if self.click_error:
            raise self.click_error
        if self.on_click:
            self.on_click()


def product_card(name: Optional[str], price: Optional[str] = None, image: Optional[str] = None,
                 link: Optional[str] = None) -> FakeElement:
    children = {}
    if name is not None:
        children['.title'] = FakeElement(text=name)
    if price is not None:
        children['.price'] = FakeElement(text=price)
    if image is not None:
        children['img'] = FakeElement(attrs={'src': image})
    if link is not None:
        children['a'] = FakeElement(attrs={'href': link})
    return FakeElement(children=children)


class FakePage:
    def __init__(self, containers: Optional[Dict[str, List[FakeElement]]] = None,
                 elements: Optional[Dict[str, FakeElement]] = None,
                 title: str = "Results", body: str = "", html: str = "<html></html>",
                 goto_error: Optional[Exception] = None, idle_error: Optional[Exception] = None,
                 reload_error: Optional[Exception] = None, on_reload: Optional[Callable[['FakePage'], None]] = None,
                 sticky_selectors: Optional[set] = None):
        self.containers = containers or {}
        self.elements = elements or {}
        self.page_title = title
        self.body = body
        self.html = html
        self.goto_error = goto_error
        self.idle_error = idle_error
        self.reload_error = reload_error
        self.on_reload = on_reload
        self.sticky_selectors = sticky_selectors or set()
        self.visited: List[str] = []
        self.reloads = 0
        self.route_handler = None
        self.default_navigation_timeout = None
        self.closed = False

    async def goto(self, url: str, wait_until: str = 'load', timeout: float = 0):
        self.visited.append(url)
        if self.goto_error:
            raise self.goto_error

    async def wait_for_load_state(self, state: str = 'load', timeout: float = 0):
        if state == 'networkidle' and self.idle_error:
            raise self.idle_error

    async def reload(self, wait_until: str = 'load', timeout: float = 0):
        self.reloads += 1
        if self.reload_error:
            raise self.reload_error
        if self.on_reload:
            self.on_reload(self)

    async def title(self):
        return self.page_title

    async def evaluate(self, script: str, *args: Any):
        return self.body

    async def content(self):
        return self.html

    async def screenshot(self, path: str, full_page: bool = False):
        with open(path, 'wb') as f:
            f.write(b'PNG')

    async def query_selector(self, selector: str):
        return self.elements.get(selector)

    async def query_selector_all(self, selector: str):
        return list(self.containers.get(selector, []))

    async def wait_for_selector(self, selector: str, state: str = 'visible', timeout: float = 0):
        if state == 'detached':
            if selector in self.sticky_selectors:
                raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for detach")
            self.elements.pop(selector, None)
            return None
        if self.containers.get(selector) or selector in self.elements:
            return FakeElement()
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def route(self, pattern: str, handler):
        self.route_handler = handler

    def set_default_navigation_timeout(self, timeout: float):
        self.default_navigation_timeout = timeout

    async def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, page: FakePage):
        self.page = page
        self.blocked_requests = 0


class FakeSessionManager:
    """Hands out one fresh page per acquisition from a factory."""

    def __init__(self, page_factory: Callable[[], FakePage]):
        self.page_factory = page_factory
        self.acquired = 0
        self.released = 0

    @asynccontextmanager
    async def session(self):
        self.acquired += 1
        session = FakeSession(self.page_factory())
        try:
            yield session
        finally:
            self.released += 1


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def stub_source(source_id: str = 'stub', cap: int = 10) -> SourceSpec:
    return SourceSpec(
        source_id=source_id,
        search_url_template=f'https://{source_id}.example/search?q={{query}}',
        origin=f'https://{source_id}.example',
        container_selector='.card',
        ready_selector='.card',
        cap=cap,
        fields=(
            FieldRule('name', '.title'),
            FieldRule('price', '.price'),
            FieldRule('image_url', 'img', attribute='src'),
            FieldRule('detail_url', 'a', attribute='href'),
        ),
    )


def timeout_error(message: str = "Timeout 1000ms exceeded") -> PlaywrightTimeoutError:
    return PlaywrightTimeoutError(message)


def network_error(message: str = "net::ERR_CONNECTION_RESET") -> PlaywrightError:
    return PlaywrightError(message)
