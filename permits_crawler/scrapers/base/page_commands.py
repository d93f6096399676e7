"""Page command interface.

Adapters never reach into a live page directly. They go through the narrow
set of named operations below, each with typed inputs and outputs, so the
crawl state machines can be exercised against an in-memory page in tests.

State-changing commands follow an "apply, then notify" protocol: the value
(or click) is first applied through the client framework's scope when a
:class:`FrameworkBinding` is given, then mirrored natively (value + ``input``
/ ``change`` events, or a DOM click) because the framework does not always
observe native events and native listeners do not observe scope changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any, List, Optional

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError
from pydantic import BaseModel, Field

from permits_crawler.scrapers.base import scripts


class ScopeCall(BaseModel):
    """Method reachable from a framework scope, e.g. ``vm.goToPage(3)``.

    ``arg_paths`` are scope paths whose values are appended to ``args`` at
    call time, for handlers that expect framework constants.
    """

    path: str
    args: List[Any] = Field(default_factory=list)
    arg_paths: List[str] = Field(default_factory=list)


class FrameworkBinding(BaseModel):
    """Where a control's state lives inside the client framework.

    Parameters
    ----------
    scope_selectors : List[str]
        Elements whose scopes are tried in order. The target element itself
        is used when empty.
    model_paths : List[str]
        Candidate model paths, first resolvable one wins.
    calls : List[ScopeCall]
        Candidate handlers, first callable one wins.
    """

    scope_selectors: List[str] = Field(default_factory=list)
    model_paths: List[str] = Field(default_factory=list)
    calls: List[ScopeCall] = Field(default_factory=list)


class ClickOutcome(BaseModel):
    """What a :meth:`PageCommands.click_element` call managed to trigger."""

    framework_call: Optional[str] = None
    native_click: bool = False

    @property
    def triggered(self) -> bool:
        return self.framework_call is not None or self.native_click


class PageCommands(ABC):
    """Named operations against one browser tab."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Current page URL."""

    @abstractmethod
    async def goto(self, url: str, timeout_ms: int = 60000, wait_for_idle: bool = True) -> Optional[int]:
        """Navigate and return the main document's HTTP status (if any)."""

    @abstractmethod
    async def evaluate_script(self, script: str, arg: Any = None) -> Any:
        """Evaluate one of the named scripts in :mod:`scripts`."""

    @abstractmethod
    async def wait_for_selector(self, selector: str, timeout_ms: int, state: str = "attached") -> bool:
        """Whether ``selector`` reached ``state`` within ``timeout_ms``."""

    @abstractmethod
    async def is_visible(self, selector: str) -> bool:
        """Whether ``selector`` is displayed and not marked hidden."""

    @abstractmethod
    async def read_selector_text(self, selector: str) -> Optional[str]:
        """Trimmed text of the first match, ``None`` when absent or blank."""

    @abstractmethod
    async def set_field_value(
        self,
        selector: str,
        value: str,
        binding: Optional[FrameworkBinding] = None,
        model_value: Any = None,
    ) -> bool:
        """Apply ``value`` to a form field, then notify listeners."""

    @abstractmethod
    async def click_element(
        self,
        selector: str,
        binding: Optional[FrameworkBinding] = None,
        fallback_value: Any = True,
    ) -> ClickOutcome:
        """Trigger a control through its framework handler and a native click."""

    @abstractmethod
    async def select_option(self, selector: str, value: str, timeout_ms: int = 10000) -> bool:
        """Pick an ``<option>`` by value using the browser's native select."""

    @abstractmethod
    async def content(self) -> str:
        """Serialized DOM."""

    @abstractmethod
    async def body_text(self) -> str:
        """Rendered text of ``document.body``."""

    @abstractmethod
    async def pause(self, ms: int) -> None:
        """Fixed settle delay."""

    @abstractmethod
    async def close(self) -> None:
        """Close the tab."""


class PlaywrightPageCommands(PageCommands):
    """:class:`PageCommands` backed by a Playwright ``Page``.

    Parameters
    ----------
    page : Page
        Tab to drive; owned by the caller.
    """

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str, timeout_ms: int = 60000, wait_for_idle: bool = True) -> Optional[int]:
        response = await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        if wait_for_idle:
            try:
                await self._page.wait_for_load_state("networkidle", timeout=timeout_ms)
            except PlaywrightTimeoutError:
                logging.warning("Network never went idle after loading %s", url)
        return response.status if response is not None else None

    async def evaluate_script(self, script: str, arg: Any = None) -> Any:
        return await self._page.evaluate(script, arg)

    async def wait_for_selector(self, selector: str, timeout_ms: int, state: str = "attached") -> bool:
        try:
            await self._page.wait_for_selector(selector, state=state, timeout=max(1, timeout_ms))
            return True
        except PlaywrightTimeoutError:
            return False

    async def is_visible(self, selector: str) -> bool:
        return bool(await self.evaluate_script(scripts.ELEMENT_VISIBLE, selector))

    async def read_selector_text(self, selector: str) -> Optional[str]:
        locator = self._page.locator(selector)
        if await locator.count() == 0:
            return None
        text = await locator.first.text_content()
        text = (text or "").strip()
        return text or None

    async def set_field_value(
        self,
        selector: str,
        value: str,
        binding: Optional[FrameworkBinding] = None,
        model_value: Any = None,
    ) -> bool:
        assigned = None
        if binding is not None:
            outcome = await self.evaluate_script(
                scripts.SCOPE_ASSIGN,
                {
                    "selector": selector,
                    "scopeSelectors": binding.scope_selectors or [selector],
                    "modelPaths": binding.model_paths,
                    "calls": [c.model_dump() for c in binding.calls],
                    "value": value if model_value is None else model_value,
                },
            )
            assigned = (outcome or {}).get("assigned") or (outcome or {}).get("called")
        native = bool(await self.evaluate_script(scripts.NATIVE_SET_VALUE, {"selector": selector, "value": value}))
        return native or assigned is not None

    async def click_element(
        self,
        selector: str,
        binding: Optional[FrameworkBinding] = None,
        fallback_value: Any = True,
    ) -> ClickOutcome:
        framework_call = None
        if binding is not None:
            framework_call = await self.evaluate_script(
                scripts.SCOPE_INVOKE,
                {
                    "scopeSelectors": binding.scope_selectors or [selector],
                    "modelPaths": binding.model_paths,
                    "calls": [c.model_dump() for c in binding.calls],
                    "fallbackValue": fallback_value,
                },
            )
        native = bool(await self.evaluate_script(scripts.NATIVE_CLICK, selector))
        return ClickOutcome(framework_call=framework_call, native_click=native)

    async def select_option(self, selector: str, value: str, timeout_ms: int = 10000) -> bool:
        try:
            selected = await self._page.select_option(selector, value, timeout=max(1, timeout_ms))
            return bool(selected)
        except PlaywrightTimeoutError:
            return False

    async def content(self) -> str:
        return await self._page.content()

    async def body_text(self) -> str:
        return await self.evaluate_script(scripts.BODY_TEXT) or ""

    async def pause(self, ms: int) -> None:
        if ms > 0:
            await self._page.wait_for_timeout(ms)

    async def close(self) -> None:
        if not self._page.is_closed():
            await self._page.close()
