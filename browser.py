# browser.py
import asyncio
import contextlib
import logging
import os
import random
import shutil
from typing import Optional

from playwright.async_api import BrowserContext, Page, Playwright, async_playwright
from playwright_stealth import Stealth

import site_selectors as sel
from errors import SessionUnavailable
from retry_policy import with_retry

logger = logging.getLogger(__name__)

stealth = Stealth()


class SessionHandle:
    """
    One persistent browser context plus its primary page.

    The primary page holds the lobby's tab state, so list-level extraction goes
    through `primary()`, which serializes callers. Detail extraction opens its
    own page with `ephemeral_page()`.
    """

    def __init__(self, context: BrowserContext, page: Page):
        self.context = context
        self.page = page
        self.closed = False
        self._lock = asyncio.Lock()
        context.on("close", self._on_close)

    def _on_close(self, *_):
        self.closed = True

    def is_alive(self) -> bool:
        return not self.closed and not self.page.is_closed()

    @contextlib.asynccontextmanager
    async def primary(self):
        async with self._lock:
            yield self.page

    @contextlib.asynccontextmanager
    async def ephemeral_page(self):
        page = await self.context.new_page()
        try:
            yield page
        finally:
            with contextlib.suppress(Exception):
                await page.close()


class SessionManager:
    def __init__(self, cfg: dict, playwright_factory=async_playwright):
        self.cfg = cfg
        self._playwright_factory = playwright_factory
        self._pw: Optional[Playwright] = None
        self._handle: Optional[SessionHandle] = None
        self._launching = asyncio.Lock()

    @property
    def session_dir(self) -> str:
        return os.path.abspath(self.cfg["browser"]["session_dir"])

    def is_healthy(self) -> bool:
        return self._handle is not None and self._handle.is_alive()

    async def ensure_session(self) -> SessionHandle:
        async with self._launching:
            if self.is_healthy():
                return self._handle
            if self._handle is not None:
                logger.warning("Browser session lost, relaunching...")
            await self._close_context()
            try:
                self._handle = await with_retry(
                    lambda: self._launch(headless=self.cfg["browser"]["headless"]),
                    max_attempts=self.cfg["retry"]["session_attempts"],
                    base_delay=self.cfg["retry"]["session_delay"],
                    label="browser launch",
                )
            except Exception as e:
                raise SessionUnavailable(f"browser launch failed: {e!r}") from e
            return self._handle

    async def _launch(self, headless: bool) -> SessionHandle:
        bc = self.cfg["browser"]
        os.makedirs(self.session_dir, exist_ok=True)
        if self._pw is None:
            self._pw = await self._playwright_factory().start()

        context = await self._pw.chromium.launch_persistent_context(
            user_data_dir=self.session_dir,
            headless=headless,
            args=bc["args"],
            ignore_default_args=["--enable-automation"],
            viewport=bc["viewport"] if headless else None,
            ignore_https_errors=True,
            user_agent=random.choice(bc["user_agents"]),
            extra_http_headers=bc["headers"],
        )
        try:
            await stealth.apply_stealth_async(context)
            await context.route("**/*", self._block_heavy_resources)
            page = context.pages[0] if context.pages else await context.new_page()
            await page.goto(
                self.cfg["site"]["lobby_url"],
                wait_until="networkidle",
                timeout=bc["navigation_timeout_ms"],
                referer=self.cfg["site"]["referer"],
            )
        except Exception:
            with contextlib.suppress(Exception):
                await context.close()
            raise
        logger.info("Browser launched (headless=%s)", headless)
        return SessionHandle(context, page)

    async def _block_heavy_resources(self, route):
        if route.request.resource_type in self.cfg["browser"]["blocked_resources"]:
            await route.abort()
        else:
            await route.continue_()

    async def is_logged_in(self) -> bool:
        """Check the lobby for an element that only renders after login."""
        handle = await self.ensure_session()
        try:
            async with handle.primary() as page:
                await page.goto(
                    self.cfg["site"]["lobby_url"],
                    wait_until="networkidle",
                    timeout=self.cfg["browser"]["navigation_timeout_ms"],
                )
                await page.wait_for_selector(
                    sel.LOGGED_IN_MARKER, timeout=self.cfg["browser"]["login_timeout_ms"]
                )
            return True
        except Exception as e:
            logger.info("Login check failed: %r", e)
            return False

    async def launch_interactive(self) -> SessionHandle:
        """Visible browser on the same profile, for a human to log in."""
        async with self._launching:
            await self._close_context()
            try:
                self._handle = await self._launch(headless=False)
            except Exception as e:
                raise SessionUnavailable(f"interactive launch failed: {e!r}") from e
            return self._handle

    async def wait_closed(self, poll_seconds: float = 1.0):
        while self._handle is not None and not self._handle.closed:
            await asyncio.sleep(poll_seconds)

    async def _close_context(self):
        handle, self._handle = self._handle, None
        if handle is not None:
            with contextlib.suppress(Exception):
                await handle.context.close()

    async def close(self):
        async with self._launching:
            await self._close_context()
            if self._pw is not None:
                with contextlib.suppress(Exception):
                    await self._pw.stop()
                self._pw = None

    async def reset(self):
        """Drop the browser and the persisted profile; next use needs a fresh login."""
        await self.close()
        shutil.rmtree(self.session_dir, ignore_errors=True)
        logger.info("Session reset: removed %s", self.session_dir)
