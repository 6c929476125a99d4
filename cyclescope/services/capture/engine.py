"""
Chart capture via headless Chromium (Playwright).

Loads the configured chart page, clears transient overlays, waits for the
chart to finish drawing and stores a PNG screenshot under the day's
partition as ``original_chart.png``.

Usage:
    from cyclescope.services.capture import ChartCaptureEngine

    engine = ChartCaptureEngine.from_settings(store)
    path = await engine.capture_with_retry("2025-11-30")
"""

from __future__ import annotations

import asyncio
import io
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence

from PIL import Image
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from cyclescope.core.config import Settings, settings as default_settings
from cyclescope.core.dates import today_partition_key
from cyclescope.core.exceptions import CaptureError, ConfigurationError
from cyclescope.core.logging import get_logger
from cyclescope.services.capture.overlays import (
    DEFAULT_OVERLAY_RULES,
    FINAL_PASS_RULES,
    OverlayRule,
    rules_from_selectors,
)
from cyclescope.services.storage import ORIGINAL_CHART, PartitionedFileStore

logger = get_logger("capture")

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]
RENDER_TARGET_SELECTOR = "canvas"

Box = tuple[int, int, int, int]


# =============================================================================
# Page helpers
# =============================================================================


async def dismiss_overlays(
    page: Any,
    rules: Sequence[OverlayRule],
    attempts: int = 3,
    click_timeout_ms: int = 2000,
    pause_ms: int = 1000,
) -> int:
    """
    Run the overlay dismissal loop.

    Every attempt walks the whole rule table in priority order and applies
    the rule's action to each matching element. Elements that are stale or
    not clickable within ``click_timeout_ms`` are skipped. Running this with
    nothing on screen is a no-op.

    Returns:
        Number of overlays dismissed across all attempts
    """
    dismissed = 0

    for attempt in range(1, attempts + 1):
        closed_any = False
        for rule in rules:
            try:
                elements = await page.query_selector_all(rule.selector)
            except PlaywrightError as e:
                logger.debug(f"Selector {rule.selector!r} not usable: {e}")
                continue

            for element in elements:
                try:
                    if rule.action == "remove":
                        await element.evaluate("el => el.remove()")
                    else:
                        await element.click(timeout=click_timeout_ms)
                except PlaywrightError:
                    continue
                dismissed += 1
                closed_any = True
                logger.info(f"Dismissed overlay ({rule.name}) on attempt {attempt}")

        if not closed_any and attempt == 1:
            logger.info("No overlays detected")

        await page.wait_for_timeout(pause_ms)

    return dismissed


def crop_screenshot(data: bytes, box: Box | None) -> bytes:
    """Crop PNG bytes to (left, top, width, height).

    Any failure keeps the uncropped image.
    """
    if box is None:
        return data

    left, top, width, height = box
    try:
        with Image.open(io.BytesIO(data)) as img:
            if left + width > img.width or top + height > img.height:
                raise ValueError(
                    f"crop {box} exceeds screenshot size {img.width}x{img.height}"
                )
            cropped = img.crop((left, top, left + width, top + height))
            out = io.BytesIO()
            cropped.save(out, format="PNG")
    except (OSError, ValueError) as e:
        logger.warning(f"Cropping failed, using full screenshot: {e}")
        return data

    logger.info(f"Cropped screenshot ({len(data)} -> {out.tell()} bytes)")
    return out.getvalue()


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        f"Capture attempt {retry_state.attempt_number} failed: {error}. "
        f"Retrying in {wait:.0f}s"
    )


# =============================================================================
# Engine
# =============================================================================


class ChartCaptureEngine:
    """Screenshots the chart page into the partitioned file store."""

    def __init__(
        self,
        store: PartitionedFileStore,
        chart_url: str,
        *,
        viewport: tuple[int, int] = (1920, 1080),
        navigation_timeout_ms: int = 90_000,
        canvas_timeout_ms: int = 10_000,
        render_settle_ms: int = 60_000,
        dismiss_attempts: int = 3,
        click_timeout_ms: int = 2_000,
        crop_box: Box | None = None,
        overlay_rules: Sequence[OverlayRule] = DEFAULT_OVERLAY_RULES,
        require_render_target: bool = False,
        max_attempts: int = 3,
        backoff_seconds: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.chart_url = chart_url
        self.viewport = viewport
        self.navigation_timeout_ms = navigation_timeout_ms
        self.canvas_timeout_ms = canvas_timeout_ms
        self.render_settle_ms = render_settle_ms
        self.dismiss_attempts = dismiss_attempts
        self.click_timeout_ms = click_timeout_ms
        self.crop_box = crop_box
        self.overlay_rules = tuple(overlay_rules)
        self.require_render_target = require_render_target
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, store: PartitionedFileStore, config: Settings | None = None
    ) -> "ChartCaptureEngine":
        config = config or default_settings
        rules = rules_from_selectors(config.overlay_selectors) or DEFAULT_OVERLAY_RULES
        return cls(
            store,
            config.chart_url,
            viewport=(config.capture_viewport_width, config.capture_viewport_height),
            navigation_timeout_ms=config.capture_navigation_timeout_ms,
            canvas_timeout_ms=config.capture_canvas_timeout_ms,
            render_settle_ms=config.capture_render_settle_ms,
            dismiss_attempts=config.capture_dismiss_attempts,
            click_timeout_ms=config.capture_click_timeout_ms,
            crop_box=config.crop_box,
            overlay_rules=rules,
            max_attempts=config.capture_max_attempts,
            backoff_seconds=config.capture_backoff_seconds,
        )

    async def capture(self, date: str | None = None) -> Path:
        """
        Capture one screenshot of the chart page for ``date``.

        Raises:
            ConfigurationError: No chart URL configured
            CaptureError: Navigation timeout, browser failure, or missing
                render target when ``require_render_target`` is set
        """
        if not self.chart_url:
            raise ConfigurationError("CHART_URL is required")

        key = date or today_partition_key()
        logger.info(f"Starting chart capture for {key}: {self.chart_url}")

        try:
            screenshot = await self._take_screenshot()
        except PlaywrightError as e:
            raise CaptureError(f"Chart capture failed: {e}") from e

        logger.info(f"Screenshot captured ({len(screenshot)} bytes)")
        screenshot = crop_screenshot(screenshot, self.crop_box)

        try:
            path = await self.store.save_file(ORIGINAL_CHART, screenshot, key)
        except OSError as e:
            raise CaptureError(f"Could not store screenshot: {e}") from e

        logger.info(f"Chart captured successfully: {path}")
        return path

    async def capture_with_retry(
        self, date: str | None = None, max_attempts: int | None = None
    ) -> Path:
        """
        Run :meth:`capture` up to ``max_attempts`` times.

        Waits ``attempt * backoff_seconds`` between attempts. Earlier
        failures are only logged; after the last attempt the final error is
        raised wrapped in CaptureError.
        """
        attempts = max_attempts or self.max_attempts
        key = date or today_partition_key()
        path: Path | None = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_incrementing(start=self.backoff_seconds, increment=self.backoff_seconds),
            retry=retry_if_not_exception_type(ConfigurationError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=False,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    logger.info(
                        f"Capture attempt {attempt.retry_state.attempt_number}/{attempts}"
                    )
                    path = await self.capture(key)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            raise CaptureError(
                f"Failed to capture chart after {attempts} attempts: {last_error}",
                details={"attempts": attempts},
            ) from last_error

        return path

    async def _take_screenshot(self) -> bytes:
        width, height = self.viewport

        async with async_playwright() as p:
            logger.info("Launching browser")
            browser = await p.chromium.launch(headless=True, args=BROWSER_ARGS)
            try:
                context = await browser.new_context(viewport={"width": width, "height": height})
                page = await context.new_page()

                await page.goto(
                    self.chart_url,
                    wait_until="load",
                    timeout=self.navigation_timeout_ms,
                )
                logger.info("Page loaded, waiting for chart to render")

                await self._wait_for_render_target(page)

                await dismiss_overlays(
                    page,
                    self.overlay_rules,
                    attempts=self.dismiss_attempts,
                    click_timeout_ms=self.click_timeout_ms,
                )

                logger.info(f"Waiting {self.render_settle_ms}ms for chart to settle")
                await page.wait_for_timeout(self.render_settle_ms)

                await dismiss_overlays(
                    page,
                    FINAL_PASS_RULES,
                    attempts=1,
                    click_timeout_ms=1000,
                    pause_ms=500,
                )

                return await page.screenshot(full_page=False, type="png")
            finally:
                await browser.close()
                logger.info("Browser closed")

    async def _wait_for_render_target(self, page: Any) -> None:
        try:
            await page.wait_for_selector(RENDER_TARGET_SELECTOR, timeout=self.canvas_timeout_ms)
            logger.info("Chart canvas detected")
        except PlaywrightError as e:
            if self.require_render_target:
                raise CaptureError(f"Render target {RENDER_TARGET_SELECTOR!r} not found") from e
            logger.warning("Canvas not found, continuing anyway")
