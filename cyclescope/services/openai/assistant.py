"""
Chart analysis through an OpenAI assistant.

Protocol for one analysis:
1. upload the chart image (purpose="assistants")
2. create a thread and post the image with a dated instruction
3. start a run with temperature 0 and JSON response format
4. poll the run every ``poll_interval`` seconds until it is terminal
5. read the assistant's reply and parse the three layers
6. delete the uploaded file, whatever happened above

Usage:
    from cyclescope.services.openai import ChartAssistant

    assistant = ChartAssistant.from_settings()
    analysis = await assistant.analyze("/data/2025-11-30/original_chart.png", "2025-11-30")
    analysis["layer3"]["primary_message"]
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

from openai import AsyncOpenAI, OpenAIError

from cyclescope.core.config import Settings, settings as default_settings
from cyclescope.core.exceptions import AnalysisError, ConfigurationError
from cyclescope.core.logging import get_logger
from cyclescope.services.openai.normalize import parse_analysis
from cyclescope.services.openai.polling import poll_run
from cyclescope.services.openai.prompts import build_analysis_prompt

logger = get_logger("openai.assistant")

DEFAULT_POLL_INTERVAL = 2.0  # seconds
DEFAULT_RUN_TIMEOUT = 300.0  # 5 minutes


class ChartAssistant:
    """Submit/poll/retrieve client for the chart analysis assistant."""

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        *,
        api_key: str = "",
        assistant_id: str = "",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        run_timeout: float = DEFAULT_RUN_TIMEOUT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._api_key = api_key
        self.assistant_id = assistant_id
        self.poll_interval = poll_interval
        self.run_timeout = run_timeout
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "ChartAssistant":
        config = config or default_settings
        return cls(
            api_key=config.openai_api_key,
            assistant_id=config.openai_assistant_id,
            poll_interval=config.openai_poll_interval,
            run_timeout=config.openai_run_timeout,
        )

    @property
    def client(self) -> AsyncOpenAI:
        """OpenAI client, created on first use."""
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError("OPENAI_API_KEY is required")
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def analyze(self, image_path: str | Path, date: str) -> dict[str, Any]:
        """
        Analyze a chart image.

        Returns:
            Dict with ``layer1``, ``layer2`` and ``layer3``

        Raises:
            ConfigurationError: API key or assistant id missing
            AnalysisError: upload failure, run failure/timeout, or an
                unusable response
        """
        if not self.assistant_id:
            raise ConfigurationError("OPENAI_ASSISTANT_ID is required")

        path = Path(image_path)
        if not path.is_file():
            raise AnalysisError(f"Chart file not found: {path}")

        client = self.client
        logger.info(f"Starting chart analysis for {date} with assistant {self.assistant_id}")

        file_id: str | None = None
        try:
            uploaded = await client.files.create(
                file=(path.name, await asyncio.to_thread(path.read_bytes), "image/png"),
                purpose="assistants",
            )
            file_id = uploaded.id
            logger.info(f"Chart uploaded: {file_id}")

            thread = await client.beta.threads.create()
            await client.beta.threads.messages.create(
                thread.id,
                role="user",
                content=[
                    {"type": "text", "text": build_analysis_prompt(date)},
                    {"type": "image_file", "image_file": {"file_id": file_id}},
                ],
            )

            run = await client.beta.threads.runs.create(
                thread.id,
                assistant_id=self.assistant_id,
                response_format={"type": "json_object"},
                temperature=0,
            )
            logger.info(f"Run started: {run.id}")

            await poll_run(
                run,
                lambda: client.beta.threads.runs.retrieve(run.id, thread_id=thread.id),
                interval=self.poll_interval,
                timeout=self.run_timeout,
                sleep=self._sleep,
                clock=self._clock,
            )

            raw = await self._fetch_reply(client, thread.id)
            analysis = parse_analysis(raw)
        except OpenAIError as e:
            raise AnalysisError(f"Assistant request failed: {e}") from e
        finally:
            if file_id:
                await self._delete_file(client, file_id)

        logger.info(
            "Analysis completed: "
            + "; ".join(f"{layer} keys={sorted(analysis[layer])}" for layer in analysis)
        )
        return analysis

    async def _fetch_reply(self, client: AsyncOpenAI, thread_id: str) -> str:
        """Text of the newest assistant message in the thread."""
        messages = await client.beta.threads.messages.list(thread_id)
        reply = next((m for m in messages.data if m.role == "assistant"), None)
        if reply is None:
            raise AnalysisError("No assistant response found")

        text = next((c for c in reply.content if c.type == "text"), None)
        if text is None:
            raise AnalysisError("No text content in assistant response")
        return text.text.value

    async def _delete_file(self, client: AsyncOpenAI, file_id: str) -> None:
        try:
            await client.files.delete(file_id)
            logger.info(f"Cleaned up file: {file_id}")
        except Exception as e:
            logger.warning(f"Failed to delete file {file_id}: {e}")
