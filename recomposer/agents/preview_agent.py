from __future__ import annotations

import asyncio
import base64
import logging
from typing import Optional, Protocol

from recomposer.app.errors import GeneratorTimeout
from recomposer.app.settings import Settings
from recomposer.llms.prompt_registry import get_prompt
from recomposer.llms.providers.gemini_client import GeminiClient

logger = logging.getLogger(__name__)


class PreviewGenerator(Protocol):
    async def generate_preview(self, prompt: str, reference_png: Optional[bytes] = None) -> Optional[str]:
        """Return a data URL for a draft image, or None."""
        ...


class GeminiPreviewGenerator:
    def __init__(self, settings: Settings, client: Optional[GeminiClient] = None):
        self.settings = settings
        self.client = client or GeminiClient(api_key=settings.gemini_api_key)

    async def generate_preview(self, prompt: str, reference_png: Optional[bytes] = None) -> Optional[str]:
        try:
            result = await asyncio.wait_for(
                self.client.generate_image(
                    prompt=get_prompt("preview").render(prompt=prompt),
                    model=self.settings.preview_model,
                    reference_png=reference_png,
                ),
                timeout=self.settings.generator_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise GeneratorTimeout("preview generator timed out") from e

        if result is None:
            logger.warning("preview response carried no image")
            return None
        data, mime = result
        return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"
