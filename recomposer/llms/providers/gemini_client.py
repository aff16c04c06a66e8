# recomposer/llms/providers/gemini_client.py
from __future__ import annotations

import base64
import os
from typing import Any, Dict, List, Optional, Tuple

from google import genai
from google.genai import types

from recomposer.app.errors import ConfigError, GeneratorError


class GeminiClient:
    """
    Async wrapper around google-genai for the two calls the pipeline makes:
    structured JSON (strategy) and image drafts (preview).
    Works against the Gemini API with an API key or Vertex AI with ADC.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        project_id: Optional[str] = None,
        location: Optional[str] = None,
    ):
        self.api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        self.project_id = project_id or os.getenv("PROJECT_ID")
        self.location = location or os.getenv("VERTEX_LOCATION", "us-central1")

        if self.api_key:
            self.client = genai.Client(api_key=self.api_key)
        elif self.project_id:
            # Vertex AI with Application Default Credentials
            self.client = genai.Client(
                vertexai=True,
                project=self.project_id,
                location=self.location,
            )
        else:
            raise ConfigError("Either GEMINI_API_KEY or PROJECT_ID (for Vertex AI with ADC) must be set")

    async def generate_json(
        self,
        *,
        model: str,
        parts: List[types.Part],
        response_schema: Dict[str, Any],
        thinking_budget: Optional[int] = None,
    ) -> str:
        """Send text/image parts and return the raw JSON text of the answer."""
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=response_schema,
            thinking_config=(
                types.ThinkingConfig(thinking_budget=thinking_budget) if thinking_budget else None
            ),
        )
        try:
            resp = await self.client.aio.models.generate_content(
                model=model,
                contents=[types.Content(role="user", parts=parts)],
                config=config,
            )
        except Exception as e:  # SDK raises transport and API errors from several modules
            raise GeneratorError(f"Gemini call failed: {e}") from e
        return resp.text or ""

    async def generate_image(
        self,
        *,
        prompt: str,
        model: str,
        reference_png: Optional[bytes] = None,
        aspect_ratio: str = "1:1",
    ) -> Optional[Tuple[bytes, str]]:
        """
        Returns (image_bytes, mime_type), or None when the answer had no image part.
        """
        parts: List[types.Part] = []
        if reference_png:
            parts.append(types.Part.from_bytes(data=reference_png, mime_type="image/png"))
        parts.append(types.Part.from_text(text=prompt))

        config = types.GenerateContentConfig(
            response_modalities=["TEXT", "IMAGE"],
            image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
        )
        try:
            resp = await self.client.aio.models.generate_content(
                model=model,
                contents=[types.Content(role="user", parts=parts)],
                config=config,
            )
        except Exception as e:
            raise GeneratorError(f"Gemini image call failed: {e}") from e

        # scan all candidates -> all parts for inline image bytes
        candidates = getattr(resp, "candidates", None) or []
        for cand in candidates:
            content = getattr(cand, "content", None)
            if not content:
                continue
            for part in getattr(content, "parts", None) or []:
                inline_data = getattr(part, "inline_data", None)
                if not inline_data:
                    continue
                mime = getattr(inline_data, "mime_type", None) or "image/png"
                data = getattr(inline_data, "data", None)

                # data may be bytes or base64 str
                if isinstance(data, (bytes, bytearray)):
                    return bytes(data), mime
                if isinstance(data, str):
                    return base64.b64decode(data), mime
        return None
