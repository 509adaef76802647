"""
Recraft Image Client

Generates food photography for a meal via the Recraft generations endpoint
and returns the hosted image URL.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx

from nutribatch.core.config import settings
from nutribatch.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

MAX_PROMPT_LENGTH = 1000

DRINK_KEYWORDS = ("drink", "juice", "smoothie", "coffee", "tea")
DESSERT_KEYWORDS = ("cake", "pie", "dessert", "ice cream", "pastry")
HEALTHY_TAGS = ("healthy", "organic", "fresh", "natural", "vegan", "vegetarian")


class ImageGenerationError(Exception):
    """Recraft returned an error or a response without an image URL."""


@dataclass
class GeneratedImage:
    url: str
    prompt: str
    model: str


def composition_style(title: str, meal_type: Optional[str], tags: List[str]) -> str:
    lowered = title.lower()
    if any(word in lowered for word in ("soup", "salad", "bowl")):
        return "Top-down view, elegant white ceramic bowl on marble surface. "
    if any(word in lowered for word in ("burger", "sandwich", "toast")):
        return "45-degree angle, rustic wooden cutting board, layered presentation. "
    if meal_type == "drink" or any(word in lowered for word in DRINK_KEYWORDS):
        return "Side view, clear glass, natural ingredients visible. "
    if any(word in lowered for word in DESSERT_KEYWORDS):
        return "Elegant plating, white porcelain plate, refined presentation. "
    if any(tag.lower() in HEALTHY_TAGS for tag in tags):
        return "Minimalist composition, light background, fresh ingredients around the plate. "
    return "Three-quarter view, neutral ceramic plate, shallow depth of field. "


def build_food_prompt(title: str, description: Optional[str] = None, meal_type: Optional[str] = None,
                      tags: Optional[List[str]] = None) -> str:
    prompt = f"Professional food photography of {title}. "
    if description and len(description) < 200:
        prompt += f"{description.rstrip('.')}. "
    prompt += composition_style(title, meal_type, tags or [])
    prompt += (
        "Professional food styling, warm natural lighting, appetizing presentation. "
        "High-end restaurant quality, commercial food photography. "
        "Sharp focus, rich colors, inviting atmosphere."
    )
    if len(prompt) > MAX_PROMPT_LENGTH:
        prompt = prompt[:MAX_PROMPT_LENGTH - 3] + "..."
    return prompt


class RecraftImageClient:
    """
    Recraft API client.

    One request per call; retries happen in the batch engine.
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ):
        self.api_token = api_token if api_token is not None else settings.RECRAFT_API_TOKEN
        self.base_url = (base_url or settings.RECRAFT_API_BASE).rstrip("/")
        self.model = settings.RECRAFT_MODEL
        self.style = settings.RECRAFT_STYLE
        self.size = settings.RECRAFT_IMAGE_SIZE
        self.timeout = timeout
        self._http_client = http_client

    def check_configured(self) -> None:
        if not (self.api_token or "").strip():
            raise ConfigurationError("RECRAFT_API_TOKEN is not set", details={"service": "recraft"})

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def generate(self, prompt: str) -> GeneratedImage:
        self.check_configured()
        client = await self._get_http_client()

        response = await client.post(
            f"{self.base_url}/images/generations",
            headers={"Authorization": f"Bearer {self.api_token}"},
            json={
                "prompt": prompt,
                "style": self.style,
                "model": self.model,
                "size": self.size,
                "n": 1,
                "response_format": "url",
            },
        )

        if response.status_code != 200:
            logger.error(f"Recraft generation failed: {response.status_code} - {response.text[:500]}")
            raise ImageGenerationError(f"Recraft API returned {response.status_code}")

        data = response.json()
        try:
            url = data["data"][0]["url"]
        except (KeyError, IndexError, TypeError):
            raise ImageGenerationError("Recraft response did not contain an image URL")

        if not url:
            raise ImageGenerationError("Recraft response did not contain an image URL")

        return GeneratedImage(url=url, prompt=prompt, model=self.model)
