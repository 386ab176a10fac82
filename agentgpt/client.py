"""Chat completion client used by the planner, the step executor and resumption."""

import logging
from typing import Dict, List

import httpx

from .config import DEFAULT_ENDPOINT, DEFAULT_MODEL
from .errors import ServiceError

logger = logging.getLogger(__name__)


class CompletionClient:
    """Handles communication with an OpenAI-compatible chat completion API"""

    def __init__(self, api_endpoint: str = DEFAULT_ENDPOINT, model: str = DEFAULT_MODEL,
                 temperature: float = 0.7, timeout: float = 120.0):
        self.endpoint = api_endpoint
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Dict) -> "CompletionClient":
        return cls(
            api_endpoint=config["api_endpoint"],
            model=config["model"],
            temperature=config.get("temperature", 0.7),
            timeout=config.get("request_timeout", 120.0),
        )

    def build_payload(self, system_prompt: str, user_prompt: str) -> Dict:
        messages: List[Dict] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }

    async def complete(self, system_prompt: str, user_prompt: str, api_key: str) -> str:
        """
        Send a (system, user) prompt pair and return the generated text.

        Raises:
            ServiceError: on transport failure, an error payload or a malformed body
        """
        payload = self.build_payload(system_prompt, user_prompt)
        logger.debug("POST %s model=%s system=%d chars user=%d chars",
                     self.endpoint, self.model, len(system_prompt), len(user_prompt))

        # Header encoding happens inside httpx, so a non-ASCII key fails in post()
        try:
            headers = {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.endpoint, headers=headers, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError) as e:
            logger.warning("Completion request failed: %s", e)
            raise ServiceError(f"Request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ServiceError(f"Invalid response from completion service (HTTP {response.status_code})") from e

        # Provider errors arrive as {"error": {"message": ...}}
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.warning("Completion service reported an error: %s", message)
            raise ServiceError(message or "Unknown error from completion service")

        if response.status_code >= 400:
            raise ServiceError(f"Completion service returned HTTP {response.status_code}")

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ServiceError("Malformed completion response: no choices returned") from e

        return content or ""
