"""
Text-Generation API Client
Single-turn and conversational calls to an OpenAI-compatible chat completions endpoint
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from erpchat.core.config_manager import AppSettings
from erpchat.core.exceptions import GenerationBackendException

logger = logging.getLogger(__name__)


class GenerationClient:
    """
    Chat completions client.

    No retries are attempted. The timeout is taken from settings and is
    unset by default, so a hung backend hangs the caller.
    """

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str] = None,
        model: str = "sarvam-m",
        auth_header: str = "api-subscription-key",
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize generation client.

        Args:
            api_url: Full chat completions URL
            api_key: Key sent in ``auth_header``
            model: Model name placed in every request body
            auth_header: Header name carrying the key
            timeout: Request timeout in seconds, None disables it
            transport: Optional httpx transport (used by tests)
        """
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.auth_header = auth_header
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, config: AppSettings) -> "GenerationClient":
        return cls(
            api_url=config.GENERATION_API_URL,
            api_key=config.GENERATION_API_KEY,
            model=config.GENERATION_MODEL,
            auth_header=config.GENERATION_AUTH_HEADER,
            timeout=config.GENERATION_TIMEOUT,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if not self._client:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers[self.auth_header] = self.api_key
        return headers

    async def complete(self, prompt: str) -> str:
        """Send one user-role message and return the generated text"""
        return await self.chat([{"role": "user", "content": prompt}])

    async def chat(self, messages: List[Dict[str, str]]) -> str:
        """
        Send a conversation and return the first choice's text.

        Raises:
            GenerationBackendException: Transport failure, non-2xx status,
                or a response without generated text
        """
        client = await self._get_client()
        payload: Dict[str, Any] = {"model": self.model, "messages": messages}

        try:
            response = await client.post(self.api_url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Generation request failed: {e}")
            raise GenerationBackendException(f"Generation request failed: {e}")

        if not response.is_success:
            logger.error(f"Generation API error: {response.status_code}")
            raise GenerationBackendException(
                f"Generation API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError:
            raise GenerationBackendException(
                "Generation API returned invalid JSON",
                status_code=response.status_code,
                body=response.text,
            )

        content = None
        choices = data.get("choices") if isinstance(data, dict) else None
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            if isinstance(message, dict):
                content = message.get("content")

        if not content or not str(content).strip():
            raise GenerationBackendException(
                "No content in generation API response",
                status_code=response.status_code,
                body=response.text,
            )

        return str(content).strip()
