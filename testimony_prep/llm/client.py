"""
case.dev LLM Client
===================

Shared async HTTP client for the case.dev chat-completions gateway
(OpenAI-compatible). Used by question generation and the practice examiner.

call() never raises: transport and HTTP failures come back as an
LLMCallResult with success=False. stream_deltas() yields content fragments
and raises LLMClientError, since a half-consumed stream cannot be turned
into a result object.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class LLMClientError(Exception):
    """Streaming request failed"""
    pass


@dataclass
class LLMCallResult:
    """Result from an LLM API call"""
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    raw_response: Optional[Dict] = None
    success: bool = True
    error: Optional[str] = None
    status_code: Optional[int] = None


class CaseDevLLMClient:
    """
    Async client for the case.dev LLM gateway.

    Args:
        api_key: Bearer token (CASEDEV_API_KEY)
        model: Model identifier, e.g. "casemark/casemark-core-1"
        base_url: Gateway base URL; "/chat/completions" is appended
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    DEFAULT_BASE_URL = "https://api.case.dev/llm/v1"

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 120,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def url(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: int,
        stream: bool = False,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if stream:
            payload["stream"] = True
        return payload

    async def call(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 8000,
    ) -> LLMCallResult:
        """
        Make a blocking chat-completion call.

        Args:
            messages: List of message dicts with role and content
            temperature: Sampling temperature
            max_tokens: Maximum response tokens

        Returns:
            LLMCallResult with content or error
        """
        if not self.api_key:
            return LLMCallResult(
                content="",
                model=self.model,
                success=False,
                error="API key not configured"
            )

        try:
            client = await self._get_client()
            response = await client.post(
                self.url,
                json=self._payload(messages, temperature, max_tokens),
                headers=self._headers()
            )
            response.raise_for_status()
            data = response.json()

            try:
                content = data["choices"][0]["message"]["content"]
            except (KeyError, IndexError, TypeError) as e:
                logger.error(f"LLM response missing content: {e}")
                return LLMCallResult(
                    content="",
                    model=self.model,
                    success=False,
                    error=f"Response missing content: {e}",
                    raw_response=data,
                    status_code=response.status_code,
                )

            if content is None:
                content = ""

            usage = data.get("usage") or {}

            return LLMCallResult(
                content=content,
                model=self.model,
                input_tokens=usage.get("prompt_tokens", 0),
                output_tokens=usage.get("completion_tokens", 0),
                raw_response=data,
                success=True,
                status_code=response.status_code,
            )

        except httpx.HTTPStatusError as e:
            logger.error(f"LLM API error: {e.response.status_code}")
            return LLMCallResult(
                content="",
                model=self.model,
                success=False,
                error=f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            )
        except Exception as e:
            logger.error(f"LLM request failed: {e}")
            return LLMCallResult(
                content="",
                model=self.model,
                success=False,
                error=str(e)
            )

    async def stream_deltas(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 8000,
    ) -> AsyncIterator[str]:
        """
        Stream a chat completion, yielding choices[0].delta.content fragments.

        Reads server-sent "data: " lines until "data: [DONE]". Lines that are
        not valid JSON are skipped.

        Raises:
            LLMClientError: On missing credentials, HTTP error status or transport failure
        """
        if not self.api_key:
            raise LLMClientError("API key not configured")

        client = await self._get_client()
        try:
            async with client.stream(
                "POST",
                self.url,
                json=self._payload(messages, temperature, max_tokens, stream=True),
                headers=self._headers(),
            ) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise LLMClientError(f"HTTP {response.status_code}: {body[:200]}")

                async for line in response.aiter_lines():
                    if not line.startswith("data: "):
                        continue
                    data = line[6:].strip()
                    if data == "[DONE]":
                        return
                    try:
                        chunk = json.loads(data)
                        delta = chunk["choices"][0].get("delta", {}).get("content")
                    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
                        continue
                    if delta:
                        yield delta
        except httpx.HTTPError as e:
            logger.error(f"LLM stream failed: {e}")
            raise LLMClientError(str(e)) from e
