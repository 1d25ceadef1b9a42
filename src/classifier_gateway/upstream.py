"""Client for the upstream OpenAI-compatible vision model."""

import asyncio
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from classifier_gateway.config import GatewaySettings
from classifier_gateway.schemas import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    ImageContent,
    ImageURL,
    TextContent,
)
from obra_photo.exceptions import (
    ClassifierError,
    CreditExhaustedError,
    MalformedRemoteResponseError,
    RateLimitedError,
    TransientRemoteError,
)
from obra_photo.services.retry import SleepFunc, retry_with_backoff

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/v1/chat/completions"


class UpstreamClient:
    """Sends one photo plus prompt to the chat completions API."""

    def __init__(
        self,
        settings: GatewaySettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.base_url = settings.upstream_url.rstrip("/")
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        return bool(self.settings.upstream_api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.upstream_timeout,
                headers={"Authorization": f"Bearer {self.settings.upstream_api_key}"},
                transport=self._transport,
            )
        return self._client

    def select_model(self, economic_mode: bool, has_ocr_hints: bool) -> tuple[str, int]:
        """Pick the model and completion budget for one call."""
        if has_ocr_hints:
            return self.settings.economic_model, self.settings.ocr_hint_max_tokens
        if economic_mode:
            return self.settings.economic_model, self.settings.economic_max_tokens
        return self.settings.model, self.settings.max_tokens

    async def complete(
        self,
        prompt: str,
        image_base64: str,
        mime_type: str = "image/jpeg",
        economic_mode: bool = False,
        has_ocr_hints: bool = False,
    ) -> str:
        """
        Ask the model to classify one photo.

        Rate limiting and transport failures are retried with backoff.

        Args:
            prompt: Classification prompt.
            image_base64: Base64 image payload, without data URI prefix.
            mime_type: MIME type of the image.
            economic_mode: Use the cheaper model.
            has_ocr_hints: The prompt already carries client OCR data.

        Returns:
            Text content of the model's answer.

        Raises:
            RateLimitedError: Still rate limited after every attempt.
            CreditExhaustedError: The upstream account has no credits.
            ClassifierError: Any other upstream failure.
        """
        model, max_tokens = self.select_model(economic_mode, has_ocr_hints)
        request = ChatCompletionRequest(
            model=model,
            max_tokens=max_tokens,
            messages=[
                ChatMessage(
                    role="user",
                    content=[
                        TextContent(text=prompt),
                        ImageContent(
                            image_url=ImageURL(url=f"data:{mime_type};base64,{image_base64}")
                        ),
                    ],
                )
            ],
        )
        body = request.model_dump(exclude_none=True)

        logger.info(f"Calling upstream model {model} (max_tokens={max_tokens})")
        response = await retry_with_backoff(
            lambda: self._post(body),
            max_attempts=self.settings.upstream_max_retries,
            base_delay=self.settings.upstream_retry_base_delay,
            retry_on=(TransientRemoteError,),
            sleep=self._sleep,
        )
        return response.content

    async def _post(self, body: dict) -> ChatCompletionResponse:
        client = await self._get_client()
        try:
            response = await client.post(f"{self.base_url}{CHAT_COMPLETIONS_PATH}", json=body)
        except httpx.HTTPError as e:
            logger.warning(f"Upstream request failed: {e}")
            raise TransientRemoteError(f"Upstream unreachable: {e}", original_error=e) from e

        if response.status_code == 429:
            raise RateLimitedError("Rate limit")
        if response.status_code == 402:
            raise CreditExhaustedError("Credit limit")
        if response.is_error:
            logger.error(f"Upstream error {response.status_code}: {response.text[:200]}")
            raise ClassifierError(f"Upstream error: {response.status_code}")

        try:
            return ChatCompletionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MalformedRemoteResponseError(
                "Upstream returned an unexpected payload", original_error=e
            ) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
