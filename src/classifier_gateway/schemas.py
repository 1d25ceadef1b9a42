"""OpenAI-compatible chat schemas used to talk to the upstream model."""

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


# Request models (OpenAI Chat Completions format)
class ImageURL(BaseModel):
    """Image URL content."""

    url: str = Field(..., description="URL or base64 data URI of the image")


class TextContent(BaseModel):
    """Text content in message."""

    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    """Image content in message."""

    type: Literal["image_url"] = "image_url"
    image_url: ImageURL


ContentPart = Union[TextContent, ImageContent]


class ChatMessage(BaseModel):
    """Chat message."""

    role: Literal["system", "user", "assistant"]
    content: Union[str, list[ContentPart], None] = None


class ChatCompletionRequest(BaseModel):
    """OpenAI-compatible chat completion request."""

    model: str = Field(..., description="Model name")
    messages: list[ChatMessage] = Field(..., description="List of messages")
    max_tokens: int = Field(default=800, ge=1, description="Maximum tokens to generate")


# Response models
class ChatChoice(BaseModel):
    """A single chat completion choice."""

    index: int = 0
    message: ChatMessage
    finish_reason: Optional[str] = None


class ChatCompletionResponse(BaseModel):
    """The subset of a chat completion response the gateway reads."""

    id: Optional[str] = None
    model: Optional[str] = None
    choices: list[ChatChoice] = Field(default_factory=list)

    @property
    def content(self) -> str:
        """Text of the first choice, empty when there is none."""
        if not self.choices:
            return ""
        content = self.choices[0].message.content
        return content if isinstance(content, str) else ""


# Health check
class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    upstream_configured: bool
