"""
OpenRouter chat-completions client.

Relays analysis requests to the provider and forwards streamed bytes.
"""

from .client import (
    CompletionResponse,
    OpenRouterClient,
    OpenRouterConfig,
    StreamState,
    UpstreamStream,
)

__all__ = [
    "CompletionResponse",
    "OpenRouterClient",
    "OpenRouterConfig",
    "StreamState",
    "UpstreamStream",
]
