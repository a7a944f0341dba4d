"""
Language-model provider interface
"""

from abc import abstractmethod
from collections.abc import AsyncIterator
from typing import Any, Dict, List, Optional

from voxbridge.providers.base import BaseProvider, ProviderCapability


def build_messages(prompt: str, context: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
    """Append the user prompt to prior chat messages"""
    messages = list(context or [])
    messages.append({"role": "user", "content": prompt})
    return messages


class LLMProvider(BaseProvider):
    """
    Language-model provider interface.

    Operating Modes:
    - generate(): one-shot completion
    - stream_generate(): async iterator of text deltas, consumed until exhaustion
    """

    capability = ProviderCapability.LLM

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        context: Optional[List[Dict[str, Any]]] = None,
        **options: Any,
    ) -> str:
        """
        Generate a complete response.

        Args:
            prompt: User prompt
            context: Prior chat messages ({"role", "content"} dicts)
            **options: Vendor options (model, temperature, ...)

        Returns:
            Response text
        """
        pass

    @abstractmethod
    def stream_generate(
        self,
        prompt: str,
        context: Optional[List[Dict[str, Any]]] = None,
        **options: Any,
    ) -> AsyncIterator[str]:
        """
        Generate a response as a stream of text chunks.

        Yields:
            Text deltas in order
        """
        pass
