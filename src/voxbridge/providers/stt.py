"""
STT provider interface
"""

from abc import abstractmethod
from typing import Any, Dict, Optional

from voxbridge.providers.base import BaseProvider, ProviderCapability


class STTProvider(BaseProvider):
    """
    STT (Speech-to-Text) provider interface.

    Batch transcription of a complete audio buffer.
    """

    capability = ProviderCapability.STT

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        options: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Transcribe audio to text.

        Args:
            audio: Encoded audio (mp3, wav, ...)
            options: Vendor options (language, model, filename)

        Returns:
            Transcribed text
        """
        pass
