"""
TTS provider interface
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from voxbridge.providers.base import BaseProvider, ProviderCapability


@dataclass
class Voice:
    """Voice offered by a TTS vendor"""
    voice_id: str
    name: str = ""
    category: Optional[str] = None
    preview_url: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


class TTSProvider(BaseProvider):
    """
    TTS (Text-to-Speech) provider interface.

    Implementations should synthesize text to encoded audio (e.g. MP3).
    """

    capability = ProviderCapability.TTS

    @abstractmethod
    async def list_voices(self) -> List[Voice]:
        pass

    @abstractmethod
    async def synthesize(
        self,
        text: str,
        voice_id: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        """
        Synthesize text to audio.

        Args:
            text: Text to synthesize
            voice_id: Vendor voice id
            options: Vendor options (model id, output format, ...)

        Returns:
            Encoded audio bytes
        """
        pass
