"""
Audio artifact store

Stores call recordings on disk under sanitized, timestamp-salted keys with a
JSON sidecar carrying provenance metadata. Conversation ids come from
vendors and are never used as path components unsanitized.
"""

import asyncio
import json
import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from voxbridge.storage.models import AudioAsset, utcnow


_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")

METADATA_SUFFIX = ".meta.json"


def sanitize_key(value: str) -> str:
    """Replace every character outside [A-Za-z0-9_.-] with an underscore"""
    return _UNSAFE_KEY_CHARS.sub("_", value)


class AudioArtifactStore:
    """
    File-backed recording store.

    Args:
        storage_dir: Directory holding recordings and sidecars
        url_prefix: Public path prefix of the playback endpoint
    """

    def __init__(self, storage_dir: Union[str, Path], url_prefix: str = "/audio"):
        self.storage_dir = Path(storage_dir)
        self.url_prefix = "/" + url_prefix.strip("/")
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.logger = logger.bind(component="AudioArtifactStore")
        self.logger.debug(f"Audio storage directory: {self.storage_dir}")

    def generate_key(self, conversation_id: str) -> str:
        """Key for a new recording: <sanitized id>_<epoch ms>.mp3"""
        return f"{sanitize_key(conversation_id)}_{int(time.time() * 1000)}.mp3"

    def _path(self, storage_key: str) -> Path:
        key = sanitize_key(storage_key)
        if key in ("", ".", ".."):
            raise ValueError(f"Invalid storage key: {storage_key!r}")
        return self.storage_dir / key

    def _metadata_path(self, storage_key: str) -> Path:
        path = self._path(storage_key)
        return path.with_name(path.name + METADATA_SUFFIX)

    def playback_url(self, storage_key: str) -> str:
        return f"{self.url_prefix}/{sanitize_key(storage_key)}"

    async def upload(
        self,
        conversation_id: str,
        data: bytes,
        call_id: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> AudioAsset:
        """
        Store a recording and its metadata sidecar.

        Args:
            conversation_id: Vendor conversation id (sanitized into the key)
            data: Encoded audio
            call_id: Local CallLog id
            organization_id: Tenant

        Returns:
            AudioAsset describing the stored file

        Raises:
            OSError: Write failed; nothing is left under the new key
        """
        storage_key = self.generate_key(conversation_id)
        asset = AudioAsset(
            storage_key=storage_key,
            size_bytes=len(data),
            conversation_id=conversation_id,
            call_id=call_id,
            organization_id=organization_id,
            uploaded_at=utcnow(),
        )
        path = self._path(storage_key)
        metadata = json.dumps(asset.to_metadata(), indent=2)

        try:
            await asyncio.to_thread(path.write_bytes, data)
            await asyncio.to_thread(self._metadata_path(storage_key).write_text, metadata, "utf-8")
        except Exception as e:
            self.logger.error(f"Storing {storage_key} failed, removing partial files: {e}")
            await self.delete(storage_key)
            raise

        self.logger.info(f"Stored {len(data)} bytes for conversation {conversation_id} as {storage_key}")
        return asset

    async def exists(self, storage_key: str) -> bool:
        try:
            path = self._path(storage_key)
        except ValueError:
            return False
        return await asyncio.to_thread(path.is_file)

    async def download(self, storage_key: str) -> bytes:
        """
        Read a stored recording.

        Raises:
            FileNotFoundError: No recording under this key
        """
        return await asyncio.to_thread(self._path(storage_key).read_bytes)

    async def delete(self, storage_key: str) -> None:
        """Best-effort removal of the recording, then its sidecar"""
        for path in (self._path(storage_key), self._metadata_path(storage_key)):
            try:
                await asyncio.to_thread(path.unlink)
            except FileNotFoundError:
                pass
            except OSError as e:
                self.logger.warning(f"Could not delete {path.name}: {e}")

    async def get_metadata(self, storage_key: str) -> Optional[Dict[str, Any]]:
        path = self._metadata_path(storage_key)
        try:
            text = await asyncio.to_thread(path.read_text, "utf-8")
        except FileNotFoundError:
            return None
        try:
            return json.loads(text)
        except ValueError:
            self.logger.warning(f"Corrupt metadata sidecar {path.name}")
            return None

    async def list_keys(self) -> List[str]:
        """Storage keys of every stored recording (sidecars excluded)"""
        def _scan() -> List[str]:
            return sorted(
                p.name for p in self.storage_dir.iterdir()
                if p.is_file() and not p.name.endswith(METADATA_SUFFIX)
            )
        return await asyncio.to_thread(_scan)
