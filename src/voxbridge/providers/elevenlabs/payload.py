"""
ElevenLabs payload extraction

The conversational API has changed shape several times; each field is read
from the newest location first and falls back to older ones.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from voxbridge.providers.conversational import RemoteAgent, RemoteConversation


_UNICODE_DASHES = re.compile("[\u2010-\u2015]")
_SMART_QUOTES = re.compile("[\u2018-\u201b]")
_SMART_DOUBLE_QUOTES = re.compile("[\u201c-\u201f]")
_WHITESPACE = re.compile(r"\s+")
_NON_PRINTABLE_ASCII = re.compile(r"[^\x20-\x7e]")


def sanitize_api_key(api_key: str) -> str:
    """
    Clean an API key pasted from a rich-text source.

    Unicode dashes and quotes are folded to ASCII, whitespace is removed and
    anything outside printable ASCII is dropped.
    """
    key = _UNICODE_DASHES.sub("-", api_key)
    key = _SMART_QUOTES.sub("'", key)
    key = _SMART_DOUBLE_QUOTES.sub('"', key)
    key = key.replace("\u2026", "...")
    key = _WHITESPACE.sub("", key)
    return _NON_PRINTABLE_ASCII.sub("", key)


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return None


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _to_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_agent(data: Dict[str, Any]) -> RemoteAgent:
    """Normalize an agent payload (list item or detail)"""
    config = data.get("conversation_config") or {}
    prompt = _first(
        _dig(config, "agent", "prompt", "prompt"),
        _dig(data, "prompt", "prompt"),
        data.get("system_prompt"),
        data.get("prompt") if isinstance(data.get("prompt"), str) else None,
    )
    return RemoteAgent(
        external_id=_first(data.get("agent_id"), data.get("id")),
        name=_first(data.get("name"), data.get("agent_name")) or "Unnamed Agent",
        voice_id=_first(
            _dig(config, "tts", "voice_id"),
            _dig(config, "voice", "voice_id"),
            data.get("voice_id"),
        ),
        prompt=prompt,
        first_message=_first(
            _dig(config, "agent", "first_message"),
            config.get("first_message"),
            data.get("first_message"),
        ),
        language=_first(
            _dig(config, "agent", "language"),
            config.get("language"),
            data.get("language"),
        ) or "en",
        raw=data,
    )


def parse_conversation(data: Dict[str, Any]) -> RemoteConversation:
    """Normalize a conversation payload (list item or detail)"""
    metadata = data.get("metadata") or {}
    duration = _first(
        _dig(data, "conversation_initiation_client_data", "dynamic_variables", "system__call_duration_secs"),
        _dig(data, "dynamic_variables", "system__call_duration_secs"),
        metadata.get("call_duration_secs"),
        data.get("call_duration_secs"),
        data.get("duration_seconds"),
    )
    cost = _first(metadata.get("cost"), data.get("cost"))
    has_recording = _first(data.get("has_audio"), data.get("has_recording"))

    return RemoteConversation(
        conversation_id=_first(data.get("conversation_id"), data.get("id")),
        agent_id=data.get("agent_id"),
        status=data.get("status") or "completed",
        duration_seconds=_to_int(duration),
        cost=str(cost) if cost is not None else None,
        phone_number=_first(
            _dig(metadata, "phone_call", "external_number"),
            metadata.get("caller_number"),
        ),
        recording_url=data.get("recording_url"),
        has_recording=bool(has_recording) if has_recording is not None else None,
        started_at=_to_datetime(_first(
            metadata.get("start_time_unix_secs"),
            data.get("start_time_unix_secs"),
        )),
        raw=data,
    )
