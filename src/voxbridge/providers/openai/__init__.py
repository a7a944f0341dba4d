"""
OpenAI adapter
"""

from voxbridge.providers.openai.provider import OpenAIProvider

__all__ = ["OpenAIProvider"]
