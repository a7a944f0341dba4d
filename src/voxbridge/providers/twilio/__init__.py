"""
Twilio adapter
"""

from voxbridge.providers.twilio.provider import TwilioProvider

__all__ = ["TwilioProvider"]
