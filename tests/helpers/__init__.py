"""Test doubles and factories for ad watchdog tests."""

from .directory import InMemoryUserDirectory
from .factories import make_ad, make_event
from .transport import RecordingMailTransport, SentMessage

__all__ = [
    "InMemoryUserDirectory",
    "RecordingMailTransport",
    "SentMessage",
    "make_ad",
    "make_event",
]
