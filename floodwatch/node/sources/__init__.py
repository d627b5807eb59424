"""Echo sources for the distance sampler."""

from .base import EchoSource
from .dummy import DummyEchoSource

__all__ = [
    "EchoSource",
    "DummyEchoSource",
]
