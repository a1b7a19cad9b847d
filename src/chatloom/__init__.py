"""Chatloom: reply-threaded conversations and queued image generation for Discord."""

__version__ = "0.1.0"
