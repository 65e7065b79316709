"""Telegram bot for YouTube/TikTok downloads and movie search."""

__version__ = "0.1.0"
