"""Shared infrastructure: logging, config files and asyncio helpers."""
