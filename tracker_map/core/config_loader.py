"""Reader for ``key = value`` config files."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Dict, Iterable

import aiofiles

from .logging_utils import get_module_logger

logger = get_module_logger("ConfigLoader")

# A comment needs whitespace before the '#' so keys and URLs may contain one.
_INLINE_COMMENT = re.compile(r"\s+#.*$")


def parse_config_lines(lines: Iterable[str]) -> Dict[str, str]:
    config: Dict[str, str] = {}

    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith('#'):
            continue
        if '=' not in line:
            continue

        key, value = line.split('=', 1)
        key = key.strip()
        value = _INLINE_COMMENT.sub('', value.strip())

        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]

        config[key] = value

    return config


async def read_config_async(config_path: Path) -> Dict[str, str]:
    """Read a config file without blocking the loop; a missing file yields {}."""
    if not await asyncio.to_thread(config_path.exists):
        logger.debug("Config %s not found, using defaults", config_path)
        return {}

    try:
        lines: list[str] = []
        async with aiofiles.open(config_path, 'r', encoding='utf-8') as f:
            async for line in f:
                lines.append(line)
    except OSError as e:
        logger.error("Failed to read config %s: %s", config_path, e)
        return {}

    config = parse_config_lines(lines)
    logger.debug("Loaded %d keys from %s", len(config), config_path)
    return config


__all__ = ["parse_config_lines", "read_config_async"]
