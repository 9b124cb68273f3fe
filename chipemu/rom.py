"""ROM file reading. ROMs are raw bytes with no header."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from .errors import RomLoadError

logger = logging.getLogger(__name__)


def read_rom(path: Union[str, Path]) -> bytes:
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as exc:
        raise RomLoadError(str(path), exc.strerror or str(exc)) from exc
    logger.debug("Read %d bytes from %s", len(data), path)
    return data
