"""Directive scanning for Bluespec sources.

dolly reads project structure from comment directives embedded in .bsv files:

    //!submodule fifo              -- a module directory below this one
    //!extra_library c/model.c     -- a foreign source linked into the simulator
    //!topmodule mkCounter_tb      -- the module to elaborate for this file

Directives are case- and whitespace-tolerant. Lines that do not match are
skipped silently.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, Iterator, Optional

logger = logging.getLogger(__name__)

SUBMODULE_PATTERN = re.compile(r"//\s*!\s*submodule\s+(\w+)", re.IGNORECASE)
EXTRA_LIBRARY_PATTERN = re.compile(r"//\s*!\s*extra_library\s+(\S+)", re.IGNORECASE)
TOP_MODULE_PATTERN = re.compile(r"//\s*!\s*topmodule\s+(\w+)", re.IGNORECASE)


def scan_lines(pattern: re.Pattern, lines: Iterable[str]) -> Iterator[str]:
    """Yield the captured token of every line matching ``pattern``, in order."""
    for line in lines:
        match = pattern.search(line)
        if match:
            yield match.group(1)


def scan_text(pattern: re.Pattern, text: str) -> list[str]:
    return list(scan_lines(pattern, text.splitlines()))


def find_submodules(text: str) -> list[str]:
    return scan_text(SUBMODULE_PATTERN, text)


def find_extra_libraries(text: str) -> list[str]:
    return scan_text(EXTRA_LIBRARY_PATTERN, text)


def find_top_modules(text: str) -> list[str]:
    """All top-module names declared in ``text``, duplicates removed, order kept."""
    return list(dict.fromkeys(scan_text(TOP_MODULE_PATTERN, text)))


def select_top_module(text: str, source: Path) -> Optional[str]:
    """
    Pick the top module for a single build target.

    The first declaration wins; further declarations are tolerated with a
    warning since some sources carry stray directive lines.

    Args:
        text: Contents of the source file
        source: Path of the source file, for the warning

    Returns:
        The declared module name, or None if the file declares none
    """
    names = scan_text(TOP_MODULE_PATTERN, text)
    if not names:
        return None
    if len(names) > 1:
        logger.warning("Multiple top modules specified in %s, using %s", source, names[0])
    return names[0]


def read_source(path: Path) -> Optional[str]:
    """Read a source file, returning None if it cannot be read."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("Could not read %s: %s", path, e)
        return None


def find_top_module(path: Path) -> Optional[str]:
    """Top module declared in ``path``; an unreadable file declares nothing."""
    text = read_source(path)
    if text is None:
        return None
    return select_top_module(text, path)
