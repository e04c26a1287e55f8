"""Toolchain configuration.

Settings are read from the environment once, at startup:

    DOLLY_BSC                  compiler executable (default: bsc)
    DOLLY_LIBRARY_ROOT         first search path entry (default: %/Libraries)
    DOLLY_DEFAULT_TOP_MODULE   module elaborated when a file declares none
                               (default: mkTopModule)
"""

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

DEFAULT_BSC = "bsc"
# bsc expands '%' to its own installation directory
DEFAULT_LIBRARY_ROOT = "%/Libraries"
DEFAULT_TOP_MODULE = "mkTopModule"


@dataclass(frozen=True)
class ToolchainConfig:
    """How to invoke the Bluespec toolchain.

    Attributes:
        bsc: Compiler executable name or path
        library_root: Toolchain library directory, always first on the search path
        default_top_module: Elaboration target for files without a topmodule directive
    """

    bsc: str = DEFAULT_BSC
    library_root: str = DEFAULT_LIBRARY_ROOT
    default_top_module: str = DEFAULT_TOP_MODULE

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "ToolchainConfig":
        env = os.environ if environ is None else environ
        return cls(
            bsc=env.get("DOLLY_BSC") or DEFAULT_BSC,
            library_root=env.get("DOLLY_LIBRARY_ROOT") or DEFAULT_LIBRARY_ROOT,
            default_top_module=env.get("DOLLY_DEFAULT_TOP_MODULE") or DEFAULT_TOP_MODULE,
        )

    def with_overrides(self, bsc: Optional[str] = None) -> "ToolchainConfig":
        """Return a copy with CLI overrides applied."""
        if bsc:
            return replace(self, bsc=bsc)
        return self
