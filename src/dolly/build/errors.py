"""Exceptions raised while discovering and building a dolly project."""

BSC_INSTALL_HINT = "Install bsc and make sure it is on PATH, or set DOLLY_BSC to its location."


class DollyError(Exception):
    """Base class for all dolly errors."""

    pass


class DiscoveryError(DollyError):
    """Raised when a required file or directory cannot be read during discovery."""

    pass


class ToolchainNotFoundError(DollyError):
    """Raised when an external executable cannot be spawned.

    Attributes:
        executable: The program that was not found
    """

    def __init__(self, executable: str, hint: str = BSC_INSTALL_HINT):
        self.executable = executable
        super().__init__(f"Executable not found: {executable!r}. {hint}")


class StageError(DollyError):
    """Raised when the toolchain exits non-zero during a pipeline stage.

    Attributes:
        stage: Name of the failing stage ("compile" or "link")
        output: Captured output of the toolchain, undecoded
    """

    stage = "stage"

    def __init__(self, source: str, output: bytes):
        self.source = source
        self.output = output
        text = output.decode("utf-8", errors="replace").rstrip()
        message = f"{self.stage} failed for {source}"
        if text:
            message = f"{message}:\n{text}"
        super().__init__(message)


class CompileError(StageError):
    stage = "compile"


class LinkError(StageError):
    stage = "link"
