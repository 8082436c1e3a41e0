"""Error kinds raised by the release helpers."""


class ToolError(Exception):
    """Base class; the CLI maps any of these to exit status 1."""


class MissingCredential(ToolError):
    def __init__(self, message: str, *, hint: str = ""):
        super().__init__(message)
        self.hint = hint


class MissingFile(ToolError):
    def __init__(self, message: str, *, hint: str = ""):
        super().__init__(message)
        self.hint = hint


class StructuralMismatch(ToolError):
    """A document did not have the shape a patch or read expected."""


class ArtifactNotFound(ToolError):
    pass


class BuildFailed(ToolError):
    def __init__(self, message: str, *, output: str = "", returncode: int | None = None):
        super().__init__(message)
        self.output = output
        self.returncode = returncode


class NetworkOrParseFailure(ToolError):
    """A request failed or its response could not be read as an envelope."""


class ProbeInconclusive(ToolError):
    pass
