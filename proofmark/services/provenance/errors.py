from typing import Optional


class ProvenanceError(Exception):
    """Base class for every failure the pipeline can surface."""


class InvalidInput(ProvenanceError):
    pass


class NotFound(ProvenanceError):
    pass


class ExternalToolFailure(ProvenanceError):
    def __init__(self, message: str, exit_code: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class DownloadFailed(ExternalToolFailure):
    def __init__(self, reason: str, exit_code: Optional[int] = None, stderr: str = ""):
        super().__init__(f"Download failed: {reason}", exit_code=exit_code, stderr=stderr)
        self.reason = reason


class ToolTimeout(ProvenanceError):
    def __init__(self, binary: str, timeout: float):
        super().__init__(f"{binary} timed out after {timeout:g} seconds")
        self.binary = binary
        self.timeout = timeout


class TooLarge(ProvenanceError):
    def __init__(self, size: int, limit: int, path: Optional[str] = None):
        super().__init__(f"File too large: {size} bytes (max: {limit})")
        self.size = size
        self.limit = limit
        self.path = path


class SignatureError(ProvenanceError):
    pass


class PersistenceConflict(ProvenanceError):
    pass
