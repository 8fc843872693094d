"""Error categories surfaced to the session as banner text."""


class ForgeError(Exception):
    """Base class for failures the session turns into an error banner."""

    prefix = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.prefix}: {self.message}"


class ApiError(ForgeError):
    """Remote call failed or returned an unexpected shape."""

    prefix = "API error"


class UnsupportedError(ApiError):
    """The active forge does not offer this feature."""


class AuthError(ForgeError):
    """No usable credential."""

    prefix = "Authentication error"


class LocalIoError(ForgeError):
    """Local file or child process failure."""

    prefix = "IO error"


class ConfigError(Exception):
    """Configuration cannot be loaded or names no usable forge."""
