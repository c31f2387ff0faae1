# ==============================================================================
# Error Hierarchy
# ==============================================================================
#
# Error types raised by the serving examples.
#
# Error Categories:
#   - ServingExampleError: Base class for all errors below
#   - ConfigurationError: Invalid/missing descriptor fields or model artifact
#   - PersistenceError: Configuration document could not be written or read
#   - NetworkError: Server did not answer or answered with a failure
#   - PortInUseError: The requested HTTP port is already bound
#   - UnsupportedFormatError: A payload format the runtime cannot decode
#   - HarnessStateError: Harness transition attempted out of order
#
# ==============================================================================
"""Errors raised while configuring, launching or validating a server."""

from typing import Optional


class ServingExampleError(Exception):
    """Base class for all errors in this project.

    Attributes:
        message: Human-readable error message
        suggestions: List of suggestions to fix the error
        context: Optional context dictionary for debugging
    """

    def __init__(
        self,
        message: str,
        suggestions: Optional[list[str]] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.suggestions = suggestions or []
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [self.message]

        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"  {i}. {suggestion}")

        if self.context:
            lines.append("")
            lines.append("Context:")
            for key, value in self.context.items():
                lines.append(f"  {key}: {value}")

        return "\n".join(lines)


class ConfigurationError(ServingExampleError):
    """Invalid configuration, raised before any server launch is attempted."""


class PersistenceError(ServingExampleError, OSError):
    """A configuration document or model artifact could not be written or read."""

    def __init__(self, message: str, path: str | None = None, **kwargs):
        self.path = path
        context = kwargs.pop("context", None) or {}
        if path is not None:
            context.setdefault("path", path)
        super().__init__(message, context=context, **kwargs)


class NetworkError(ServingExampleError):
    """A request to the serving process failed."""


class PortInUseError(NetworkError):
    """The HTTP port is already bound by another process."""

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        super().__init__(
            f"Port {port} on {host} is already in use",
            suggestions=[
                "Stop the other server bound to this port",
                "Pick another port, e.g. with src.serving.launcher.random_port()",
            ],
        )


class UnsupportedFormatError(ServingExampleError):
    """The payload format has no decoder/encoder in this runtime."""


class HarnessStateError(ServingExampleError):
    """A harness phase was run out of order."""
