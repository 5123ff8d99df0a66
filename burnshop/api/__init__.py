from .server import create_app, error_response, status_for

__all__ = [
    "create_app",
    "error_response",
    "status_for",
]
