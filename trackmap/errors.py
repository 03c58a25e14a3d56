# path: trackmap/errors.py

from __future__ import annotations


class ParseError(ValueError):
    """The input document could not be read as markup at all."""

    def __init__(self, reason: str, source: str | None = None):
        self.reason = reason
        self.source = source
        prefix = f"{source}: " if source else ""
        super().__init__(f"{prefix}{reason}")


class StorageError(Exception):
    """Raised by route stores; never swallowed on writes."""


class RouteNotFound(StorageError):
    def __init__(self, route_id: str):
        self.route_id = route_id
        super().__init__(f"Route not found: {route_id}")


class DuplicateRoute(StorageError):
    def __init__(self, route_id: str):
        self.route_id = route_id
        super().__init__(f"Route already exists: {route_id}")


class RenderSkip(Exception):
    """One route could not be turned into drawable output for this pass."""

    def __init__(self, route_id: str, reason: str):
        self.route_id = route_id
        self.reason = reason
        super().__init__(f"{route_id}: {reason}")


class UnsupportedBackupVersion(ValueError):
    def __init__(self, version):
        self.version = version
        super().__init__(f"Unsupported backup version: {version}")
