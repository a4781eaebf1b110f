# vmwatch/errors.py
from typing import Optional


class VMWatchError(Exception):
    """Base class for errors raised by the health/reset services."""


class NotFound(VMWatchError):
    def __init__(self, what: str, key: str):
        super().__init__(f"{what} {key} not found")
        self.what = what
        self.key = key


class RetryCeilingExceeded(VMWatchError):
    def __init__(self, hostname: str, attempts: int, ceiling: int):
        super().__init__(f"Maximum reset attempts ({ceiling}) reached for {hostname}")
        self.hostname = hostname
        self.attempts = attempts
        self.ceiling = ceiling


class ControlPlaneError(VMWatchError):
    """Authentication or command failure against the Proxmox API."""

    def __init__(self, message: str, status_code: Optional[int] = None, upstream: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.upstream = upstream

    def to_dict(self):
        return {"error": self.message, "status_code": self.status_code, "upstream": self.upstream}


class ControlPlaneTimeout(ControlPlaneError):
    pass


class StoreError(VMWatchError):
    """Persistence failure; the session has already been rolled back."""
