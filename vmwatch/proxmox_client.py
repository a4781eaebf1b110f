# vmwatch/proxmox_client.py
import json
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

import requests
from requests import Session
from requests.adapters import HTTPAdapter

from vmwatch.config import settings
from vmwatch.errors import ControlPlaneError, ControlPlaneTimeout

logger = logging.getLogger("vmwatch.proxmox")

TICKET_LIFETIME = 3600  # seconds
DEFAULT_TIMEOUT = 10.0


class ClientState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


@dataclass
class ControlPlaneResult:
    """Narrow view of a Proxmox command response; payload is kept for the audit trail."""
    success: bool
    message: Optional[str] = None
    payload: Any = None

    @classmethod
    def from_body(cls, body: Any) -> "ControlPlaneResult":
        data = body.get("data") if isinstance(body, dict) else None
        # async commands answer with a task UPID string; no UPID means no task was queued
        upid = data if isinstance(data, str) and data else None
        return cls(success=upid is not None, message=upid, payload=body)

    def serialized(self) -> str:
        return json.dumps(self.payload, default=str)


def _upstream_message(resp: requests.Response) -> str:
    parts = [resp.reason or ""]
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        if body.get("errors"):
            parts.append(json.dumps(body["errors"], default=str))
        if body.get("message"):
            parts.append(str(body["message"]))
    elif resp.text:
        parts.append(resp.text[:500])
    return " ".join(p for p in parts if p).strip()


class ProxmoxClient:
    """
    Ticket-authenticated client for the Proxmox VE API.

    The session ticket is owned by the instance. Renewal happens under a lock,
    so concurrent callers that find an expired ticket trigger one
    authentication call between them. Commands are sent once; failures
    surface as ControlPlaneError and are never retried here.
    """

    def __init__(self, host: str, user: str, token: str, secret: str,
                 timeout: float = DEFAULT_TIMEOUT, verify_ssl: bool = False,
                 clock: Callable[[], float] = time.time, session: Optional[Session] = None):
        self.host = host.rstrip("/")
        self.base_url = f"{self.host}/api2/json"
        self.user = user
        self._token = token
        self._secret = secret
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._clock = clock
        self.session = session or self._make_session()

        self._lock = threading.RLock()
        self._ticket: Optional[str] = None
        self._csrf_token: Optional[str] = None
        self._ticket_expiry = 0.0

    def _make_session(self) -> Session:
        s = Session()
        s.headers.update({"Accept": "application/json"})
        # one attempt per call
        s.mount("http://", HTTPAdapter(max_retries=0))
        s.mount("https://", HTTPAdapter(max_retries=0))
        return s

    @property
    def state(self) -> ClientState:
        if not self._ticket:
            return ClientState.UNAUTHENTICATED
        if self._clock() > self._ticket_expiry:
            return ClientState.EXPIRED
        return ClientState.AUTHENTICATED

    @property
    def ticket_expiry(self) -> float:
        return self._ticket_expiry

    # --- low level ---

    def _send(self, method: str, url: str, what: str, **kwargs) -> Any:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, verify=self.verify_ssl, **kwargs)
        except requests.Timeout as exc:
            raise ControlPlaneTimeout(f"{what} timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise ControlPlaneError(f"{what} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise ControlPlaneError(
                f"{what} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                upstream=_upstream_message(resp),
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise ControlPlaneError(f"{what} returned a non-JSON body", status_code=resp.status_code) from exc

    # --- session ticket ---

    def authenticate(self) -> str:
        """Exchange the API credentials for a fresh ticket. Raises ControlPlaneError."""
        with self._lock:
            self._ticket = None
            self._csrf_token = None
            self._ticket_expiry = 0.0
            try:
                body = self._send(
                    "POST",
                    f"{self.base_url}/access/ticket",
                    "Proxmox authentication",
                    data={"username": self.user, "password": f"{self._token}!{self._secret}"},
                )
                data = body.get("data") if isinstance(body, dict) else None
                ticket = data.get("ticket") if isinstance(data, dict) else None
                if not ticket:
                    raise ControlPlaneError("Proxmox authentication returned no ticket")
            except ControlPlaneError:
                logger.error("Failed to authenticate with Proxmox at %s as %s", self.host, self.user)
                raise

            self._ticket = ticket
            self._csrf_token = data.get("CSRFPreventionToken")
            self._ticket_expiry = self._clock() + TICKET_LIFETIME
            logger.debug("Proxmox authentication successful")
            return ticket

    def _credentials(self) -> Tuple[str, Optional[str]]:
        with self._lock:
            if not self._ticket or self._clock() > self._ticket_expiry:
                self.authenticate()
            return self._ticket, self._csrf_token

    def ensure_authenticated(self) -> str:
        """Return a valid ticket, renewing it first if it is missing or expired."""
        return self._credentials()[0]

    # --- commands ---

    def _vm_path(self, node: str, vmid: str, action: str) -> str:
        return f"{self.base_url}/nodes/{node}/qemu/{vmid}/status/{action}"

    def _post_command(self, node: str, vmid: str, action: str) -> ControlPlaneResult:
        ticket, csrf = self._credentials()
        headers: Dict[str, str] = {"CSRFPreventionToken": csrf} if csrf else {}
        try:
            body = self._send(
                "POST",
                self._vm_path(node, vmid, action),
                f"Proxmox {action} of VM {vmid}",
                cookies={"PVEAuthCookie": ticket},
                headers=headers,
            )
        except ControlPlaneError as exc:
            logger.error("Failed to %s VM %s on node %s: %s", action, vmid, node, exc)
            raise
        logger.info("%s command sent to VM %s on node %s", action.capitalize(), vmid, node)
        return ControlPlaneResult.from_body(body)

    def reset_vm(self, node: str, vmid: str) -> ControlPlaneResult:
        return self._post_command(node, vmid, "reset")

    def shutdown_vm(self, node: str, vmid: str) -> ControlPlaneResult:
        return self._post_command(node, vmid, "shutdown")

    def get_vm_status(self, node: str, vmid: str) -> Dict[str, Any]:
        ticket, _ = self._credentials()
        try:
            body = self._send(
                "GET",
                self._vm_path(node, vmid, "current"),
                f"Proxmox status of VM {vmid}",
                cookies={"PVEAuthCookie": ticket},
            )
        except ControlPlaneError as exc:
            logger.error("Failed to get VM status for %s: %s", vmid, exc)
            raise
        data = body.get("data") if isinstance(body, dict) else None
        return data or {}


_client: Optional[ProxmoxClient] = None
_client_lock = threading.Lock()


def get_proxmox_client() -> ProxmoxClient:
    """Process-wide client; the only holder of the Proxmox session ticket."""
    global _client
    with _client_lock:
        if _client is None:
            _client = ProxmoxClient(
                settings.proxmox_host,
                settings.proxmox_user,
                settings.proxmox_token,
                settings.proxmox_secret,
                timeout=settings.proxmox_timeout,
                verify_ssl=settings.proxmox_verify_ssl,
            )
        return _client
