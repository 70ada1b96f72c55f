"""Round-robin pool of interchangeable provider credentials.

Each credential carries its own cooldown window and error counter. The pool
never drops a credential; exhaustion only lasts until the soonest cooldown
expires.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

RATE_LIMIT_COOLDOWN_SECONDS = 60.0
SERVER_ERROR_COOLDOWN_SECONDS = 10.0
AUTH_ERROR_COOLDOWN_SECONDS = 300.0
NETWORK_ERROR_COOLDOWN_SECONDS = 5.0
NEAR_EXPIRY_GRACE_SECONDS = 5.0


@dataclass
class Credential:
    index: int
    secret: str
    request_count: int = 0
    last_used: float = 0.0
    cooldown_until: float = 0.0
    consecutive_errors: int = 0

    @property
    def label(self) -> str:
        return f"#{self.index + 1}"

    def __repr__(self) -> str:
        return (
            f"Credential(index={self.index}, request_count={self.request_count}, "
            f"cooldown_until={self.cooldown_until}, consecutive_errors={self.consecutive_errors})"
        )


class CredentialPool:
    """Thread-safe credential selector with per-credential cooldowns."""

    def __init__(self, secrets: Sequence[str], clock: Callable[[], float] = time.time):
        self._credentials: List[Credential] = [
            Credential(index=index, secret=secret) for index, secret in enumerate(secrets)
        ]
        self._clock = clock
        self._next_index = 0
        self._lock = Lock()
        if self._credentials:
            logger.info("Loaded %d provider credential(s)", len(self._credentials))
        else:
            logger.warning("No provider credentials configured; assistant will answer locally.")

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def configured(self) -> bool:
        return bool(self._credentials)

    def acquire(self) -> Optional[Credential]:
        """Return the next credential not cooling down, or None when exhausted."""
        with self._lock:
            if not self._credentials:
                return None
            now = self._clock()
            total = len(self._credentials)
            for offset in range(total):
                idx = (self._next_index + offset) % total
                credential = self._credentials[idx]
                if credential.cooldown_until <= now:
                    self._next_index = (idx + 1) % total
                    return credential

            soonest = min(self._credentials, key=lambda cred: cred.cooldown_until)
            if soonest.cooldown_until - now <= NEAR_EXPIRY_GRACE_SECONDS:
                self._next_index = (soonest.index + 1) % total
                return soonest
            return None

    def report_rate_limited(self, credential: Credential, retry_after: float | None = None) -> None:
        duration = retry_after if retry_after is not None and retry_after > 0 else RATE_LIMIT_COOLDOWN_SECONDS
        self._cool_down(credential, duration, reason="rate limited")

    def report_server_error(self, credential: Credential) -> None:
        self._cool_down(credential, SERVER_ERROR_COOLDOWN_SECONDS, reason="server error")

    def report_auth_error(self, credential: Credential) -> None:
        self._cool_down(credential, AUTH_ERROR_COOLDOWN_SECONDS, reason="rejected")

    def report_network_error(self, credential: Credential) -> None:
        self._cool_down(credential, NETWORK_ERROR_COOLDOWN_SECONDS, reason="network error")

    def report_success(self, credential: Credential) -> None:
        with self._lock:
            credential.consecutive_errors = 0
            credential.last_used = self._clock()
            credential.request_count += 1

    def status(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            keys = [
                {
                    "index": credential.index + 1,
                    "available": credential.cooldown_until <= now,
                    "request_count": credential.request_count,
                    "consecutive_errors": credential.consecutive_errors,
                    "cooldown_remaining": max(0, round(credential.cooldown_until - now)),
                }
                for credential in self._credentials
            ]
        return {
            "total_keys": len(keys),
            "available_keys": sum(1 for key in keys if key["available"]),
            "keys": keys,
        }

    def _cool_down(self, credential: Credential, duration: float, *, reason: str) -> None:
        with self._lock:
            # An earlier, longer cooldown is never shortened by a later report.
            credential.cooldown_until = max(credential.cooldown_until, self._clock() + duration)
            credential.consecutive_errors += 1
            errors = credential.consecutive_errors
        logger.warning(
            "Credential %s %s, cooling down for %.0fs (consecutive errors: %d)",
            credential.label,
            reason,
            duration,
            errors,
        )
