"""
Fire-and-forget dispatch of account emails.

The caller's operation never waits on, or fails because of, email delivery.
With an executor the send runs on a worker thread; without one it runs
inline. Either way a failed or raising send is logged and dropped.
"""
from concurrent.futures import Executor, Future
from typing import Optional, Protocol

from core.logger import logger


class NotificationGateway(Protocol):
    def send_verification_email(self, to_email: str, token: str) -> bool: ...

    def send_password_reset_email(self, to_email: str, token: str) -> bool: ...


def _run(kind: str, send, to_email: str, token: str) -> bool:
    try:
        delivered = send(to_email, token)
    except Exception as e:
        logger.error(f"Failed to send {kind} email to {to_email}: {e}", exc_info=True)
        return False
    if not delivered:
        logger.error(f"Failed to send {kind} email to {to_email}")
        return False
    return True


class NotificationDispatcher:
    """Sends verification/reset emails without blocking or failing the caller."""

    def __init__(self, gateway: NotificationGateway, executor: Optional[Executor] = None):
        self.gateway = gateway
        self.executor = executor

    def _dispatch(self, kind: str, send, to_email: str, token: str) -> Optional[Future]:
        if self.executor is None:
            _run(kind, send, to_email, token)
            return None
        try:
            return self.executor.submit(_run, kind, send, to_email, token)
        except RuntimeError as e:
            # Executor already shut down
            logger.error(f"Could not queue {kind} email to {to_email}: {e}")
            return None

    def verification_email(self, to_email: str, token: str) -> Optional[Future]:
        return self._dispatch("verification", self.gateway.send_verification_email, to_email, token)

    def password_reset_email(self, to_email: str, token: str) -> Optional[Future]:
        return self._dispatch("password reset", self.gateway.send_password_reset_email, to_email, token)
