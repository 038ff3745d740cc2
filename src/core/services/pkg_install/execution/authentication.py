"""
L4 Execution — Elevation authentication.

``su`` gives no structured answer before the wrapped shell starts, so
success is inferred from which stream answers a harmless probe first:

    Start ──(secret)──▶ PasswordSent ──(probe)──▶ ProbeSent ──▶ outcome

    stdout first            → AUTHENTICATED (the shell ran the probe)
    stderr first            → DENIED        (e.g. "Authentication failure")
    nothing before timeout  → TIMED_OUT     (callers treat it as DENIED)

When the session is already root the secret step is skipped and the
probe goes out straight away.

Known limitation: stderr noise printed by a successful login (a
message of the day, a locale warning) is indistinguishable from a
failure message and reads as DENIED.
"""

from __future__ import annotations

import logging
import time
from enum import Enum

from src.core.models.trace import AuthenticationOutcome
from src.core.services.pkg_install.errors import InstallIOError
from src.core.services.pkg_install.execution.readiness import StreamMultiplexer
from src.core.services.pkg_install.execution.session import PrivilegedShellSession

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 5.0
DEFAULT_PROBE = "whoami"
# Longest wait for the password prompt to reach stderr after the secret.
PROMPT_WAIT_S = 1.0


class AuthState(str, Enum):
    START = "start"
    PASSWORD_SENT = "password_sent"
    PROBE_SENT = "probe_sent"
    AUTHENTICATED = "authenticated"
    DENIED = "denied"
    TIMED_OUT = "timed_out"


_TERMINAL = {
    AuthState.AUTHENTICATED: AuthenticationOutcome.AUTHENTICATED,
    AuthState.DENIED: AuthenticationOutcome.DENIED,
    AuthState.TIMED_OUT: AuthenticationOutcome.TIMED_OUT,
}


class AuthenticationProtocol:
    """Confirm that a session is running with elevated privileges.

    One protocol instance per session; ``run()`` may be called once.

    Args:
        session: The session to authenticate.
        timeout: Seconds to wait for the probe's answer.
        probe: Harmless command whose stdout proves the shell is running.
    """

    def __init__(
        self,
        session: PrivilegedShellSession,
        *,
        timeout: float = DEFAULT_TIMEOUT_S,
        probe: str = DEFAULT_PROBE,
    ) -> None:
        self._session = session
        self._timeout = timeout
        self._probe = probe
        self._state = AuthState.START
        self.history: list[AuthState] = [AuthState.START]

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def outcome(self) -> AuthenticationOutcome | None:
        return _TERMINAL.get(self._state)

    def _enter(self, state: AuthState) -> None:
        logger.debug("auth: %s → %s", self._state.value, state.value)
        self._state = state
        self.history.append(state)

    def run(self, secret: str | None = None) -> AuthenticationOutcome:
        """Drive the state machine to a terminal outcome.

        Raises:
            InstallIOError: If writing to the session or polling its pipes fails.
            RuntimeError: If called twice.
        """
        if self._state is not AuthState.START:
            raise RuntimeError("authentication already ran on this session")

        mux = self._session.multiplexer

        if not self._session.elevated and secret:
            self._session.write_secret(secret)
            self._enter(AuthState.PASSWORD_SENT)
            # The prompt itself may print to stderr; that is not a verdict.
            # It can show up late, so give it a moment before draining.
            try:
                mux.wait_for("stderr", min(self._timeout, PROMPT_WAIT_S))
                mux.drain("stderr")
            except OSError as e:
                logger.debug("Ignoring stderr drain failure: %s", e)

        try:
            self._session.write_command(self._probe)
        except InstallIOError:
            if self._state is not AuthState.PASSWORD_SENT:
                raise
            # su rejected the secret and exited before the probe went out
            self._enter(AuthState.DENIED)
            logger.info("Elevation %s", AuthState.DENIED.value)
            return AuthenticationOutcome.DENIED
        self._enter(AuthState.PROBE_SENT)

        state = self._race(mux)
        self._enter(state)
        logger.info("Elevation %s", state.value)
        return _TERMINAL[state]

    def _race(self, mux: StreamMultiplexer) -> AuthState:
        deadline = time.monotonic() + self._timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return AuthState.TIMED_OUT
            try:
                ready = mux.wait(remaining)
            except OSError as e:
                raise InstallIOError(f"Cannot poll session output: {e}") from e
            if not ready:
                if not mux.is_open("stdout") and not mux.is_open("stderr"):
                    return AuthState.DENIED
                continue

            first = ready[0]
            if first == "stdout":
                if mux.pending("stdout"):
                    # Probe output must not leak into the install log.
                    mux.discard("stdout")
                    return AuthState.AUTHENTICATED
                # stdout closed without answering: the shell never started
                return AuthState.DENIED
            return AuthState.DENIED


def authenticate(
    session: PrivilegedShellSession,
    secret: str | None = None,
    *,
    timeout: float = DEFAULT_TIMEOUT_S,
    probe: str = DEFAULT_PROBE,
) -> AuthenticationOutcome:
    """Run a fresh ``AuthenticationProtocol`` on *session*."""
    return AuthenticationProtocol(session, timeout=timeout, probe=probe).run(secret)
