"""Admin session lifecycle: login, logout and expiry-aware refresh."""

import asyncio
import dataclasses
import datetime
import logging
import sqlite3
from typing import Callable, Optional

from invite_console.api_client import AdminApiClient
from invite_console.credential_store import CredentialStore
from invite_console.errors import (
    ConsoleError,
    RefreshFailedError,
    ServerError,
    UnauthenticatedError,
)
from invite_console.models import AdminProfile, Credential, utcnow


class SessionManager:
    """Owns the single admin credential of this process.

    Network calls run through ``asyncio.to_thread`` so the blocking client never
    stalls the event loop. At most one refresh is in flight; concurrent callers
    of :meth:`ensure_valid` share its outcome.
    """

    def __init__(
        self,
        store: CredentialStore,
        auth_backend: AdminApiClient,
        clock: Callable[[], datetime.datetime] = utcnow,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.store = store
        self.auth_backend = auth_backend
        self._clock = clock
        self._refresh_task: Optional[asyncio.Task] = None
        # Bumped by login/logout so a late refresh cannot overwrite newer state
        self._generation = 0

    @property
    def credential(self) -> Optional[Credential]:
        return self.store.get()

    @property
    def admin(self) -> Optional[AdminProfile]:
        credential = self.store.get()
        return credential.admin if credential else None

    def is_authenticated(self, now: Optional[datetime.datetime] = None) -> bool:
        return self.store.is_valid(now or self._clock())

    def _credential_from(self, payload, context: str) -> Credential:
        try:
            return Credential.from_login_response(payload, issued_at=self._clock())
        except (ValueError, TypeError) as e:
            self.logger.error(f"Malformed {context} response from backend: {str(e)}")
            raise ServerError(None, f"Malformed {context} response: {str(e)}") from e

    async def login(self, email: str, password: str) -> Credential:
        """Authenticate once. Failures leave any existing session untouched."""
        payload = await asyncio.to_thread(self.auth_backend.login, email, password)
        credential = self._credential_from(payload, "login")
        self._generation += 1
        self.store.set(credential)
        self.logger.info(
            f"Logged in as {credential.admin.email} ({credential.admin.role.value}), "
            f"token expires {credential.expires_at.isoformat()}"
        )
        return credential

    async def logout(self) -> None:
        """Clear the local session, then tell the backend if we can."""
        credential = self.store.get()
        self._generation += 1
        try:
            self.store.clear()
        except sqlite3.Error as e:
            # The in-memory session is gone either way; the backend still gets told
            self.logger.error(f"Could not remove the persisted session during logout: {str(e)}")
        if credential is None:
            self.logger.debug("Logout requested with no active session.")
            return
        try:
            await asyncio.to_thread(self.auth_backend.logout, credential)
            self.logger.info(f"Logged out {credential.admin.email}")
        except ConsoleError as e:
            self.logger.warning(
                f"Backend logout failed for {credential.admin.email}, local session cleared anyway: {str(e)}"
            )

    async def ensure_valid(self, now: Optional[datetime.datetime] = None) -> Credential:
        """Return a credential valid at ``now``, refreshing it at most once if needed."""
        now = now or self._clock()
        credential = self.store.get()
        if credential is None:
            raise UnauthenticatedError("No active session")
        if credential.is_valid(now):
            return credential

        if self._refresh_task is None:
            self.logger.info(
                f"Session for {credential.admin.email} expired at {credential.expires_at.isoformat()}, refreshing."
            )
            self._refresh_task = asyncio.create_task(self._refresh(credential))
        else:
            self.logger.debug("Joining in-flight session refresh.")
        # Shielded so one cancelled waiter does not cancel the refresh for the rest
        return await asyncio.shield(self._refresh_task)

    def _superseding_credential(self) -> Credential:
        # A login or logout happened while refreshing; it wins
        current = self.store.get()
        if current is not None and current.is_valid(self._clock()):
            return current
        raise RefreshFailedError("Session changed while refreshing")

    async def _refresh(self, stale: Credential) -> Credential:
        generation = self._generation
        try:
            try:
                payload = await asyncio.to_thread(self.auth_backend.refresh, stale)
                fresh = self._credential_from(payload, "refresh")
            except ConsoleError as e:
                if generation != self._generation:
                    return self._superseding_credential()
                self.logger.warning(
                    f"Session refresh failed for {stale.admin.email}, clearing session: {str(e)}"
                )
                self.store.clear()
                raise RefreshFailedError(str(e)) from e

            if generation != self._generation:
                return self._superseding_credential()

            self.store.set(fresh)
            self.logger.info(
                f"Session refreshed for {fresh.admin.email}, expires {fresh.expires_at.isoformat()}"
            )
            return fresh
        finally:
            self._refresh_task = None

    async def refresh_profile(self) -> AdminProfile:
        """Reload the admin profile from GET /auth/me, keeping the token."""
        credential = await self.ensure_valid()
        generation = self._generation
        try:
            payload = await asyncio.to_thread(
                self.auth_backend.get_current_admin, credential
            )
        except UnauthenticatedError:
            self.logger.warning("Backend rejected the session token, clearing session.")
            if generation == self._generation:
                self._generation += 1
                self.store.clear()
            raise
        except ConsoleError as e:
            self.logger.warning(f"Could not reload admin profile, keeping session: {str(e)}")
            raise
        try:
            profile = AdminProfile.from_dict(payload)
        except (ValueError, TypeError) as e:
            raise ServerError(None, f"Malformed profile response: {str(e)}") from e

        current = self.store.get()
        if generation == self._generation and current is not None:
            self.store.set(dataclasses.replace(current, admin=profile))
        return profile
