"""
Account service collaborators.

The schedule reconciler only needs four things from an account service:

- is_loading        -> True while the current user is not known yet
- user              -> the signed-in UserAccount, or None for guests
- is_authenticated  -> convenience flag
- update_user(...)  -> persist changed fields (saved_schedule, saved_searches, name)

Two implementations are shipped:

- FileAccountService: a local account book in ~/.examplanner/accounts.json,
  used by the CLI so that login/logout can be tried without a server
- HttpAccountService: talks to a remote account API with requests
"""

from __future__ import annotations

import json
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from examplanner.errors import AccountUnavailable, RemotePersistFailure
from examplanner.log import get_logger
from examplanner.model import UserAccount

log = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "saved_schedule", "saved_searches")

_WIRE_NAMES = {
    "name": "name",
    "saved_schedule": "savedSchedule",
    "saved_searches": "savedSearches",
}


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = sorted(set(fields) - set(UPDATABLE_FIELDS))
    if unknown:
        raise TypeError(f"Unknown account fields: {', '.join(unknown)}")


def _wire_payload(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert python field names/values to the JSON shape of the account API.
    """
    payload: Dict[str, Any] = {}
    for key, value in fields.items():
        if key == "saved_schedule":
            value = [r.to_dict() for r in value]
        elif key == "saved_searches":
            value = list(value)
        payload[_WIRE_NAMES[key]] = value
    return payload


def _apply_fields(user: UserAccount, fields: Dict[str, Any]) -> UserAccount:
    changes = {k: (v if k == "name" else list(v)) for k, v in fields.items()}
    return replace(user, **changes)


class AccountService:
    """
    Base class for account services.
    """

    is_loading: bool = False

    @property
    def user(self) -> Optional[UserAccount]:
        raise NotImplementedError

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def update_user(self, **fields: Any) -> UserAccount:
        raise NotImplementedError

    def logout(self) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Local account book
# ---------------------------------------------------------------------------


class FileAccountService(AccountService):
    """
    Accounts and the current session stored in one JSON file:

        {"session": "<user id or null>", "users": {"<user id>": {...}}}
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._users: Dict[str, UserAccount] = {}
        self._session: Optional[str] = None
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            users = data.get("users", {})
            session = data.get("session")
        except (OSError, json.JSONDecodeError, UnicodeDecodeError, AttributeError) as e:
            log.warning("account_book_unreadable", path=str(self.path), error=str(e))
            return

        if isinstance(users, dict):
            for uid, raw in users.items():
                if isinstance(raw, dict):
                    self._users[str(uid)] = UserAccount.from_dict({**raw, "id": uid})

        if isinstance(session, str) and session in self._users:
            self._session = session

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "session": self._session,
            "users": {uid: u.to_dict() for uid, u in self._users.items()},
        }
        self.path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    @property
    def user(self) -> Optional[UserAccount]:
        if self._session is None:
            return None
        return self._users.get(self._session)

    def find_by_email(self, email: str) -> Optional[UserAccount]:
        email = email.strip().lower()
        for u in self._users.values():
            if u.email.lower() == email:
                return u
        return None

    def login(self, email: str, name: str = "") -> UserAccount:
        """
        Sign in, creating the account on first use.
        """
        email = email.strip().lower()
        if not email:
            raise ValueError("email must not be empty")

        user = self.find_by_email(email)
        if user is None:
            user = UserAccount(id=uuid.uuid4().hex, name=name.strip() or email.split("@")[0], email=email)
            self._users[user.id] = user
            log.info("account_created", user_id=user.id)

        self._session = user.id
        self._save()
        return user

    def logout(self) -> None:
        self._session = None
        self._save()

    def update_user(self, **fields: Any) -> UserAccount:
        _check_fields(fields)
        user = self.user
        if user is None:
            raise RemotePersistFailure("No user is signed in")

        updated = _apply_fields(user, fields)
        self._users[user.id] = updated
        try:
            self._save()
        except OSError as e:
            self._users[user.id] = user
            raise RemotePersistFailure(f"Could not write {self.path}: {e}") from e
        return updated


# ---------------------------------------------------------------------------
# Remote account API
# ---------------------------------------------------------------------------


class HttpAccountService(AccountService):
    """
    Client for a JSON account API:

        GET   {base_url}/me          -> user object, 401/404 when signed out
        PATCH {base_url}/users/{id}  -> partial update, returns the user object

    is_loading stays True until load() has resolved the current user.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout
        self.is_loading = True
        self._user: Optional[UserAccount] = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @property
    def user(self) -> Optional[UserAccount]:
        return self._user

    def load(self) -> Optional[UserAccount]:
        """
        Resolve the current user. Raises AccountUnavailable if the API cannot
        be reached; the service then stays in the loading state.
        """
        if not self.token:
            self._user = None
            self.is_loading = False
            return None

        try:
            resp = self.session.get(f"{self.base_url}/me", headers=self._headers(), timeout=self.timeout)
            if resp.status_code in (401, 404):
                self._user = None
            else:
                resp.raise_for_status()
                self._user = UserAccount.from_dict(resp.json())
        except (requests.RequestException, ValueError) as e:
            log.error("account_load_failed", url=self.base_url, error=str(e))
            raise AccountUnavailable(f"Could not load account from {self.base_url}: {e}") from e

        self.is_loading = False
        return self._user

    def logout(self) -> None:
        self.token = ""
        self._user = None

    def update_user(self, **fields: Any) -> UserAccount:
        _check_fields(fields)
        user = self._user
        if user is None:
            raise RemotePersistFailure("No user is signed in")

        url = f"{self.base_url}/users/{user.id}"
        try:
            resp = self.session.patch(url, json=_wire_payload(fields), headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            log.error("account_update_failed", user_id=user.id, fields=sorted(fields), error=str(e))
            raise RemotePersistFailure(f"Account update failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("id"):
            updated = UserAccount.from_dict(body)
        else:
            updated = _apply_fields(user, fields)

        self._user = updated
        return updated
