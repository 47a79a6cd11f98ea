"""
Remote sessions — the boundary to remote instances.

One session per instance URL, created lazily and cached by the
SessionPool. The core only consumes a session's outcome: a token on
login, success or failure on upload/compile. Sessions never touch the
registry or tracker themselves.

HttpInstanceSession talks to the instance's HTTP API:

    /api/login, /api/logout       authentication
    /api/json/app?action=devinfo  object types, key and source fields
    /api/rest/<object>            search and update of source objects
"""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from modsync.core.models.tracked_file import TrackedFile

logger = logging.getLogger(__name__)

_USER_AGENT = "modsync/1.0"

# Source objects not listed with a package in the dev info,
# recognized from their location in the module tree.
_PATH_OBJECT_TYPES = (
    ("/resources/", "Resource"),
    ("/test/src/com/simplicite/", "Script"),
    ("/scripts/", "Disposition"),
)


class RemoteError(Exception):
    """A request to a remote instance failed."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthenticationError(RemoteError):
    """Login or logout was refused or could not be completed."""

    def __init__(self, message: str, *, invalid_token: bool = False) -> None:
        super().__init__(message)
        self.invalid_token = invalid_token


@dataclass
class Credentials:
    username: str
    password: str


@dataclass
class LoginResult:
    token: str
    login: str = ""


class InstanceSession(Protocol):
    """What the use cases need from a remote instance."""

    url: str

    def login(
        self,
        *,
        token: str | None = None,
        credentials: Credentials | None = None,
    ) -> LoginResult: ...

    def logout(self, *, token: str | None = None) -> str: ...

    def upload(self, tracked: TrackedFile) -> None: ...

    def compile(self) -> str: ...


def object_type_for_path(file_path: str, objects: list[dict]) -> str:
    """Remote object type owning a source file.

    Objects declaring a Java package match files under that package;
    otherwise the file's location decides.

    Raises:
        RemoteError: If no type matches.
    """
    for obj in objects:
        package = obj.get("package")
        if package and package.replace(".", "/") in file_path:
            return obj["object"]
    for fragment, object_type in _PATH_OBJECT_TYPES:
        if fragment in file_path:
            return object_type
    raise RemoteError(f"No object type found for {file_path}")


class HttpInstanceSession:
    """A remote instance reached over its HTTP API."""

    def __init__(self, url: str, *, timeout: float = 10.0) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._token: str | None = None
        self._dev_info: dict | None = None
        self._row_ids: dict[str, str] = {}   # file path → row id

    # ── HTTP ────────────────────────────────────────────────────

    def _request(
        self,
        path: str,
        authorization: str | None = None,
        *,
        method: str = "GET",
        payload: Any = None,
    ) -> Any:
        headers = {"Accept": "application/json", "User-Agent": _USER_AGENT}
        if authorization is None:
            authorization = self._bearer()
        headers["Authorization"] = authorization

        data = None
        if payload is not None:
            data = json.dumps(payload).encode()
            headers["Content-Type"] = "application/json"

        req = urllib.request.Request(
            f"{self.url}{path}", data=data, headers=headers, method=method,
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            raise RemoteError(f"{self.url}: HTTP {e.code} {e.reason}", status=e.code) from e
        except (urllib.error.URLError, OSError) as e:
            raise RemoteError(f"{self.url}: {e}") from e

        try:
            return json.loads(raw or b"{}")
        except json.JSONDecodeError as e:
            raise RemoteError(f"{self.url}: invalid JSON response") from e

    def _bearer(self) -> str:
        if not self._token:
            raise RemoteError(f"{self.url}: not logged in")
        return f"Bearer {self._token}"

    # ── Authentication ──────────────────────────────────────────

    def login(
        self,
        *,
        token: str | None = None,
        credentials: Credentials | None = None,
    ) -> LoginResult:
        if token:
            authorization = f"Bearer {token}"
        elif credentials:
            pair = f"{credentials.username}:{credentials.password}".encode()
            authorization = "Basic " + base64.b64encode(pair).decode("ascii")
        else:
            raise AuthenticationError(f"{self.url}: no token or credentials")

        try:
            data = self._request("/api/login", authorization)
        except RemoteError as e:
            raise AuthenticationError(
                str(e), invalid_token=e.status == 401 and bool(token),
            ) from e
        if not isinstance(data, dict):
            data = {}

        new_token = data.get("authtoken") or token
        if not new_token:
            raise AuthenticationError(f"{self.url}: login response carries no token")

        self._token = new_token
        logger.info("Logged in as %s at %s", data.get("login", "?"), self.url)
        return LoginResult(token=new_token, login=data.get("login", ""))

    def logout(self, *, token: str | None = None) -> str:
        token = token or self._token
        if not token:
            raise AuthenticationError(f"{self.url}: not logged in")
        try:
            data = self._request("/api/logout", f"Bearer {token}")
        except RemoteError as e:
            raise AuthenticationError(str(e)) from e
        self._token = None
        self._dev_info = None
        self._row_ids.clear()
        return str(data.get("result", "Logged out")) if isinstance(data, dict) else "Logged out"

    # ── Source objects ──────────────────────────────────────────

    def dev_info(self) -> dict:
        """Object types of the instance, fetched once per session."""
        if self._dev_info is None:
            data = self._request("/api/json/app?action=devinfo")
            if not isinstance(data, dict) or not isinstance(data.get("objects"), list):
                raise RemoteError(f"{self.url}: dev info carries no object list")
            self._dev_info = data
        return self._dev_info

    def _object_info(self, object_type: str) -> dict:
        for obj in self.dev_info()["objects"]:
            if obj.get("object") == object_type:
                if not obj.get("keyfield") or not obj.get("sourcefield"):
                    break
                return obj
        raise RemoteError(f"{self.url}: no key or source field for {object_type}")

    def _find_row_id(self, tracked: TrackedFile, object_type: str, key_field: str) -> str:
        if tracked.file_path in self._row_ids:
            return self._row_ids[tracked.file_path]

        name = tracked.file_name.rsplit(".", 1)[0]
        query = urllib.parse.urlencode({key_field: name})
        records = self._request(f"/api/rest/{object_type}?{query}")
        if isinstance(records, dict):
            records = records.get("list", [])
        if not records:
            raise RemoteError(f"No {object_type} named {name} on {self.url}")

        found = records[0]
        if object_type == "Resource":
            # Resources share names; the parent directory is the owning object.
            owner = tracked.file_path.rsplit("/", 2)[-2]
            for record in records:
                res_object = record.get("res_object")
                if isinstance(res_object, dict) and res_object.get("userkeylabel") == owner:
                    found = record

        row_id = str(found["row_id"])
        self._row_ids[tracked.file_path] = row_id
        return row_id

    def upload(self, tracked: TrackedFile) -> None:
        """Replace the source document of the object backing *tracked*."""
        object_type = object_type_for_path(tracked.file_path, self.dev_info()["objects"])
        info = self._object_info(object_type)
        row_id = self._find_row_id(tracked, object_type, info["keyfield"])

        try:
            content = tracked.local_path.read_bytes()
        except OSError as e:
            raise RemoteError(f"Cannot read {tracked.local_path}: {e}") from e

        document = {
            "name": tracked.file_name,
            "content": base64.b64encode(content).decode("ascii"),
        }
        self._request(
            f"/api/rest/{object_type}/{row_id}",
            method="PUT",
            payload={info["sourcefield"]: document},
        )
        logger.debug("Uploaded %s as %s %s", tracked.file_path, object_type, row_id)

    def compile(self) -> str:
        """Trigger the instance's backend compilation."""
        data = self._request("/api/rest/Script/0/action:CodeCompile")
        if isinstance(data, dict):
            return str(data.get("result") or "Compilation succeeded")
        return str(data)


SessionFactory = Callable[[str], InstanceSession]


class SessionPool:
    """Lazily created, cached sessions — one per instance URL."""

    def __init__(self, factory: SessionFactory | None = None, *, timeout: float = 10.0) -> None:
        self._factory: SessionFactory = factory or (
            lambda url: HttpInstanceSession(url, timeout=timeout)
        )
        self._sessions: dict[str, InstanceSession] = {}

    def get(self, instance_url: str) -> InstanceSession:
        if instance_url not in self._sessions:
            logger.debug("Creating session for %s", instance_url)
            self._sessions[instance_url] = self._factory(instance_url)
        return self._sessions[instance_url]

    def drop(self, instance_url: str) -> None:
        self._sessions.pop(instance_url, None)

    def clear(self) -> None:
        self._sessions.clear()

    def urls(self) -> list[str]:
        return list(self._sessions)
