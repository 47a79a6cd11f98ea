"""
Tests for remote sessions — HTTP login/logout, upload, compile, session pool.
"""

import base64
import json
import urllib.error
from pathlib import Path

import pytest

from modsync.core.models.tracked_file import TrackedFile
from modsync.core.services.remote_session import (
    AuthenticationError,
    Credentials,
    HttpInstanceSession,
    RemoteError,
    SessionPool,
    object_type_for_path,
)

DEV_INFO = {
    "objects": [
        {
            "object": "ObjectInternal",
            "package": "com.simplicite.objects",
            "keyfield": "obo_name",
            "sourcefield": "obo_script_id",
        },
        {"object": "Resource", "keyfield": "res_code", "sourcefield": "res_file"},
    ],
}


def _source_file(tmp_path: Path, relative: str, content: str = "class CrmObject {}\n") -> TrackedFile:
    path = tmp_path / "crm" / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return TrackedFile(
        file_path=path.as_posix(),
        instance_url="https://i1",
        workspace_folder_path=(tmp_path / "crm").as_posix(),
    )


@pytest.fixture
def logged_in(requests_seen) -> HttpInstanceSession:
    """A session that resumed with token ``tok``; the login request is seen[0]."""
    _, replies = requests_seen
    replies.append({"login": "designer"})
    session = HttpInstanceSession("https://i1")
    session.login(token="tok")
    return session


class TestHttpLogin:
    """Login and logout over HTTP."""

    def test_login_with_credentials(self, requests_seen):
        seen, replies = requests_seen
        replies.append({"authtoken": "tok", "login": "designer"})

        session = HttpInstanceSession("https://i1/")
        result = session.login(credentials=Credentials("designer", "secret"))

        assert result.token == "tok"
        assert result.login == "designer"
        assert seen[0].full_url == "https://i1/api/login"
        expected = base64.b64encode(b"designer:secret").decode()
        assert seen[0].get_header("Authorization") == f"Basic {expected}"

    def test_login_with_token(self, requests_seen):
        """A token login keeps the token when the response carries none."""
        seen, replies = requests_seen
        replies.append({"login": "designer"})
        result = HttpInstanceSession("https://i1").login(token="tok")
        assert result.token == "tok"
        assert seen[0].get_header("Authorization") == "Bearer tok"

    def test_rejected_token_is_flagged_invalid(self, requests_seen):
        _, replies = requests_seen
        replies.append(urllib.error.HTTPError("https://i1/api/login", 401, "Unauthorized", {}, None))
        with pytest.raises(AuthenticationError) as exc:
            HttpInstanceSession("https://i1").login(token="stale")
        assert exc.value.invalid_token

    def test_rejected_credentials_are_not_an_invalid_token(self, requests_seen):
        _, replies = requests_seen
        replies.append(urllib.error.HTTPError("https://i1/api/login", 401, "Unauthorized", {}, None))
        with pytest.raises(AuthenticationError) as exc:
            HttpInstanceSession("https://i1").login(credentials=Credentials("a", "b"))
        assert not exc.value.invalid_token

    def test_unreachable(self, requests_seen):
        _, replies = requests_seen
        replies.append(urllib.error.URLError("connection refused"))
        with pytest.raises(AuthenticationError, match="connection refused"):
            HttpInstanceSession("https://i1").login(credentials=Credentials("a", "b"))

    def test_login_needs_something(self):
        with pytest.raises(AuthenticationError):
            HttpInstanceSession("https://i1").login()

    def test_response_without_token(self, requests_seen):
        _, replies = requests_seen
        replies.append({"login": "designer"})
        with pytest.raises(AuthenticationError, match="no token"):
            HttpInstanceSession("https://i1").login(credentials=Credentials("a", "b"))

    def test_logout_uses_given_token(self, requests_seen):
        seen, replies = requests_seen
        replies.append({"result": "Logged out"})
        assert HttpInstanceSession("https://i1").logout(token="tok") == "Logged out"
        assert seen[0].full_url == "https://i1/api/logout"
        assert seen[0].get_header("Authorization") == "Bearer tok"

    def test_logout_without_token(self):
        with pytest.raises(AuthenticationError, match="not logged in"):
            HttpInstanceSession("https://i1").logout()


class TestObjectType:
    """Mapping a source file to its remote object type."""

    def test_package_match(self):
        path = "home/u/crm/src/com/simplicite/objects/CRM/CrmObject.java"
        assert object_type_for_path(path, DEV_INFO["objects"]) == "ObjectInternal"

    def test_location_fallbacks(self):
        objects = DEV_INFO["objects"]
        assert object_type_for_path("crm/resources/CrmObject/STYLES.css", objects) == "Resource"
        assert object_type_for_path("crm/test/src/com/simplicite/T.java", objects) == "Script"
        assert object_type_for_path("crm/scripts/Main.js", objects) == "Disposition"

    def test_unknown(self):
        with pytest.raises(RemoteError, match="No object type"):
            object_type_for_path("crm/other/X.java", DEV_INFO["objects"])


class TestHttpUpload:
    """Uploading source documents and compiling over HTTP."""

    def test_upload_replaces_source_document(self, logged_in, requests_seen, tmp_path: Path):
        seen, replies = requests_seen
        tracked = _source_file(tmp_path, "src/com/simplicite/objects/CRM/CrmObject.java")
        replies.extend([DEV_INFO, [{"row_id": "42", "obo_name": "CrmObject"}], {"row_id": "42"}])

        logged_in.upload(tracked)

        assert seen[1].full_url == "https://i1/api/json/app?action=devinfo"
        assert seen[2].full_url == "https://i1/api/rest/ObjectInternal?obo_name=CrmObject"
        put = seen[3]
        assert put.get_method() == "PUT"
        assert put.full_url == "https://i1/api/rest/ObjectInternal/42"
        assert put.get_header("Authorization") == "Bearer tok"
        document = json.loads(put.data)["obo_script_id"]
        assert document["name"] == "CrmObject.java"
        assert base64.b64decode(document["content"]) == b"class CrmObject {}\n"

    def test_second_upload_reuses_row_id_and_dev_info(self, logged_in, requests_seen, tmp_path: Path):
        seen, replies = requests_seen
        tracked = _source_file(tmp_path, "src/com/simplicite/objects/CRM/CrmObject.java")
        replies.extend([DEV_INFO, [{"row_id": "42"}], {}, {}])

        logged_in.upload(tracked)
        logged_in.upload(tracked)

        assert len(seen) == 5
        assert seen[4].get_method() == "PUT"

    def test_resource_picks_owning_object(self, logged_in, requests_seen, tmp_path: Path):
        seen, replies = requests_seen
        tracked = _source_file(tmp_path, "resources/CrmObject/STYLES.css", "a {}")
        replies.extend([
            DEV_INFO,
            [
                {"row_id": "1", "res_object": {"userkeylabel": "Other"}},
                {"row_id": "2", "res_object": {"userkeylabel": "CrmObject"}},
            ],
            {},
        ])

        logged_in.upload(tracked)

        assert seen[2].full_url == "https://i1/api/rest/Resource?res_code=STYLES"
        assert seen[3].full_url == "https://i1/api/rest/Resource/2"
        assert "res_file" in json.loads(seen[3].data)

    def test_no_matching_object(self, logged_in, requests_seen, tmp_path: Path):
        _, replies = requests_seen
        tracked = _source_file(tmp_path, "src/com/simplicite/objects/CRM/CrmObject.java")
        replies.extend([DEV_INFO, []])
        with pytest.raises(RemoteError, match="No ObjectInternal named CrmObject"):
            logged_in.upload(tracked)

    def test_update_refused(self, logged_in, requests_seen, tmp_path: Path):
        _, replies = requests_seen
        tracked = _source_file(tmp_path, "src/com/simplicite/objects/CRM/CrmObject.java")
        replies.extend([
            DEV_INFO,
            [{"row_id": "42"}],
            urllib.error.HTTPError("https://i1/api/rest/ObjectInternal/42", 500, "Server Error", {}, None),
        ])
        with pytest.raises(RemoteError) as exc:
            logged_in.upload(tracked)
        assert exc.value.status == 500

    def test_missing_local_file(self, logged_in, requests_seen, tmp_path: Path):
        _, replies = requests_seen
        tracked = _source_file(tmp_path, "src/com/simplicite/objects/CRM/CrmObject.java")
        tracked.local_path.unlink()
        replies.extend([DEV_INFO, [{"row_id": "42"}]])
        with pytest.raises(RemoteError, match="Cannot read"):
            logged_in.upload(tracked)

    def test_upload_needs_login(self, requests_seen, tmp_path: Path):
        seen, _ = requests_seen
        tracked = _source_file(tmp_path, "src/com/simplicite/objects/CRM/CrmObject.java")
        with pytest.raises(RemoteError, match="not logged in"):
            HttpInstanceSession("https://i1").upload(tracked)
        assert seen == []

    def test_compile(self, logged_in, requests_seen):
        seen, replies = requests_seen
        replies.append({"result": "Compilation succeeded"})
        assert logged_in.compile() == "Compilation succeeded"
        assert seen[1].full_url == "https://i1/api/rest/Script/0/action:CodeCompile"

    def test_logout_forgets_cached_lookups(self, logged_in, requests_seen, tmp_path: Path):
        seen, replies = requests_seen
        tracked = _source_file(tmp_path, "src/com/simplicite/objects/CRM/CrmObject.java")
        replies.extend([DEV_INFO, [{"row_id": "42"}], {}, {"result": "Logged out"}])
        logged_in.upload(tracked)
        logged_in.logout()

        replies.extend([{"login": "designer"}, DEV_INFO, [{"row_id": "43"}], {}])
        logged_in.login(token="tok")
        logged_in.upload(tracked)
        assert seen[-1].full_url == "https://i1/api/rest/ObjectInternal/43"


class TestSessionPool:
    """One cached session per instance URL."""

    def test_one_session_per_url(self):
        created: list[str] = []

        def factory(url):
            created.append(url)
            return object()

        pool = SessionPool(factory)
        assert pool.get("https://i1") is pool.get("https://i1")
        pool.get("https://i2")
        assert created == ["https://i1", "https://i2"]

    def test_drop_recreates(self):
        pool = SessionPool(lambda url: object())
        first = pool.get("https://i1")
        pool.drop("https://i1")
        assert pool.get("https://i1") is not first

    def test_default_factory_is_http(self):
        session = SessionPool(timeout=2.5).get("https://i1")
        assert isinstance(session, HttpInstanceSession)
        assert session.timeout == 2.5
