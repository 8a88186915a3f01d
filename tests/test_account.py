"""
Unit tests for the account service implementations.
"""

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import requests

from examplanner.account import FileAccountService, HttpAccountService
from examplanner.errors import AccountUnavailable, RemotePersistFailure

from tests.helpers import make_exam

USER_JSON = {
    "id": "u1",
    "name": "Ada",
    "email": "ada@example.com",
    "savedSchedule": [],
    "savedSearches": ["COMP"],
}


def _response(status: int = 200, body=None) -> mock.Mock:
    resp = mock.Mock()
    resp.status_code = status
    resp.json.return_value = body
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return resp


class TestFileAccountService(unittest.TestCase):
    def test_starts_signed_out(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            svc = FileAccountService(Path(d) / "accounts.json")
            self.assertFalse(svc.is_loading)
            self.assertIsNone(svc.user)
            self.assertFalse(svc.is_authenticated)

    def test_login_creates_account_and_persists_session(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "accounts.json"
            svc = FileAccountService(p)
            user = svc.login(" Ada@Example.com ")

            self.assertEqual(user.email, "ada@example.com")
            self.assertEqual(user.name, "ada")

            again = FileAccountService(p)
            self.assertEqual(again.user, user)

            # logging in again finds the same account
            self.assertEqual(again.login("ada@example.com").id, user.id)

    def test_update_user_persists_schedule(self) -> None:
        exam = make_exam()
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "accounts.json"
            svc = FileAccountService(p)
            svc.login("ada@example.com", name="Ada")
            updated = svc.update_user(saved_schedule=[exam])

            self.assertEqual(updated.saved_schedule, [exam])
            self.assertEqual(FileAccountService(p).user.saved_schedule, [exam])

    def test_logout_keeps_account_data(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "accounts.json"
            svc = FileAccountService(p)
            svc.login("ada@example.com")
            svc.update_user(saved_searches=["MATH"])
            svc.logout()

            self.assertIsNone(FileAccountService(p).user)
            self.assertEqual(svc.login("ada@example.com").saved_searches, ["MATH"])

    def test_update_without_user_fails(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            svc = FileAccountService(Path(d) / "accounts.json")
            with self.assertRaises(RemotePersistFailure):
                svc.update_user(saved_searches=[])

    def test_unknown_field_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            svc = FileAccountService(Path(d) / "accounts.json")
            svc.login("ada@example.com")
            with self.assertRaises(TypeError):
                svc.update_user(password="secret")

    def test_corrupt_account_book_starts_empty(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "accounts.json"
            p.write_text("[]", encoding="utf-8")
            svc = FileAccountService(p)
            self.assertIsNone(svc.user)

    def test_bad_saved_schedule_in_book_reads_as_empty(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "accounts.json"
            p.write_text(json.dumps({"session": "u1", "users": {"u1": {"savedSchedule": 5}}}), encoding="utf-8")
            svc = FileAccountService(p)

            self.assertEqual(svc.user.id, "u1")
            self.assertEqual(svc.user.saved_schedule, [])


class TestHttpAccountService(unittest.TestCase):
    def test_is_loading_until_load(self) -> None:
        session = mock.Mock()
        session.get.return_value = _response(200, USER_JSON)
        svc = HttpAccountService("https://api.example.com/", token="t", session=session)

        self.assertTrue(svc.is_loading)
        user = svc.load()

        self.assertFalse(svc.is_loading)
        self.assertEqual(user.id, "u1")
        self.assertEqual(user.saved_searches, ["COMP"])
        url = session.get.call_args[0][0]
        self.assertEqual(url, "https://api.example.com/me")
        self.assertEqual(session.get.call_args[1]["headers"]["Authorization"], "Bearer t")

    def test_unauthorized_means_guest(self) -> None:
        session = mock.Mock()
        session.get.return_value = _response(401)
        svc = HttpAccountService("https://api.example.com", token="expired", session=session)

        self.assertIsNone(svc.load())
        self.assertFalse(svc.is_loading)
        self.assertFalse(svc.is_authenticated)

    def test_no_token_means_guest_without_request(self) -> None:
        session = mock.Mock()
        svc = HttpAccountService("https://api.example.com", session=session)
        self.assertIsNone(svc.load())
        session.get.assert_not_called()

    def test_non_object_user_raises_account_unavailable(self) -> None:
        session = mock.Mock()
        session.get.return_value = _response(200, ["not", "a", "user"])
        svc = HttpAccountService("https://api.example.com", token="t", session=session)

        with self.assertRaises(AccountUnavailable):
            svc.load()
        self.assertTrue(svc.is_loading)

    def test_load_failure_raises_and_keeps_loading(self) -> None:
        session = mock.Mock()
        session.get.side_effect = requests.ConnectionError("offline")
        svc = HttpAccountService("https://api.example.com", token="t", session=session)

        with self.assertRaises(AccountUnavailable):
            svc.load()
        self.assertTrue(svc.is_loading)

    def test_update_user_sends_camel_case_patch(self) -> None:
        exam = make_exam()
        session = mock.Mock()
        session.get.return_value = _response(200, USER_JSON)
        session.patch.return_value = _response(200, {**USER_JSON, "savedSchedule": [exam.to_dict()]})
        svc = HttpAccountService("https://api.example.com", token="t", session=session)
        svc.load()

        updated = svc.update_user(saved_schedule=[exam])

        args, kwargs = session.patch.call_args
        self.assertEqual(args[0], "https://api.example.com/users/u1")
        self.assertEqual(kwargs["json"], {"savedSchedule": [exam.to_dict()]})
        self.assertEqual(updated.saved_schedule, [exam])
        self.assertEqual(svc.user.saved_schedule, [exam])

    def test_update_without_body_applies_fields_locally(self) -> None:
        session = mock.Mock()
        session.get.return_value = _response(200, USER_JSON)
        empty = _response(204)
        empty.json.side_effect = json.JSONDecodeError("no body", "", 0)
        session.patch.return_value = empty
        svc = HttpAccountService("https://api.example.com", token="t", session=session)
        svc.load()

        updated = svc.update_user(saved_searches=["MATH", "COMP"])
        self.assertEqual(updated.saved_searches, ["MATH", "COMP"])

    def test_update_failure_raises_remote_persist_failure(self) -> None:
        session = mock.Mock()
        session.get.return_value = _response(200, USER_JSON)
        session.patch.return_value = _response(500)
        svc = HttpAccountService("https://api.example.com", token="t", session=session)
        svc.load()

        with self.assertRaises(RemotePersistFailure):
            svc.update_user(saved_schedule=[make_exam()])
        # the cached user is unchanged
        self.assertEqual(svc.user.saved_schedule, [])

    def test_update_network_error_raises_remote_persist_failure(self) -> None:
        session = mock.Mock()
        session.get.return_value = _response(200, USER_JSON)
        session.patch.side_effect = requests.Timeout("slow")
        svc = HttpAccountService("https://api.example.com", token="t", session=session)
        svc.load()

        with self.assertRaises(RemotePersistFailure):
            svc.update_user(saved_searches=[])


if __name__ == "__main__":
    unittest.main()
