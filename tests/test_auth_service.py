import json
import time
import unittest
from urllib.parse import quote

from jose import jwt
from starlette.responses import Response

from app.core.errors import ApiError
from app.schemas.user import UserRead
from app.services import auth_service
from app.services.auth_service import AuthState, state_from_cookies


class FakeAuthApi:
    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.logged_out = []

    def login(self, email, password):
        if self.error:
            raise self.error
        return self.payload

    def logout(self, token):
        self.logged_out.append(token)
        if self.error:
            raise self.error


def _user_cookie(user: dict) -> str:
    return quote(json.dumps(user), safe="")


class LoginTest(unittest.TestCase):
    def test_login_returns_state(self):
        api = FakeAuthApi({"token": "t-1", "user": {"_id": "u1", "email": "owner@shop.test", "role": "admin"}})
        state = auth_service.login(" owner@shop.test ", "secret", api=api)
        self.assertTrue(state.is_authenticated)
        self.assertTrue(state.is_admin)
        self.assertEqual(state.user.id, "u1")

    def test_login_accepts_data_envelope(self):
        api = FakeAuthApi({"data": {"token": "t-2", "user": {"id": "u2", "email": "staff@shop.test"}}})
        state = auth_service.login("staff@shop.test", "secret", api=api)
        self.assertEqual(state.token, "t-2")
        self.assertFalse(state.is_admin)

    def test_login_uses_server_message(self):
        api = FakeAuthApi(error=ApiError("x", status_code=401, payload={"message": "Invalid email or password"}))
        with self.assertRaises(ApiError) as ctx:
            auth_service.login("a@b.c", "bad", api=api)
        self.assertEqual(ctx.exception.message, "Invalid email or password")

    def test_login_failed_fallback(self):
        api = FakeAuthApi(error=ApiError("x", status_code=401))
        with self.assertRaises(ApiError) as ctx:
            auth_service.login("a@b.c", "bad", api=api)
        self.assertEqual(ctx.exception.message, auth_service.LOGIN_FAILED_MESSAGE)

    def test_login_without_token_fails(self):
        with self.assertRaises(ApiError):
            auth_service.login("a@b.c", "pw", api=FakeAuthApi({"user": {"email": "a@b.c"}}))

    def test_logout_clears_state_even_if_api_fails(self):
        api = FakeAuthApi(error=ApiError("down"))
        state = auth_service.logout(AuthState(token="t-1"), api=api)
        self.assertFalse(state.is_authenticated)
        self.assertEqual(api.logged_out, ["t-1"])


class CookieStateTest(unittest.TestCase):
    def test_round_trip_through_response_cookies(self):
        state = AuthState(token="t-1", user=UserRead.model_validate({"_id": "u1", "email": "a@b.c"}))
        response = Response()
        auth_service.write_auth_cookies(response, state)
        headers = response.headers.getlist("set-cookie")
        self.assertTrue(any(header.startswith("authToken=t-1;") for header in headers))
        self.assertTrue(any(header.startswith("userData=") for header in headers))

    def test_state_from_cookies(self):
        state = state_from_cookies({"authToken": "t-1", "userData": _user_cookie({"_id": "u1", "email": "a@b.c"})})
        self.assertTrue(state.is_authenticated)
        self.assertEqual(state.user.email, "a@b.c")

    def test_missing_cookie_is_unauthenticated(self):
        self.assertFalse(state_from_cookies({"authToken": "t-1"}).is_authenticated)

    def test_malformed_user_cookie_is_unauthenticated(self):
        state = state_from_cookies({"authToken": "t-1", "userData": "%7Bnot-json"})
        self.assertFalse(state.is_authenticated)

    def test_expired_token_is_unauthenticated(self):
        token = jwt.encode({"sub": "u1", "exp": int(time.time()) - 60}, "secret", algorithm="HS256")
        state = state_from_cookies({"authToken": token, "userData": _user_cookie({"_id": "u1"})})
        self.assertFalse(state.is_authenticated)

    def test_update_user_merges_fields(self):
        state = AuthState(token="t", user=UserRead.model_validate({"_id": "u1", "name": "Old"}))
        updated = auth_service.update_user(state, name="New")
        self.assertEqual(updated.user.name, "New")
        self.assertEqual(updated.user.id, "u1")


if __name__ == "__main__":
    unittest.main()
