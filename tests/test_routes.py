import asyncio
import json
import math
import unittest
from urllib.parse import quote

from fastapi.testclient import TestClient
from starlette.requests import Request

from app.core.error_handlers import session_expired_handler
from app.core.errors import ApiError, SessionExpiredError
from app.dependencies import get_api
from app.main import app
from app.routers.purchase_orders import received_items
from app.services.camera import CameraSession, CameraState
from app.services.products_store import drop_products_store
from tests.test_camera import FakeCapture, FakeLibraries

TOKEN = "route-test-token"
OTHER_TOKEN = "other-route-test-token"
USER = {"_id": "u1", "name": "Owner", "email": "owner@shop.test", "role": "admin"}


def _catalog(size):
    products = [
        {"_id": "p{}".format(index), "name": "Item {}".format(index), "qrCode": "QR-{}".format(index), "price": 2, "quantity": 50}
        for index in range(1, size + 1)
    ]
    products[-1].update(name="Oat Milk", quantity=0)
    return products


class FakeApi:
    def __init__(self):
        self.expired = False
        self.login_error = None
        self.products = [{"_id": "p1", "name": "Tea", "qrCode": "QR-1", "price": 4, "quantity": 2}]
        self.product_calls = []

    def _check(self):
        if self.expired:
            raise SessionExpiredError(status_code=401)

    def login(self, email, password):
        if self.login_error:
            raise self.login_error
        return {"token": TOKEN, "user": dict(USER, email=email)}

    def logout(self, token):
        return {"success": True}

    def list_products(self, token, params=None):
        self._check()
        params = dict(params or {})
        self.product_calls.append(params)
        items = self.products
        if params.get("search"):
            items = [item for item in items if params["search"].lower() in item["name"].lower()]
        page = int(params.get("page", 1))
        limit = int(params.get("limit", 20))
        return {
            "data": items[(page - 1) * limit:page * limit],
            "pagination": {
                "currentPage": page,
                "totalPages": max(1, math.ceil(len(items) / limit)),
                "totalItems": len(items),
            },
        }

    def list_categories(self, token, include_products=False):
        return {"data": [{"_id": "c1", "name": "Beverages"}]}

    def stock_movements(self, token, params=None):
        return {"data": []}

    def dashboard_analytics(self, token):
        return {}

    def today_sales(self, token):
        return None

    def recent_activities(self, token, limit=50):
        return {"data": []}

    def category_performance(self, token, params=None):
        return {"categories": [{"category": "c1", "sales": {"quantitySold": 3, "salesValue": 12}, "inventory": {}}]}

    def get_product_by_qr(self, token, qr_code):
        self._check()
        return {"data": {"_id": "p1", "name": "Tea", "qrCode": qr_code, "price": 4, "stock": {"godown": 1, "store": 1}}}

    def delete_product(self, token, product_id):
        self._check()
        return {"success": True}


class RoutesTest(unittest.TestCase):
    def setUp(self):
        self.api = FakeApi()
        app.dependency_overrides[get_api] = lambda: self.api
        drop_products_store(TOKEN)
        drop_products_store(OTHER_TOKEN)
        self.camera = app.state.camera
        self.client = TestClient(app, follow_redirects=False)

    def tearDown(self):
        app.dependency_overrides.clear()
        drop_products_store(TOKEN)
        drop_products_store(OTHER_TOKEN)
        app.state.camera = self.camera
        self.client.close()

    def _sign_in(self, token=TOKEN):
        self.client.cookies.set("authToken", token)
        self.client.cookies.set("userData", quote(json.dumps(USER), safe=""))

    def _cleared(self, response, name):
        return any(
            header.startswith("{}=".format(name)) and "Max-Age=0" in header
            for header in response.headers.get_list("set-cookie")
        )

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_pages_redirect_to_login(self):
        for path in ("/dashboard", "/products", "/stock", "/scanner", "/reports"):
            with self.subTest(path=path):
                response = self.client.get(path)
                self.assertEqual(response.status_code, 303)
                self.assertEqual(response.headers["location"], "/login")

    def test_root_redirects_to_dashboard(self):
        response = self.client.get("/")
        self.assertEqual(response.headers["location"], "/dashboard")

    def test_login_page_renders(self):
        response = self.client.get("/login")
        self.assertEqual(response.status_code, 200)
        self.assertIn('action="/login"', response.text)

    def test_login_sets_cookies(self):
        response = self.client.post("/login", data={"email": "owner@shop.test", "password": "secret"})
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/dashboard")
        self.assertEqual(response.cookies.get("authToken"), TOKEN)
        self.assertIsNotNone(response.cookies.get("userData"))

    def test_login_failure_shows_message(self):
        self.api.login_error = ApiError("Invalid credentials", status_code=401, payload={"message": "Invalid credentials"})
        response = self.client.post("/login", data={"email": "owner@shop.test", "password": "wrong"})
        self.assertEqual(response.status_code, 401)
        self.assertIn("Invalid credentials", response.text)

    def test_logout_clears_cookies(self):
        self._sign_in()
        response = self.client.post("/logout")
        self.assertEqual(response.headers["location"], "/login")
        self.assertTrue(self._cleared(response, "authToken"))
        self.assertTrue(self._cleared(response, "userData"))

    def test_lookup_json(self):
        self._sign_in()
        response = self.client.get("/products/api/lookup", params={"code": "QR-7"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["product"]["qrCode"], "QR-7")
        self.assertEqual(body["stock"]["total"], 2)

    def test_expired_session_on_api_route_is_json_401(self):
        self._sign_in()
        self.api.expired = True
        response = self.client.get("/products/api/lookup", params={"code": "QR-7"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "Session expired. Please login again.")
        self.assertTrue(self._cleared(response, "authToken"))

    def test_expired_session_on_form_redirects_to_login(self):
        self._sign_in()
        self.api.expired = True
        response = self.client.post("/products/p1/delete")
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/login")
        self.assertTrue(self._cleared(response, "authToken"))
        self.assertTrue(self._cleared(response, "userData"))

    def test_expired_session_on_login_page_renders_without_redirect(self):
        scope = {
            "type": "http",
            "method": "POST",
            "scheme": "http",
            "server": ("testserver", 80),
            "path": "/login",
            "query_string": b"",
            "headers": [(b"host", b"testserver"), (b"cookie", "authToken={}".format(TOKEN).encode())],
            "app": app,
        }
        response = asyncio.run(session_expired_handler(Request(scope), SessionExpiredError(status_code=401)))
        self.assertEqual(response.status_code, 401)
        self.assertNotIn("location", response.headers)
        self.assertIn(b'action="/login"', response.body)
        cookies = response.headers.getlist("set-cookie")
        self.assertTrue(any(cookie.startswith("authToken=") and "Max-Age=0" in cookie for cookie in cookies))
        self.assertTrue(any(cookie.startswith("userData=") and "Max-Age=0" in cookie for cookie in cookies))

    def test_warnings_cover_products_past_the_first_page(self):
        self.api.products = _catalog(25)
        self._sign_in()
        response = self.client.get("/alerts/api/warnings")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["counts"]["out-of-stock"], 1)
        self.assertEqual([warning["product_name"] for warning in body["warnings"]], ["Oat Milk"])

    def test_dashboard_summary_counts_every_product(self):
        self.api.products = _catalog(25)
        self._sign_in()
        summary = self.client.get("/dashboard/api/summary").json()
        self.assertEqual(summary["totalProducts"], 25)
        self.assertEqual(summary["lowStockCount"], 1)

    def test_dashboard_renders_category_breakdown(self):
        self._sign_in()
        response = self.client.get("/dashboard")
        self.assertEqual(response.status_code, 200)
        self.assertIn("Sales by category this month", response.text)
        self.assertIn("Beverages", response.text)

    def test_stock_search_is_sent_to_the_api(self):
        self.api.products = _catalog(25)
        self._sign_in()
        response = self.client.get("/stock", params={"search": "oat"})
        self.assertEqual(response.status_code, 200)
        self.assertIn("Oat Milk", response.text)
        self.assertEqual(self.api.product_calls[-1]["search"], "oat")
        self.assertEqual(self.api.product_calls[-1]["page"], 1)

    def test_stock_page_pages_through_products(self):
        self.api.products = _catalog(25)
        self._sign_in()
        response = self.client.get("/stock", params={"page": 2})
        self.assertEqual(response.status_code, 200)
        self.assertIn("Page 2 of 2", response.text)
        self.assertIn("Oat Milk", response.text)

    def _owned_camera(self, code="QR-9"):
        camera = CameraSession(
            device_index=0,
            libraries=FakeLibraries(code),
            capture_factory=lambda _index: FakeCapture([]),
            sleep=lambda _seconds: None,
            ready_attempts=1,
            ready_interval=0,
        )
        camera.start("https", "shop.test", owner=TOKEN)
        app.state.camera = camera
        return camera

    def test_camera_capture_found_through_code_lookup(self):
        camera = self._owned_camera("QR-9")
        self._sign_in()
        response = self.client.post("/scanner/camera/capture")
        self.assertEqual(response.status_code, 200)
        self.assertIn("Tea", response.text)
        self.assertEqual(camera.state, CameraState.PRODUCT_FOUND)

    def test_camera_stop_from_another_user_is_refused(self):
        camera = self._owned_camera()
        self._sign_in(OTHER_TOKEN)
        response = self.client.post("/scanner/camera/stop")
        self.assertEqual(response.status_code, 303)
        self.assertTrue(camera.active)

        self._sign_in(TOKEN)
        self.client.post("/scanner/camera/stop")
        self.assertFalse(camera.active)

    def test_report_download(self):
        self._sign_in()
        response = self.client.get("/reports/download", params={"report": "products", "format": "csv"})
        self.assertEqual(response.status_code, 200)
        self.assertIn("attachment;", response.headers["content-disposition"])
        self.assertIn("products-report-", response.headers["content-disposition"])
        self.assertEqual(len(response.text.split("\n")), 2)

    def test_report_unknown_kind_and_format(self):
        self._sign_in()
        self.assertEqual(self.client.get("/reports/download", params={"report": "nope"}).status_code, 404)
        response = self.client.get("/reports/download", params={"report": "products", "format": "pdf"})
        self.assertEqual(response.status_code, 400)


class ReceivedItemsTest(unittest.TestCase):
    def test_pairs_lists_and_skips_bad_counts(self):
        self.assertEqual(
            received_items(["p1", "p2", "p3", ""], ["5", "", "-1", "2"]),
            [{"product": "p1", "receivedQuantity": 5}],
        )


if __name__ == "__main__":
    unittest.main()
