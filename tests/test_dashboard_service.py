import math
import unittest

from app.core.errors import ApiError, NotFoundError, ServerError, SessionExpiredError
from app.schemas.category import CategoryRead
from app.services.dashboard_service import build_dashboard, category_performance_rows, sales_trend_points
from app.services.products_store import ProductsStore


def _catalog(size):
    products = [
        {"_id": "p{}".format(index), "name": "Item {}".format(index), "qrCode": "QR-{}".format(index), "price": 2, "quantity": 50}
        for index in range(1, size + 1)
    ]
    products[-1].update(name="Oat Milk", quantity=0)
    return products


class FakeDashboardApi:
    def __init__(self, products=None, failing=()):
        self.products = products if products is not None else _catalog(3)
        self.failing = dict(failing)
        self.analytics = {}
        self.trend_calls = []

    def _maybe_fail(self, name):
        if name in self.failing:
            raise self.failing[name]

    def list_products(self, token, params=None):
        params = params or {}
        page = int(params.get("page", 1))
        limit = int(params.get("limit", 20))
        return {
            "data": self.products[(page - 1) * limit:page * limit],
            "pagination": {
                "currentPage": page,
                "totalPages": max(1, math.ceil(len(self.products) / limit)),
                "totalItems": len(self.products),
            },
        }

    def list_categories(self, token, include_products=False):
        self._maybe_fail("list_categories")
        return {"data": [{"_id": "c1", "name": "Beverages"}]}

    def dashboard_analytics(self, token):
        self._maybe_fail("dashboard_analytics")
        return self.analytics

    def today_sales(self, token):
        self._maybe_fail("today_sales")
        return {"data": {"totalQuantitySold": 4, "totalSalesValue": 18.5}}

    def recent_activities(self, token, limit=50):
        self._maybe_fail("recent_activities")
        return {"activities": [{"_id": "m1", "action": "REDUCE_STOCK", "change": -2, "reason": "Sale"}, "junk"]}

    def category_performance(self, token, params=None):
        self._maybe_fail("category_performance")
        return {
            "period": "month",
            "categories": [
                {
                    "category": "c1",
                    "sales": {"quantitySold": 3, "salesValue": 12.5, "transactions": 2},
                    "inventory": {"totalStockValue": 40, "productCount": 2},
                }
            ],
        }

    def sales_trend(self, token, period="daily", days=30):
        self.trend_calls.append((period, days))
        return {"data": [{"_id": "2024-05-01", "totalSales": 12}]}


def _dashboard(api):
    return build_dashboard(api, "tok", ProductsStore("tok", api=api))


class BuildDashboardTest(unittest.TestCase):
    def test_failing_panels_fall_back_to_empty(self):
        api = FakeDashboardApi(
            failing={
                "dashboard_analytics": ServerError(),
                "today_sales": ApiError("No sales", status_code=400),
                "recent_activities": NotFoundError(),
                "category_performance": ServerError(),
            }
        )
        data = _dashboard(api)
        self.assertEqual(data["summary"]["totalProducts"], 3)
        self.assertEqual(data["sales"]["daily"], {"totalQuantitySold": 0, "totalSalesValue": 0, "transactions": 0})
        self.assertIsNone(data["today"])
        self.assertEqual(data["activities"], [])
        self.assertEqual(data["category_performance"], [])
        self.assertEqual(data["top_products"], [])

    def test_session_expiry_is_not_swallowed(self):
        api = FakeDashboardApi(failing={"recent_activities": SessionExpiredError(status_code=401)})
        with self.assertRaises(SessionExpiredError):
            _dashboard(api)

    def test_analytics_summary_is_used_when_present(self):
        api = FakeDashboardApi()
        api.analytics = {
            "summary": {"totalProducts": 99, "lowStockCount": 7},
            "sales": {"daily": {"totalQuantitySold": 3, "totalSalesValue": 9, "transactions": 1}},
            "topProducts": [{"name": "Tea", "totalSold": 3}],
        }
        data = _dashboard(api)
        self.assertEqual(data["summary"]["totalProducts"], 99)
        self.assertEqual(data["sales"]["daily"]["totalQuantitySold"], 3)
        self.assertEqual(data["sales"]["weekly"]["transactions"], 0)
        self.assertEqual(data["top_products"], [{"name": "Tea", "totalSold": 3}])
        self.assertEqual(data["today"]["totalSalesValue"], 18.5)

    def test_local_summary_and_warnings_span_every_page(self):
        api = FakeDashboardApi(products=_catalog(130))
        data = _dashboard(api)
        self.assertEqual(data["summary"]["totalProducts"], 130)
        self.assertEqual(data["summary"]["lowStockCount"], 1)
        self.assertEqual([warning.product_name for warning in data["warnings"]], ["Oat Milk"])

    def test_recent_activity_and_category_breakdown(self):
        data = _dashboard(FakeDashboardApi())
        self.assertEqual([activity.id for activity in data["activities"]], ["m1"])
        self.assertEqual(data["activities"][0].type, "REDUCE_STOCK")
        self.assertEqual(data["category_performance"][0]["category"], "Beverages")
        self.assertEqual(data["category_performance"][0]["sales_value"], 12.5)

    def test_category_names_unavailable_keeps_ids(self):
        data = _dashboard(FakeDashboardApi(failing={"list_categories": ServerError()}))
        self.assertEqual(data["category_performance"][0]["category"], "c1")


class CategoryPerformanceRowsTest(unittest.TestCase):
    def test_rows(self):
        payload = {
            "categories": [
                {"category": "c1", "sales": {"quantitySold": 2}, "inventory": {"productCount": 4}},
                {"category": None, "sales": {}, "inventory": {}},
                "junk",
            ]
        }
        rows = category_performance_rows(payload, [CategoryRead.model_validate({"_id": "c1", "name": "Dairy"})])
        self.assertEqual([row["category"] for row in rows], ["Dairy", "Uncategorized"])
        self.assertEqual(rows[0]["quantity_sold"], 2)
        self.assertEqual(rows[0]["product_count"], 4)
        self.assertEqual(rows[1]["sales_value"], 0)

    def test_missing_payload(self):
        self.assertEqual(category_performance_rows(None), [])


class SalesTrendTest(unittest.TestCase):
    def test_points_and_params(self):
        api = FakeDashboardApi()
        self.assertEqual(sales_trend_points(api, "tok", period="weekly", days=14), [{"_id": "2024-05-01", "totalSales": 12}])
        self.assertEqual(api.trend_calls, [("weekly", 14)])

    def test_non_list_payload_is_empty(self):
        api = FakeDashboardApi()
        api.sales_trend = lambda token, period="daily", days=30: {"data": {"unexpected": True}}
        self.assertEqual(sales_trend_points(api, "tok"), [])


if __name__ == "__main__":
    unittest.main()
