import unittest
from datetime import datetime

from app.schemas.product import ProductRead
from app.services.alerts_service import parse_alerts, product_warnings, summarize_warnings


class ProductWarningsTest(unittest.TestCase):
    def test_stock_and_expiry_warnings(self):
        now = datetime(2024, 5, 1, 12, 0)
        products = [
            ProductRead.model_validate({"_id": "1", "name": "Milk", "quantity": 0, "expirationDate": "2024-04-29"}),
            ProductRead.model_validate({"_id": "2", "name": "Bread", "quantity": 3, "expirationDate": "2024-05-03"}),
            ProductRead.model_validate({"_id": "3", "name": "Salt", "quantity": 100}),
        ]
        warnings = product_warnings(products, now=now)
        kinds = [(warning.product_name, warning.kind) for warning in warnings]
        self.assertEqual(kinds[:2], [("Milk", "out-of-stock"), ("Milk", "expired")])
        self.assertIn(("Bread", "low-stock"), kinds)
        self.assertIn(("Bread", "expiring-soon"), kinds)
        self.assertNotIn("Salt", [name for name, _kind in kinds])
        self.assertEqual(
            summarize_warnings(warnings),
            {"out-of-stock": 1, "low-stock": 1, "expired": 1, "expiring-soon": 1},
        )


class ParseAlertsTest(unittest.TestCase):
    def test_accepts_envelopes_and_aliases(self):
        payload = {
            "data": {
                "alerts": [
                    {"id": "a1", "type": "low_stock", "severity": "high", "productId": {"name": "Tea"}},
                    {"_id": "a2", "title": "Expired", "isRead": True},
                ]
            }
        }
        alerts = parse_alerts(payload)
        self.assertEqual([alert.id for alert in alerts], ["a1", "a2"])
        self.assertEqual(alerts[0].severity, "high")
        self.assertEqual(alerts[0].product_name, "Tea")
        self.assertTrue(alerts[1].is_read)


if __name__ == "__main__":
    unittest.main()
