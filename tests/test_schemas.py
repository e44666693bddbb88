import unittest
from datetime import datetime

from app.schemas.product import Pagination, ProductRead
from app.schemas.user import UserRead


class ProductReadTest(unittest.TestCase):
    def test_total_falls_back_to_quantity(self):
        self.assertEqual(ProductRead.model_validate({"_id": "1", "quantity": 7}).stock_total, 7)
        self.assertEqual(ProductRead.model_validate({"_id": "1", "quantity": 7, "stock": {"total": 9}}).stock_total, 9)
        self.assertEqual(ProductRead.model_validate({"_id": "1"}).stock_total, 0)

    def test_plain_id_and_category_shapes(self):
        product = ProductRead.model_validate({"id": "p1", "category": {"_id": "c1", "name": "Tea"}})
        self.assertEqual(product.id, "p1")
        self.assertEqual((product.category_id, product.category_name), ("c1", "Tea"))
        self.assertEqual(ProductRead.model_validate({"category": "c9"}).category_id, "c9")

    def test_expiry_helpers(self):
        now = datetime(2024, 5, 1, 12, 0)
        product = ProductRead.model_validate({"expirationDate": "2024-05-05"})
        self.assertEqual(product.days_until_expiry(now), 4)
        self.assertTrue(product.is_expiring_soon(7, now))
        self.assertFalse(product.is_expired(now))
        self.assertTrue(ProductRead.model_validate({"expirationDate": "2024-04-01"}).is_expired(now))
        self.assertIsNone(ProductRead.model_validate({}).days_until_expiry(now))

    def test_with_quantity_keeps_godown(self):
        product = ProductRead.model_validate({"quantity": 10, "stock": {"godown": 4, "store": 6, "total": 10}})
        updated = product.with_quantity(7)
        self.assertEqual((updated.godown_quantity, updated.store_quantity, updated.stock_total), (4, 3, 7))

    def test_pagination_aliases(self):
        meta = Pagination.model_validate({"page": 3, "pages": 4, "total": 70})
        self.assertEqual((meta.current_page, meta.total_pages, meta.total_items), (3, 4, 70))


class UserReadTest(unittest.TestCase):
    def test_role_and_subscription(self):
        user = UserRead.model_validate(
            {"_id": "u1", "role": {"name": "Admin"}, "organization": {"_id": "o1", "subscription": {"status": "trial"}}}
        )
        self.assertTrue(user.is_admin)
        self.assertEqual(user.subscription_status, "trial")
        self.assertEqual(user.shop_id, "o1")
        self.assertEqual(UserRead.model_validate({"shop": {"_id": "s1"}}).shop_id, "s1")


if __name__ == "__main__":
    unittest.main()
