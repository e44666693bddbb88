import unittest

from app.schemas.category import CategoryRead
from app.schemas.product import ProductRead
from app.services.category_service import build_tree, category_listing, flatten_tree, reorder_payload


def _category(category_id, name, parent=None, sort_order=0, product_count=0):
    return CategoryRead.model_validate(
        {"_id": category_id, "name": name, "parent": parent, "sortOrder": sort_order, "productCount": product_count}
    )


class CategoryTreeTest(unittest.TestCase):
    def test_nesting_and_order(self):
        categories = [
            _category("c2", "Drinks", sort_order=1),
            _category("c1", "Food", sort_order=0, product_count=2),
            _category("c3", "Snacks", parent="c1", product_count=3),
            _category("c4", "Tea", parent={"_id": "c2", "name": "Drinks"}),
        ]
        tree = build_tree(categories)
        self.assertEqual([node.category.name for node in tree], ["Food", "Drinks"])
        self.assertEqual(tree[0].children[0].category.name, "Snacks")
        self.assertEqual(tree[0].total_products, 5)
        flat = flatten_tree(tree)
        self.assertEqual([(node.category.id, node.depth) for node in flat], [("c1", 0), ("c3", 1), ("c2", 0), ("c4", 1)])

    def test_unknown_parent_becomes_root(self):
        tree = build_tree([_category("c1", "Lonely", parent="missing")])
        self.assertEqual(len(tree), 1)

    def test_cycle_is_broken(self):
        tree = build_tree([_category("a", "A", parent="b"), _category("b", "B", parent="a")])
        names = sorted(node.category.name for node in flatten_tree(tree))
        self.assertEqual(names, ["A", "B"])

    def test_reorder_payload(self):
        self.assertEqual(
            reorder_payload(["c2", "c1"]),
            [{"id": "c2", "sortOrder": 0}, {"id": "c1", "sortOrder": 1}],
        )


class CategoryListingTest(unittest.TestCase):
    def test_missing_category(self):
        self.assertEqual(category_listing(None, []), {"success": False, "message": "Category not found"})

    def test_listing_filters_and_projects_stock(self):
        products = [
            ProductRead.model_validate(
                {"_id": "p1", "name": "Green Tea", "brand": "Leaf", "qrCode": "GT-1", "price": 5, "stock": {"godown": 4, "store": 6}}
            ),
            ProductRead.model_validate({"_id": "p2", "name": "Coffee", "brand": "Bean", "qrCode": "CF-1", "price": 9}),
        ]
        listing = category_listing(_category("c1", "Drinks"), products, search="leaf")
        self.assertTrue(listing["success"])
        self.assertEqual(listing["count"], 1)
        self.assertEqual(listing["products"][0]["stock"], {"godown": 4, "store": 6, "total": 10, "reserved": 0})


if __name__ == "__main__":
    unittest.main()
