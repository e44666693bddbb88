import argparse
import json
import logging
import os
import sys

from app.config import get_settings
from app.core.errors import ApiError
from app.core.logging import setup_logging
from app.services import auth_service
from app.services.api_client import unwrap
from app.services.category_service import category_listing
from app.services.inventory_api import get_inventory_api
from app.services.products_store import parse_categories, parse_products

logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="List the products of one category with their stock split.")
    parser.add_argument("category_id", help="Category id")
    parser.add_argument("--search", default=None, help="Case-insensitive match on name, brand or code.")
    parser.add_argument("--email", default=os.getenv("CONSOLE_EMAIL"), help="Login email (or CONSOLE_EMAIL).")
    parser.add_argument("--password", default=os.getenv("CONSOLE_PASSWORD"), help="Login password (or CONSOLE_PASSWORD).")
    return parser.parse_args()


def main():
    setup_logging()
    args = parse_args()
    if not args.email or not args.password:
        logger.error("Set --email/--password or CONSOLE_EMAIL/CONSOLE_PASSWORD.")
        return 2

    api = get_inventory_api()
    try:
        state = auth_service.login(args.email, args.password, api=api)
        categories = parse_categories(unwrap(api.list_categories(state.token), "categories", "data"))
        category = next((item for item in categories if item.id == args.category_id), None)
        products = []
        if category is not None:
            params = {"search": args.search, "limit": get_settings().REPORT_FETCH_LIMIT}
            payload = api.category_products(state.token, category.id, params)
            products = parse_products(unwrap(payload, "products", "data"))
    except ApiError as exc:
        logger.error("API request failed: %s", exc.message)
        return 1

    print(json.dumps(category_listing(category, products, args.search), indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
