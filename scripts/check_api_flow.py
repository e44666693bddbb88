import argparse
import logging
import os
import sys

from app.core.errors import ApiError
from app.core.logging import setup_logging
from app.services import auth_service
from app.services.api_client import unwrap
from app.services.inventory_api import get_inventory_api
from app.services.products_store import ProductsStore

logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Walk the main API endpoints with one login.")
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
    except ApiError as exc:
        logger.error("Login failed: %s", exc.message)
        return 1
    logger.info("Logged in as %s (%s)", state.user.email, state.user.role_name)

    store = ProductsStore(state.token, api=api)
    steps = (
        ("profile", lambda: unwrap(api.get_profile(state.token), "user", "data").get("email")),
        ("categories", lambda: len(store.fetch_categories(force=True))),
        ("products", lambda: "{} on page 1 of {}".format(len(store.fetch_products(force=True)), store.total_pages)),
        ("stock summary", lambda: sorted(unwrap(api.stock_summary_overview(state.token), "data"))),
    )
    failures = 0
    for name, step in steps:
        try:
            logger.info("%s: %s", name, step())
        except ApiError as exc:
            failures += 1
            logger.error("%s failed: %s", name, exc.message)
        except (AttributeError, TypeError) as exc:
            failures += 1
            logger.error("%s returned an unexpected shape: %s", name, exc)

    auth_service.logout(state, api=api)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
