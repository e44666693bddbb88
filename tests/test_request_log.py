import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database.base import Base
from app.models.request_log import RequestLog
from app.services.request_log_service import (
    masked_query,
    prune_request_logs,
    record_request,
    request_metrics,
    should_log,
)


class RequestLogServiceTest(unittest.TestCase):
    def setUp(self):
        engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
        Base.metadata.create_all(bind=engine)
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)

    def _record(self, path, status_code, duration_ms, **kwargs):
        record_request(
            method="GET",
            path=path,
            route=path,
            status_code=status_code,
            duration_ms=duration_ms,
            session_factory=self.Session,
            **kwargs,
        )

    def test_query_is_masked(self):
        self.assertEqual(masked_query("search=tea&token=abc"), "search=tea&token=%2A%2A%2AMASKED%2A%2A%2A")
        self.assertIsNone(masked_query(""))

    def test_excluded_paths(self):
        excluded = ["/static", "/health"]
        self.assertFalse(should_log("/static/console.css", excluded))
        self.assertFalse(should_log("/health", excluded))
        self.assertTrue(should_log("/healthy", excluded))
        self.assertTrue(should_log("/products", excluded))

    def test_record_and_metrics(self):
        self._record("/products", 200, 10.0, query_string="password=x")
        self._record("/products", 500, 30.0)
        self._record("/stock", 303, 5.0)

        db = self.Session()
        try:
            stored = db.execute(select(RequestLog).order_by(RequestLog.id)).scalars().first()
            self.assertEqual(stored.query_string, "password=%2A%2A%2AMASKED%2A%2A%2A")

            metrics = request_metrics(db, hours=1)
        finally:
            db.close()
        self.assertEqual(metrics["total_requests"], 3)
        self.assertEqual(metrics["error_count"], 1)
        self.assertEqual(metrics["slowest_routes"][0]["route"], "/products")
        self.assertEqual(metrics["slowest_routes"][0]["avg_ms"], 20.0)
        self.assertEqual(metrics["status_counts"], {"200": 1, "303": 1, "500": 1})

    def test_prune_removes_old_rows(self):
        db = self.Session()
        db.add(RequestLog(method="GET", path="/old", route="/old", status_code=200, duration_ms=1.0,
                          created_at=datetime.now(timezone.utc) - timedelta(days=30)))
        db.commit()
        db.close()
        self._record("/new", 200, 1.0)

        self.assertEqual(prune_request_logs(14, session_factory=self.Session), 1)
        db = self.Session()
        try:
            paths = [row.path for row in db.execute(select(RequestLog)).scalars()]
        finally:
            db.close()
        self.assertEqual(paths, ["/new"])


if __name__ == "__main__":
    unittest.main()
