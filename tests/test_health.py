"""
Tests for health check endpoints and the global exception handlers.
"""

from contextlib import contextmanager
from unittest.mock import Mock, patch

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from inkpost.main import app


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_root_health_check_healthy(self, client):
        """Test root health endpoint when the database answers."""
        with patch("inkpost.routes.health.check_database_health") as mock_db:
            mock_db.return_value = {"status": "ok"}

            response = client.get("/health/")

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "ok"
            assert data["db"]["status"] == "ok"
            assert "version" in data
            assert "timestamp" in data

    def test_root_health_check_db_down(self, client):
        """Test health endpoint when database is down."""
        with patch("inkpost.routes.health.check_database_health") as mock_db:
            mock_db.return_value = {"status": "down", "error": "Connection failed"}

            response = client.get("/health/")

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "down"
            assert data["db"]["status"] == "down"
            assert "error" in data["db"]

    def test_database_health_detailed(self, client):
        """Test detailed database health check with table counts."""
        with patch("inkpost.routes.health.check_database_health") as mock_health_check, \
             patch("inkpost.routes.health.get_session") as mock_session:

            mock_health_check.return_value = {"status": "ok"}

            mock_db = Mock()
            results = []
            for count in (100, 50, 25, 10):
                result = Mock()
                result.scalar.return_value = count
                results.append(result)
            mock_db.execute.side_effect = results
            mock_session.return_value.__enter__.return_value = mock_db

            response = client.get("/health/db")

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "ok"
            assert data["tables"] == {"users": 100, "posts": 50, "tags": 25, "comments": 10}

    def test_database_health_against_real_schema(self, client, session_factory, create_user):
        """Row counts come from the live tables."""
        create_user()
        create_user()

        @contextmanager
        def test_session():
            session = session_factory()
            try:
                yield session
                session.commit()
            finally:
                session.close()

        with patch("inkpost.routes.health.get_session", test_session):
            response = client.get("/health/db")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["tables"]["users"] == 2
        assert data["tables"]["posts"] == 0

    def test_database_health_connection_error(self, client):
        """Test database health when connection fails."""
        with patch("inkpost.routes.health.check_database_health") as mock_health_check:
            mock_health_check.return_value = {"status": "down", "error": "Connection failed"}

            response = client.get("/health/db")

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "down"
            assert "tables" not in data

    def test_check_database_health_reports_error_class(self):
        """A failing connection is reported, not raised."""
        from inkpost.routes.health import check_database_health

        with patch("inkpost.routes.health.get_session") as mock_session:
            mock_session.return_value.__enter__.side_effect = OperationalError("SELECT 1", {}, Exception("refused"))
            result = check_database_health()

        assert result["status"] == "down"
        assert result["error"] == "Database error: OperationalError"


class TestExceptionHandlers:
    """Test global exception handlers."""

    def test_sqlalchemy_exception_handler(self, client):
        """Database failures surface as a generic 500 body."""
        with patch("inkpost.routes.health.check_database_health") as mock_check:
            mock_check.side_effect = SQLAlchemyError("Database connection failed")

            response = client.get("/health/db")

            assert response.status_code == 500
            assert response.json() == {"error": "Database operation failed"}

    def test_general_exception_handler(self):
        """Unexpected errors become a 500 with no internals leaked."""
        client = TestClient(app, raise_server_exceptions=False)
        with patch("inkpost.routes.health.check_database_health") as mock_check:
            mock_check.side_effect = RuntimeError("boom")

            response = client.get("/health/")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_unknown_route_uses_error_body(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert "error" in response.json()

    def test_validation_errors_are_bad_requests(self, client):
        """Malformed query parameters map to 400."""
        response = client.get("/posts", params={"page": 0})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
