"""
Tests for the health check endpoint.
"""

from unittest.mock import patch

from django.db import OperationalError
from django.urls import reverse


class TestHealthCheck:
    """Tests for core.views.health_check."""

    def test_healthy(self, db, client):
        response = client.get(reverse("health_check"))

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected"}

    def test_database_unreachable(self, db, client):
        with patch(
            "core.views.connection.cursor",
            side_effect=OperationalError("could not connect"),
        ):
            response = client.get(reverse("health_check"))

        assert response.status_code == 503
        assert response.json() == {"status": "unhealthy", "database": "disconnected"}
