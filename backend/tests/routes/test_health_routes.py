# backend/tests/routes/test_health_routes.py
"""Health and metrics endpoints."""

from fastapi import status


def test_health_reports_database(client):
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] is True
    assert data["pool"]["size"] >= 1
    assert set(data["pool"]) == {"size", "checked_in", "checked_out", "total", "overflow"}


def test_metrics_expose_http_counters(client, tutor):
    client.get(f"/api/v1/tutors/{tutor.id}/slots", params={"date": "2030-01-07"})

    response = client.get("/metrics")

    assert response.status_code == status.HTTP_200_OK
    assert "text/plain" in response.headers["content-type"]
    assert "/api/v1/tutors/:id/slots" in response.text
