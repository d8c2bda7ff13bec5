"""
Health check endpoint tests.
"""


async def test_health_endpoint(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "coachpay"}


async def test_readiness_reports_pending_backlog(client):
    response = await client.get("/api/health/ready")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ready"
    assert body["pending_manual_leads"] == 0
    assert body["payout_scheduler"] == "stopped"


async def test_liveness(client):
    response = await client.get("/api/health/live")
    assert response.json() == {"status": "alive"}
