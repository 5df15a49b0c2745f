"""
HTTP surface tests: role enforcement, status codes and problem bodies.
"""
import asyncio
import inspect
from unittest.mock import MagicMock

import httpx
from fastapi.routing import APIRoute

from leadhub.main import app
from leadhub.models.enums import AssignmentStatus
from leadhub.services.lead_lock import LeadLockService
from leadhub.services.redis_service import RedisService
from tests.factories import AssignmentFactory, LeadFactory, PartnerFactory


def commit(client, admin_headers, lead, partner):
    return client.post(
        f"/api/v1/leads/{lead.lead_id}/assignments",
        json={"partner": partner.id},
        headers=admin_headers,
    )


class TestAccessControl:

    def test_missing_actor_is_unauthorized(self, client):
        lead = LeadFactory()
        response = client.get(f"/api/v1/leads/{lead.id}")

        assert response.status_code == 401
        assert response.json()["status"] == 401

    def test_partner_cannot_use_admin_routes(self, client, partner_headers):
        lead = LeadFactory()
        partner = PartnerFactory()

        response = client.post(
            f"/api/v1/leads/{lead.id}/assignments",
            json={"partner": partner.id},
            headers=partner_headers(partner),
        )

        assert response.status_code == 403
        assert lead.partner_assignments == []

    def test_partner_cannot_read_other_partner_capacity(self, client, partner_headers):
        me, other = PartnerFactory(), PartnerFactory()
        response = client.get(f"/api/v1/partners/{other.id}/capacity", headers=partner_headers(me))
        assert response.status_code == 403

    def test_partner_cannot_accept_foreign_assignment(self, client, partner_headers):
        assignment = AssignmentFactory()
        stranger = PartnerFactory()

        response = client.post(
            f"/api/v1/leads/{assignment.lead.id}/assignments/{assignment.id}/accept",
            headers=partner_headers(stranger),
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"


class TestLeadRoutes:

    def test_get_lead(self, client, admin_headers):
        lead = LeadFactory()
        response = client.get(f"/api/v1/leads/{lead.lead_id}", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "pending"

    def test_unknown_lead_is_404(self, client, admin_headers):
        response = client.get("/api/v1/leads/MOV-000000-NONE", headers=admin_headers)

        assert response.status_code == 404
        body = response.json()
        assert body["error_code"] == "NOT_FOUND"
        assert body["type"] == "urn:leadhub:error:not_found"

    def test_commit_assignment(self, client, admin_headers, event_capture):
        lead = LeadFactory()
        partner = PartnerFactory()

        response = commit(client, admin_headers, lead, partner)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["assignment"]["partner_id"] == partner.id
        assert data["assignment"]["status"] == "pending"
        assert data["lead"]["status"] == "partial_assigned"
        assert data["capacity"]["current"] == 1
        assert data["capacity_warning"] is None
        event_capture.assert_event_emitted("lead.assignment.committed", actor="admin-1")

    def test_commit_accepts_legacy_partner_object(self, client, admin_headers):
        lead = LeadFactory()
        partner = PartnerFactory()

        response = client.post(
            f"/api/v1/leads/{lead.id}/assignments",
            json={"partner": {"_id": partner.id, "companyName": partner.company_name}},
            headers=admin_headers,
        )

        assert response.status_code == 201

    def test_duplicate_commit_is_conflict(self, client, admin_headers):
        lead = LeadFactory()
        partner = PartnerFactory()
        commit(client, admin_headers, lead, partner)

        response = commit(client, admin_headers, lead, partner)

        assert response.status_code == 409
        body = response.json()
        assert body["error_code"] == "DUPLICATE_ASSIGNMENT"
        assert body["title"] == "Duplicate Assignment"

    def test_exclusivity_violation_is_conflict(self, client, admin_headers):
        lead = LeadFactory()
        commit(client, admin_headers, lead, PartnerFactory(exclusive=True))

        response = commit(client, admin_headers, lead, PartnerFactory())

        assert response.status_code == 409
        assert response.json()["error_code"] == "EXCLUSIVITY_VIOLATION"

    def test_eligible_partners(self, client, admin_headers):
        lead = LeadFactory()
        PartnerFactory(company_name="Alpha Movers")
        PartnerFactory(company_name="Omega Movers", exclusive=True)

        response = client.get(
            f"/api/v1/leads/{lead.id}/eligible-partners",
            params={"q": "alpha"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert [c["company_name"] for c in data["basic"]] == ["Alpha Movers"]
        assert [c["company_name"] for c in data["exclusive"]] == ["Omega Movers"]
        assert [c["company_name"] for c in data["search"]] == ["Alpha Movers"]
        assert data["default_tab"] == "exclusive"

    def test_partner_accepts_then_admin_completes(self, client, admin_headers, partner_headers):
        lead = LeadFactory()
        partner = PartnerFactory()
        assignment_id = commit(client, admin_headers, lead, partner).json()["data"]["assignment"]["id"]

        accepted = client.post(
            f"/api/v1/leads/{lead.id}/assignments/{assignment_id}/accept",
            headers=partner_headers(partner),
        )
        completed = client.post(f"/api/v1/leads/{lead.id}/complete", headers=admin_headers)

        assert accepted.status_code == 200
        assert accepted.json()["data"]["status"] == "accepted"
        assert completed.status_code == 200
        assert completed.json()["data"]["status"] == "completed"
        assert completed.json()["data"]["closed_by"] == "admin-1"

    def test_reject_without_reason(self, client, admin_headers, partner_headers):
        lead = LeadFactory()
        partner = PartnerFactory()
        assignment_id = commit(client, admin_headers, lead, partner).json()["data"]["assignment"]["id"]

        response = client.post(
            f"/api/v1/leads/{lead.id}/assignments/{assignment_id}/reject",
            json={"reason": ""},
            headers=partner_headers(partner),
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"


class TestCancellationRoutes:

    def test_request_and_reject_cancellation(self, client, admin_headers, partner_headers):
        partner = PartnerFactory()
        assignment = AssignmentFactory(partner=partner, status=AssignmentStatus.ACCEPTED)
        lead_id = assignment.lead.lead_id

        requested = client.post(
            "/api/v1/cancellations",
            json={"assignment_id": assignment.id, "reason": "customer moved"},
            headers=partner_headers(partner),
        )
        assert requested.status_code == 201
        assert requested.json()["data"]["status"] == "cancellationRequested"

        listing = client.get("/api/v1/cancellations", params={"request_status": "pending"}, headers=admin_headers)
        assert listing.json()["meta"]["total"] == 1
        assert listing.json()["items"][0]["assignment_id"] == assignment.id

        rejected = client.post(
            f"/api/v1/cancellations/{lead_id}/{partner.partner_code}/reject",
            json={"reason": "job is tomorrow"},
            headers=admin_headers,
        )
        assert rejected.status_code == 200
        assert rejected.json()["data"]["cancellation_rejected"] is True

        again = client.post(
            "/api/v1/cancellations",
            json={"assignment_id": assignment.id, "reason": "please"},
            headers=partner_headers(partner),
        )
        assert again.status_code == 400
        assert again.json()["error_code"] == "INVALID_CANCELLATION_REQUEST"

    def test_approve_cancellation(self, client, admin_headers, partner_headers):
        partner = PartnerFactory()
        assignment = AssignmentFactory(partner=partner, status=AssignmentStatus.ACCEPTED)
        client.post(
            "/api/v1/cancellations",
            json={"assignment_id": assignment.id, "reason": "customer moved"},
            headers=partner_headers(partner),
        )

        response = client.post(
            f"/api/v1/cancellations/{assignment.lead.id}/{partner.id}/approve",
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"

    def test_listing_requires_admin(self, client, partner_headers):
        response = client.get("/api/v1/cancellations", headers=partner_headers(PartnerFactory()))
        assert response.status_code == 403


class TestPartnerRoutes:

    def test_own_capacity(self, client, partner_headers):
        partner = PartnerFactory(custom_leads_per_week=7)
        response = client.get(f"/api/v1/partners/{partner.id}/capacity", headers=partner_headers(partner))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["limit"] == 7
        assert data["current"] == 0
        assert data["has_capacity"] is True

    def test_admin_reads_any_capacity(self, client, admin_headers):
        partner = PartnerFactory()
        response = client.get(
            f"/api/v1/partners/{partner.partner_code}/capacity",
            params={"service_type": "moving"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["partner_id"] == partner.id


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "healthy"

    def test_metrics(self, client, admin_headers):
        client.get("/api/v1/leads/MOV-000000-NONE", headers=admin_headers)
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "lead_workflow_rejections_total" in response.text


class TestBlockingWork:

    def test_api_handlers_run_in_threadpool(self):
        handlers = [
            route.endpoint for route in app.routes
            if isinstance(route, APIRoute) and route.path.startswith("/api/v1")
        ]

        assert handlers
        assert not [h.__name__ for h in handlers if inspect.iscoroutinefunction(h)]

    def test_lock_wait_does_not_stall_event_loop(self, client, admin_headers, monkeypatch):
        redis_client = MagicMock()
        redis_client.set.return_value = None
        busy_locks = LeadLockService(
            redis_service=RedisService(client=redis_client),
            wait_seconds=0.3,
            retry_delay=0.05,
        )
        monkeypatch.setattr("leadhub.services.lead_workflow.get_lead_lock_service", lambda: busy_locks)
        lead = LeadFactory()
        partner = PartnerFactory()

        async def commit_while_ticking():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
                request = asyncio.ensure_future(http.post(
                    f"/api/v1/leads/{lead.id}/assignments",
                    json={"partner": partner.id},
                    headers=admin_headers,
                ))
                ticks = 0
                while not request.done():
                    await asyncio.sleep(0.01)
                    ticks += 1
                return await request, ticks

        response, ticks = asyncio.run(commit_while_ticking())

        assert response.status_code == 503
        assert response.json()["error_code"] == "UNAVAILABLE"
        assert ticks >= 5
