"""
Tests for Admin API endpoints
"""

from httpx import AsyncClient
from sqlmodel import select

import lifecycle
from conftest import act_as, make_ngo
from lifecycle import Actor
from models import Donation, Notification, PaymentStatus, Profile, VerificationStatus


class TestAdminAccess:

    async def test_non_admin_is_forbidden(self, client: AsyncClient, donor, ngo):
        for profile in (donor, ngo):
            act_as(client, profile)
            assert (await client.get("/admin/ngos")).status_code == 403

    async def test_requires_login(self, client: AsyncClient):
        assert (await client.get("/admin/revenue")).status_code == 401


class TestVerificationReview:

    async def test_pending_first(self, client: AsyncClient, session, admin, ngo):
        waiting = make_ngo(
            session,
            "waiting@hopecycle.org",
            active=False,
            verification_status=VerificationStatus.PENDING,
        )
        act_as(client, admin)

        ngos = (await client.get("/admin/ngos")).json()
        queue = (await client.get("/admin/verifications")).json()

        assert [n["id"] for n in ngos] == [waiting.id, ngo.id]
        assert [n["id"] for n in queue] == [waiting.id]
        assert "certificate_number" in queue[0]

    async def test_reject_notifies(self, client: AsyncClient, session, admin):
        waiting = make_ngo(
            session,
            "waiting@hopecycle.org",
            active=False,
            verification_status=VerificationStatus.PENDING,
        )
        act_as(client, admin)

        response = await client.post(f"/admin/ngos/{waiting.id}/reject")

        assert response.status_code == 200
        assert response.json()["verification_status"] == "REJECTED"
        note = session.exec(select(Notification).where(Notification.user_id == waiting.id)).one()
        assert note.title == "Application Rejected"

    async def test_only_pending_applications_are_decided(self, client: AsyncClient, admin, ngo, donor):
        act_as(client, admin)

        assert (await client.post(f"/admin/ngos/{ngo.id}/approve")).status_code == 409
        assert (await client.post(f"/admin/ngos/{donor.id}/approve")).status_code == 404


class TestRevenue:

    async def test_revenue_stats(self, client: AsyncClient, session, admin, donor, ngo, other_ngo):
        make_ngo(
            session,
            "approved@hopecycle.org",
            active=False,
            verification_status=VerificationStatus.APPROVED,
            payment_status=PaymentStatus.UNPAID,
        )
        act_as(client, admin)

        data = (await client.get("/admin/revenue")).json()

        assert data["total_revenue"] == 998
        assert data["active_subscribers"] == 2
        assert data["pending_payments"] == 1
        assert data["pending_revenue"] == 499
        assert data["total_users"] == 4
        assert data["growth_rate"] == 67
        assert len(data["history"]["labels"]) == 6
        assert data["history"]["subscribers"][-1] == 2


class TestDonationsOverview:

    async def test_views(self, client: AsyncClient, session, admin, donor, ngo):
        donor_actor, ngo_actor = Actor(profile=donor), Actor(profile=ngo)
        done = lifecycle.create_donation(session, donor_actor, {"title": "Done", "category": "Other"})
        lifecycle.create_donation(session, donor_actor, {"title": "Open", "category": "Other"})
        interest = lifecycle.submit_interest(session, ngo_actor, done.id)
        lifecycle.accept_interest(session, donor_actor, done.id, interest.id)
        lifecycle.complete_pickup(session, ngo_actor, done.id)
        act_as(client, admin)

        everything = (await client.get("/admin/donations")).json()
        active = (await client.get("/admin/donations", params={"view": "active"})).json()
        completed = (await client.get("/admin/donations", params={"view": "completed"})).json()

        assert len(everything) == 2
        assert [d["title"] for d in active] == ["Open"]
        assert [d["title"] for d in completed] == ["Done"]


class TestRemoveDonor:

    async def test_removes_donor_and_their_items(self, client: AsyncClient, session, admin, donor):
        donor_id = donor.id
        lifecycle.create_donation(session, Actor(profile=donor), {"title": "Lamp", "category": "Other"})
        act_as(client, admin)

        response = await client.delete(f"/admin/donors/{donor_id}")

        assert response.status_code == 204
        assert session.get(Profile, donor_id) is None
        assert session.exec(select(Donation)).all() == []

    async def test_only_donors(self, client: AsyncClient, admin, ngo):
        act_as(client, admin)
        assert (await client.delete(f"/admin/donors/{ngo.id}")).status_code == 400

    async def test_refused_mid_pickup(self, client: AsyncClient, session, admin, donor, ngo):
        donor_actor = Actor(profile=donor)
        donation = lifecycle.create_donation(session, donor_actor, {"title": "Lamp", "category": "Other"})
        interest = lifecycle.submit_interest(session, Actor(profile=ngo), donation.id)
        lifecycle.accept_interest(session, donor_actor, donation.id, interest.id)
        act_as(client, admin)

        response = await client.delete(f"/admin/donors/{donor.id}")

        assert response.status_code == 400
