"""
Invitation and notification API tests, ending with the full onboarding flow:
register → create company → invite → accept → build a test tree → delete.
"""

from datetime import timedelta

import pytest

from testhub.models import db
from testhub.models.invitation import CompanyInvitation
from testhub.models.soft_delete import utcnow
from testhub.services import invitation_service


@pytest.fixture()
def acme(alice, make_company):
    return make_company(alice)


def _invite(client, company_id, inviter_headers, email, role="MEMBER"):
    return client.post(f"/api/v1/companies/{company_id}/invitations",
                       json={"email": email, "role": role, "message": "Join us"},
                       headers=inviter_headers)


class TestInvitationRoutes:
    def test_invite_and_accept(self, client, acme, alice, bob, auth_headers):
        res = _invite(client, acme.id, auth_headers(alice), bob.email, "ADMIN")
        assert res.status_code == 201
        token = res.get_json()["token"]
        assert res.get_json()["status"] == "PENDING"

        pending = client.get("/api/v1/invitations/pending", headers=auth_headers(bob)).get_json()
        assert [i["token"] for i in pending] == [token]

        res = client.post(f"/api/v1/invitations/{token}/accept", headers=auth_headers(bob))
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "ACCEPTED"
        assert body["membership"]["role"] == "ADMIN"

        role = client.get(f"/api/v1/companies/{acme.id}/my-role", headers=auth_headers(bob))
        assert role.get_json()["role"] == "ADMIN"

    def test_unknown_invitee(self, client, acme, alice, auth_headers):
        res = _invite(client, acme.id, auth_headers(alice), "nobody@acme.com")
        assert res.status_code == 404

    def test_duplicate_pending(self, client, acme, alice, bob, auth_headers):
        _invite(client, acme.id, auth_headers(alice), bob.email)
        res = _invite(client, acme.id, auth_headers(alice), bob.email)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_invite_existing_member(self, client, acme, alice, auth_headers):
        res = _invite(client, acme.id, auth_headers(alice), alice.email)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_wrong_user_cannot_accept(self, client, acme, alice, bob, carol, auth_headers):
        token = _invite(client, acme.id, auth_headers(alice), bob.email).get_json()["token"]
        res = client.post(f"/api/v1/invitations/{token}/accept", headers=auth_headers(carol))
        assert res.status_code == 403

    def test_replayed_accept(self, client, acme, alice, bob, auth_headers):
        token = _invite(client, acme.id, auth_headers(alice), bob.email).get_json()["token"]
        client.post(f"/api/v1/invitations/{token}/accept", headers=auth_headers(bob))
        res = client.post(f"/api/v1/invitations/{token}/accept", headers=auth_headers(bob))
        assert res.status_code == 409

    def test_expired_accept_is_gone(self, client, acme, alice, bob, auth_headers):
        inv = invitation_service.send_invitation(
            acme.id, bob.email, "MEMBER", None, alice, now=utcnow() - timedelta(days=8),
        )
        token = inv.invitation_token
        res = client.post(f"/api/v1/invitations/{token}/accept", headers=auth_headers(bob))
        assert res.status_code == 410
        assert res.get_json()["code"] == "ERR_EXPIRED"
        db.session.expire_all()
        inv = CompanyInvitation.query.filter_by(invitation_token=token).one()
        assert inv.status == "EXPIRED"

    def test_reject(self, client, acme, alice, bob, auth_headers):
        token = _invite(client, acme.id, auth_headers(alice), bob.email).get_json()["token"]
        res = client.post(f"/api/v1/invitations/{token}/reject", headers=auth_headers(bob))
        assert res.status_code == 200
        assert res.get_json()["status"] == "REJECTED"

    def test_company_invitation_list_needs_admin(self, client, acme, alice, bob, auth_headers):
        _invite(client, acme.id, auth_headers(alice), bob.email)
        res = client.get(f"/api/v1/companies/{acme.id}/invitations", headers=auth_headers(alice))
        assert [i["invited_email"] for i in res.get_json()] == [bob.email]
        res = client.get(f"/api/v1/companies/{acme.id}/invitations", headers=auth_headers(bob))
        assert res.status_code == 403


class TestNotificationRoutes:
    def test_invitation_notification_lifecycle(self, client, acme, alice, bob, auth_headers):
        token = _invite(client, acme.id, auth_headers(alice), bob.email).get_json()["token"]

        count = client.get("/api/v1/notifications/count", headers=auth_headers(bob)).get_json()
        assert count == {"unread_count": 1}
        notes = client.get("/api/v1/notifications", headers=auth_headers(bob)).get_json()
        assert notes[0]["type"] == "COMPANY_INVITATION"
        assert token in notes[0]["action_url"]

        client.post(f"/api/v1/invitations/{token}/accept", headers=auth_headers(bob))
        assert client.get("/api/v1/notifications", headers=auth_headers(bob)).get_json() == []
        inviter = client.get("/api/v1/notifications/unread", headers=auth_headers(alice)).get_json()
        assert [n["type"] for n in inviter] == ["SYSTEM_MESSAGE"]

    def test_mark_read_and_delete(self, client, acme, alice, bob, auth_headers):
        _invite(client, acme.id, auth_headers(alice), bob.email)
        note_id = client.get("/api/v1/notifications",
                             headers=auth_headers(bob)).get_json()[0]["id"]

        assert client.put(f"/api/v1/notifications/{note_id}/read",
                          headers=auth_headers(alice)).status_code == 403
        res = client.put(f"/api/v1/notifications/{note_id}/read", headers=auth_headers(bob))
        assert res.get_json()["is_read"] is True

        res = client.delete(f"/api/v1/notifications/{note_id}", headers=auth_headers(bob))
        assert res.get_json() == {"deleted": True, "id": note_id}

    def test_read_all(self, client, acme, alice, bob, make_company, auth_headers):
        globex = make_company(alice, name="Globex")
        _invite(client, acme.id, auth_headers(alice), bob.email)
        _invite(client, globex.id, auth_headers(alice), bob.email)
        res = client.put("/api/v1/notifications/read-all", headers=auth_headers(bob))
        assert res.get_json() == {"marked_read": 2}


class TestOnboardingFlow:
    def test_end_to_end(self, client):
        def register(email):
            res = client.post("/api/v1/auth/register",
                              json={"email": email, "password": "s3cret-pass"})
            assert res.status_code == 201
            return {"Authorization": f"Bearer {res.get_json()['access_token']}"}

        owner = register("olivia@acme.com")
        tester = register("tom@acme.com")

        cid = client.post("/api/v1/companies", json={"name": "Acme"},
                          headers=owner).get_json()["id"]
        token = _invite(client, cid, owner, "tom@acme.com").get_json()["token"]
        assert client.post(f"/api/v1/invitations/{token}/accept",
                           headers=tester).status_code == 200

        base = f"/api/v1/companies/{cid}"
        pid = client.post(f"{base}/projects", json={"name": "P1"}, headers=owner).get_json()["id"]
        plid = client.post(f"{base}/projects/{pid}/platforms",
                           json={"name": "Web", "type": "WEB"}, headers=owner).get_json()["id"]
        vbase = f"{base}/projects/{pid}/platforms/{plid}/versions"
        vid = client.post(vbase, json={"version_name": "1.0"}, headers=owner).get_json()["id"]
        sbase = f"{vbase}/{vid}/test-suites"
        sid = client.post(sbase, json={"name": "Smoke"}, headers=owner).get_json()["id"]
        assert client.post(sbase, json={"name": "Smoke"}, headers=owner).status_code == 409

        # The new MEMBER writes the test content.
        fbase = f"{sbase}/{sid}/features"
        fid = client.post(fbase, json={"name": "Login"}, headers=tester).get_json()["id"]
        scbase = f"{fbase}/{fid}/scenarios"
        scid = client.post(scbase, json={"name": "Happy path"}, headers=tester).get_json()["id"]
        stbase = f"{scbase}/{scid}/steps"
        step = client.post(stbase, json={"action": "Open /login"}, headers=tester).get_json()
        assert step["step_order"] == 1
        res = client.put(f"{stbase}/{step['id']}/execution", json={"status": "PASSED"},
                         headers=tester)
        assert res.get_json()["status"] == "PASSED"

        # Only the owner can tear it down; everything below disappears.
        assert client.delete(f"{base}/projects/{pid}", headers=tester).status_code == 403
        res = client.delete(f"{base}/projects/{pid}", headers=owner)
        assert res.get_json()["cascade"] == {
            "project": 1, "platform": 1, "version": 1, "test_suite": 1,
            "test_feature": 1, "test_scenario": 1, "test_step": 1,
        }
        assert client.get(stbase, headers=tester).status_code == 404
        assert client.get(f"{base}/projects", headers=tester).get_json() == []
