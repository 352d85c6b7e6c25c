"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Exercises the HTTP surface against an in-memory store and a fake Discord
client:

- Auth guards (anonymous, user, admin, super-admin, banned)
- Error rendering (service errors, cooldown headers, body validation)
- End-to-end listing flow: submit → approve → list → bump → review → delete
"""

from __future__ import annotations

import logging

import pytest
from conftest import (
    ADMIN_ID,
    GUILD_ID,
    GUILD_INVITE,
    OWNER_ID,
    SUPER_ADMIN_ID,
    USER_ID,
    auth,
)

from lunarwave.constants import MINUTE_MS, now_ms


def _submit(client, owner=OWNER_ID, **overrides):
    body = {
        "id": GUILD_ID,
        "invite": GUILD_INVITE,
        "description": "A cosy place to chat",
        "tags": ["Gaming"],
        "nsfw": False,
    }
    body.update(overrides)
    return client.post("/api/submit", json=body, headers=auth(owner))


def _approved(client):
    assert _submit(client).status_code == 200
    assert client.post(f"/api/approve/{GUILD_ID}", headers=auth(ADMIN_ID)).status_code == 200


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Auth guards
# ===========================================================================
class TestAuthGuards:
    ADMIN_ENDPOINTS = [
        ("get", "/api/pending"),
        ("get", "/api/reports"),
        ("get", "/api/admins"),
        ("get", "/api/admin/banned/servers"),
        ("get", "/api/admin/banned/users"),
        ("post", f"/api/approve/{GUILD_ID}"),
        ("post", f"/api/admin/sponsor/{GUILD_ID}"),
        ("post", f"/api/admin/verify/{GUILD_ID}"),
    ]

    SUPER_ADMIN_ENDPOINTS = [
        ("post", "/api/admin/add"),
        ("post", "/api/admin/remove"),
        ("post", f"/api/admin/ban/user/{USER_ID}"),
        ("delete", f"/api/admin/unban/user/{USER_ID}"),
        ("delete", f"/api/admin/server/delete/{GUILD_ID}"),
        ("get", "/api/admin/logs"),
    ]

    LOGIN_ENDPOINTS = [
        ("get", "/api/myservers"),
        ("get", "/api/inbox/messages"),
        ("get", "/api/auth/guilds"),
        ("delete", "/api/profiles/delete"),
        ("post", f"/api/server/{GUILD_ID}/review"),
    ]

    @pytest.mark.parametrize("method, endpoint", ADMIN_ENDPOINTS + SUPER_ADMIN_ENDPOINTS)
    def test_regular_user_is_forbidden(self, client, method, endpoint):
        resp = client.request(method, endpoint, headers=auth(USER_ID), json={})
        assert resp.status_code == 403

    @pytest.mark.parametrize("method, endpoint", SUPER_ADMIN_ENDPOINTS)
    def test_admin_is_not_super_admin(self, client, method, endpoint):
        resp = client.request(method, endpoint, headers=auth(ADMIN_ID), json={})
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Super-admin only"

    @pytest.mark.parametrize("method, endpoint", LOGIN_ENDPOINTS)
    def test_anonymous_needs_login(self, client, method, endpoint):
        resp = client.request(method, endpoint, json={})
        assert resp.status_code == 401

    def test_invalid_token(self, client):
        resp = client.get("/api/myservers", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_non_bearer_header(self, client):
        resp = client.get("/api/myservers", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401

    def test_super_admin_passes_admin_guard(self, client):
        assert client.get("/api/pending", headers=auth(SUPER_ADMIN_ID)).status_code == 200


class TestBannedUser:
    @pytest.fixture(autouse=True)
    def _ban(self, store):
        store.save("banned_users", {USER_ID: {"reason": "spam", "banned_by": SUPER_ADMIN_ID, "timestamp": 1}})

    def test_blocked_with_notice(self, client):
        resp = client.get("/api/servers", headers=auth(USER_ID))
        assert resp.status_code == 403
        assert resp.json()["detail"] == {
            "error": "banned",
            "message": "You have been banned from Lunarwave.",
            "reason": "spam",
        }

    def test_me_reports_ban(self, client):
        body = client.get("/api/auth/me", headers=auth(USER_ID)).json()
        assert body["logged_in"] is True
        assert body["is_banned"] is True
        assert body["ban_reason"] == "spam"
        assert body["is_admin"] is False


# ===========================================================================
# Identity
# ===========================================================================
class TestMe:
    def test_anonymous(self, client):
        assert client.get("/api/auth/me").json() == {"logged_in": False}

    def test_roles(self, client):
        body = client.get("/api/auth/me", headers=auth(SUPER_ADMIN_ID, global_name="Boss")).json()
        assert body["user"]["display_name"] == "Boss"
        assert body["is_admin"] is True
        assert body["is_super_admin"] is True

    def test_guilds_from_token(self, client):
        guilds = [{"id": GUILD_ID, "name": "Lunar Lounge", "icon": None}]
        resp = client.get("/api/auth/guilds", headers=auth(OWNER_ID, guilds=guilds))
        assert resp.json() == guilds


class TestOAuth:
    @pytest.fixture
    def oauth_env(self, monkeypatch):
        monkeypatch.setenv("DISCORD_CLIENT_ID", "client")
        monkeypatch.setenv("DISCORD_CLIENT_SECRET", "secret")
        monkeypatch.setenv("DISCORD_REDIRECT_URI", "http://api.test/api/auth/callback")
        monkeypatch.setenv("FRONTEND_URL", "http://front.test")

    def test_unconfigured_login_is_500(self, client, monkeypatch):
        monkeypatch.delenv("DISCORD_CLIENT_ID", raising=False)
        resp = client.get("/api/auth/login", follow_redirects=False)
        assert resp.status_code == 500
        assert "DISCORD_CLIENT_ID" in resp.json()["detail"]

    def test_login_stores_state(self, client, store, oauth_env):
        resp = client.get("/api/auth/login?redirect=/servers", follow_redirects=False)
        assert resp.status_code == 307
        assert resp.headers["location"].startswith("https://discord.com/oauth2/authorize?")
        states = store.load("oauth_states")
        assert [s["return_to"] for s in states.values()] == ["/servers"]

    def test_login_ignores_offsite_redirect(self, client, store, oauth_env):
        client.get("/api/auth/login?redirect=//evil.test", follow_redirects=False)
        assert [s["return_to"] for s in store.load("oauth_states").values()] == [None]

    def test_callback_rejects_unknown_state(self, client, oauth_env):
        resp = client.get("/api/auth/callback?code=abc&state=forged", follow_redirects=False)
        assert resp.status_code == 400


# ===========================================================================
# Error rendering
# ===========================================================================
class TestErrorRendering:
    def test_service_error_shape(self, client):
        resp = client.get("/api/profile/nobody")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Profile not found"}

    def test_body_validation_is_400(self, client):
        resp = client.post(
            "/api/giveaways/create",
            json={"name": "x", "description": "y", "duration_ms": "soon"},
            headers=auth(ADMIN_ID),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid request."

    def test_upstream_status_passes_through(self, client):
        resp = client.get("/api/bot/unknown-guild")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Unknown Guild"


# ===========================================================================
# Listing flow
# ===========================================================================
class TestListingFlow:
    def test_submit_approve_list(self, client):
        assert _submit(client).json()["success"] is True
        pending = client.get("/api/pending", headers=auth(ADMIN_ID)).json()
        assert [s["id"] for s in pending] == [GUILD_ID]

        assert client.post(f"/api/approve/{GUILD_ID}", headers=auth(ADMIN_ID)).status_code == 200
        listed = client.get("/api/servers").json()
        assert [s["id"] for s in listed] == [GUILD_ID]
        assert listed[0]["tags"] == ["gaming"]

        mine = client.get("/api/myservers", headers=auth(OWNER_ID)).json()
        assert [s["id"] for s in mine] == [GUILD_ID]

    def test_duplicate_submission_conflicts(self, client):
        _submit(client)
        resp = _submit(client)
        assert resp.status_code == 409
        assert resp.json()["detail"] == "This server is already added or pending approval."

    def test_bump_cooldown_response(self, client, store):
        _approved(client)
        store.save("last_bumps", {GUILD_ID: now_ms() - 30 * MINUTE_MS - 30_000})

        resp = client.post(f"/api/bump/{GUILD_ID}")
        assert resp.status_code == 429
        body = resp.json()
        assert body["remaining_minutes"] == 89
        assert body["detail"].startswith("Please wait 1h 29m")
        assert int(resp.headers["Retry-After"]) == body["retry_after"]

    def test_bump_after_cooldown(self, client, store):
        _approved(client)
        store.save("last_bumps", {GUILD_ID: now_ms() - 3 * 60 * MINUTE_MS})
        resp = client.post(f"/api/bump/{GUILD_ID}")
        assert resp.status_code == 200
        assert store.load("last_bumps")[GUILD_ID] == resp.json()["last_bump"]

    def test_reviews(self, client):
        _approved(client)
        for user_id, rating in ((USER_ID, 3), (ADMIN_ID, 4), (OWNER_ID, 5)):
            resp = client.post(
                f"/api/server/{GUILD_ID}/review", json={"rating": rating}, headers=auth(user_id)
            )
        assert resp.json() == {"success": True, "average_rating": 4.0, "total_reviews": 3}
        assert client.get(f"/api/server/{GUILD_ID}/myreview", headers=auth(USER_ID)).json() == {"rating": 3}
        assert client.get(f"/api/server/{GUILD_ID}/myreview").json() == {"rating": 0}
        assert set(client.get(f"/api/server/{GUILD_ID}/reviews").json()) == {USER_ID, ADMIN_ID, OWNER_ID}

    def test_owner_edit(self, client):
        _approved(client)
        resp = client.put(
            f"/api/server/{GUILD_ID}", json={"description": "Updated"}, headers=auth(OWNER_ID)
        )
        assert resp.status_code == 200
        assert client.get(f"/api/server-page/{GUILD_ID}").json()["server_info"]["description"] == "Updated"

    def test_owner_delete_cascades(self, client, store):
        _approved(client)
        client.post(f"/api/server/{GUILD_ID}/review", json={"rating": 5}, headers=auth(USER_ID))
        resp = client.delete(f"/api/myserver/delete/{GUILD_ID}", headers=auth(OWNER_ID))
        assert resp.status_code == 200
        assert GUILD_ID not in store.load("reviews")
        assert GUILD_ID not in store.load("last_bumps")
        assert GUILD_ID not in store.load("server_pages")

    def test_server_page_edit(self, client):
        _approved(client)
        elements = [{"type": "heading", "text": "Welcome"}]
        resp = client.post(
            f"/api/server-page/{GUILD_ID}/save", json={"elements": elements}, headers=auth(OWNER_ID)
        )
        assert resp.status_code == 200
        page = client.get(f"/api/server-page/{GUILD_ID}").json()
        assert page["page_data"] == {"elements": elements}

        resp = client.post(
            f"/api/server-page/{GUILD_ID}/save", json={"elements": []}, headers=auth(USER_ID)
        )
        assert resp.status_code == 403

    def test_report(self, client, store):
        _approved(client)
        resp = client.post(
            f"/api/server/{GUILD_ID}/report", json={"reason": "scam"}, headers=auth(USER_ID)
        )
        assert resp.status_code == 200
        reports = client.get("/api/reports", headers=auth(ADMIN_ID)).json()
        assert reports[0]["id"] == resp.json()["id"]

    def test_bot_presence(self, client):
        resp = client.get(f"/api/bot/{GUILD_ID}")
        assert resp.json()["added"] is True


# ===========================================================================
# Moderation
# ===========================================================================
class TestModeration:
    def test_banned_server_hidden_but_listed_for_admins(self, client):
        _approved(client)
        resp = client.post(
            f"/api/admin/ban/server/{GUILD_ID}", json={"reason": "raids"}, headers=auth(ADMIN_ID)
        )
        assert resp.status_code == 200
        assert client.get("/api/servers").json() == []
        assert GUILD_ID in client.get("/api/admin/banned/servers", headers=auth(ADMIN_ID)).json()
        assert client.get(f"/api/server-page/{GUILD_ID}").status_code == 403

        resp = client.post(
            f"/api/admin/ban/server/{GUILD_ID}", json={"reason": "again"}, headers=auth(ADMIN_ID)
        )
        assert resp.status_code == 409

        client.delete(f"/api/admin/unban/server/{GUILD_ID}", headers=auth(ADMIN_ID))
        assert len(client.get("/api/servers").json()) == 1

    def test_ban_requires_reason(self, client):
        resp = client.post(f"/api/admin/ban/server/{GUILD_ID}", json={}, headers=auth(ADMIN_ID))
        assert resp.status_code == 400

    def test_sponsor_and_verify_flags(self, client):
        _approved(client)
        client.post(f"/api/admin/sponsor/{GUILD_ID}", headers=auth(ADMIN_ID))
        client.post(f"/api/admin/verify/{GUILD_ID}", headers=auth(ADMIN_ID))
        listed = client.get("/api/servers").json()[0]
        assert listed["is_sponsored"] is True
        assert listed["is_verified"] is True

        client.delete(f"/api/admin/sponsor/{GUILD_ID}", headers=auth(ADMIN_ID))
        client.delete(f"/api/admin/verify/{GUILD_ID}", headers=auth(ADMIN_ID))
        listed = client.get("/api/servers").json()[0]
        assert listed["is_sponsored"] is False
        assert listed["is_verified"] is False

    def test_user_ban_by_super_admin(self, client):
        resp = client.post(
            f"/api/admin/ban/user/{USER_ID}", json={"reason": "abuse"}, headers=auth(SUPER_ADMIN_ID)
        )
        assert resp.status_code == 200
        assert client.get("/api/profiles", headers=auth(USER_ID)).status_code == 403
        client.delete(f"/api/admin/unban/user/{USER_ID}", headers=auth(SUPER_ADMIN_ID))
        assert client.get("/api/profiles", headers=auth(USER_ID)).status_code == 200

    def test_force_delete(self, client, store):
        _approved(client)
        resp = client.delete(f"/api/admin/server/delete/{GUILD_ID}", headers=auth(SUPER_ADMIN_ID))
        assert resp.status_code == 200
        assert store.load("servers") == []

    def test_reject_pending(self, client, store):
        _submit(client)
        resp = client.delete(f"/api/admin/pending/delete/{GUILD_ID}", headers=auth(ADMIN_ID))
        assert resp.status_code == 200
        assert store.load("pending") == []


class TestAdminManagement:
    def test_list_admins_with_placeholder(self, client, discord):
        discord.users[ADMIN_ID] = {"id": ADMIN_ID, "username": "mod", "global_name": "Moderator", "avatar": None}
        client.post("/api/admin/add", json={"user_id": USER_ID}, headers=auth(SUPER_ADMIN_ID))

        admins = client.get("/api/admins", headers=auth(ADMIN_ID)).json()
        assert admins[0]["display_name"] == "Moderator"
        assert admins[1] == {
            "id": USER_ID,
            "username": f"Unknown User ({USER_ID})",
            "display_name": f"Unknown User ({USER_ID})",
            "avatar": None,
        }

    def test_add_duplicate_and_remove(self, client):
        resp = client.post("/api/admin/add", json={"user_id": ADMIN_ID}, headers=auth(SUPER_ADMIN_ID))
        assert resp.status_code == 409
        resp = client.post("/api/admin/remove", json={"user_id": ADMIN_ID}, headers=auth(SUPER_ADMIN_ID))
        assert resp.status_code == 200
        assert client.get("/api/pending", headers=auth(ADMIN_ID)).status_code == 403

    def test_logs(self, client):
        from lunarwave.services.log_buffer import install_handler

        install_handler()
        logging.getLogger("lunarwave.test").warning("disk almost full")
        resp = client.get("/api/admin/logs?level=WARNING", headers=auth(SUPER_ADMIN_ID))
        assert resp.status_code == 200
        assert any(e["message"] == "disk almost full" for e in resp.json()["logs"])


# ===========================================================================
# Profiles
# ===========================================================================
class TestProfileRoutes:
    def test_create_react_delete(self, client):
        body = {"description": "Hello!", "tags": ["art"]}
        resp = client.post("/api/profiles/add", json=body, headers=auth(USER_ID))
        assert resp.status_code == 200

        resp = client.post(f"/api/profiles/react/{USER_ID}", json={"type": "up"}, headers=auth(ADMIN_ID))
        assert resp.json()["reactions"] == {"up": 1, "down": 0}

        assert client.get(f"/api/profile/{USER_ID}").json()["description"] == "Hello!"
        assert client.delete("/api/profiles/delete", headers=auth(USER_ID)).status_code == 200
        assert client.get("/api/profiles").json() == []

    def test_too_many_tags(self, client):
        body = {"description": "Hello!", "tags": ["a", "b", "c", "d"]}
        resp = client.post("/api/profiles/add", json=body, headers=auth(USER_ID))
        assert resp.status_code == 400

    def test_invalid_reaction(self, client):
        client.post("/api/profiles/add", json={"description": "x", "tags": []}, headers=auth(USER_ID))
        resp = client.post(f"/api/profiles/react/{USER_ID}", json={"type": "meh"}, headers=auth(ADMIN_ID))
        assert resp.status_code == 400


# ===========================================================================
# Inbox
# ===========================================================================
class TestInboxRoutes:
    def test_message_and_announcement_flow(self, client):
        client.post(
            "/api/admin/message", json={"recipient_id": USER_ID, "message": "hi"}, headers=auth(ADMIN_ID)
        )
        client.post("/api/admin/announce", json={"title": "T", "message": "M"}, headers=auth(ADMIN_ID))

        counts = client.get("/api/inbox/unread-count", headers=auth(USER_ID)).json()
        assert counts == {"total_unread": 2, "unread_messages": 1, "unread_announcements": 1}

        message_id = client.get("/api/inbox/messages", headers=auth(USER_ID)).json()[0]["id"]
        announcement_id = client.get("/api/inbox/announcements", headers=auth(USER_ID)).json()[0]["id"]
        client.post(f"/api/inbox/read-message/{message_id}", headers=auth(USER_ID))
        client.post(f"/api/inbox/read-announcement/{announcement_id}", headers=auth(USER_ID))
        assert client.get("/api/inbox/unread-count", headers=auth(USER_ID)).json()["total_unread"] == 0

    def test_anonymous_unread_count(self, client):
        assert client.get("/api/inbox/unread-count").json()["total_unread"] == 0

    def test_unknown_message(self, client):
        resp = client.post("/api/inbox/read-message/missing", headers=auth(USER_ID))
        assert resp.status_code == 404

    def test_regular_user_cannot_message(self, client):
        resp = client.post(
            "/api/admin/message", json={"recipient_id": ADMIN_ID, "message": "hi"}, headers=auth(USER_ID)
        )
        assert resp.status_code == 403


# ===========================================================================
# Giveaways
# ===========================================================================
class TestGiveawayRoutes:
    def _create(self, client, **extra):
        body = {"name": "Nitro", "description": "1 month", "duration_ms": 10 * MINUTE_MS, **extra}
        return client.post("/api/giveaways/create", json=body, headers=auth(ADMIN_ID))

    def test_create_enter_end(self, client):
        giveaway = self._create(client, password="pw").json()["giveaway"]
        assert "password" not in giveaway

        resp = client.post(f"/api/giveaway/{giveaway['id']}/enter", json={"password": "pw"}, headers=auth(USER_ID))
        assert resp.status_code == 200
        resp = client.post(f"/api/giveaway/{giveaway['id']}/enter", json={"password": "pw"}, headers=auth(USER_ID))
        assert resp.status_code == 409

        ended = client.post(f"/api/giveaway/{giveaway['id']}/end", headers=auth(ADMIN_ID)).json()["giveaway"]
        assert ended["winner_id"] == USER_ID
        assert ended["is_ended"] is True

    def test_user_cannot_create(self, client):
        body = {"name": "Nitro", "description": "1 month", "duration_ms": 10 * MINUTE_MS}
        resp = client.post("/api/giveaways/create", json=body, headers=auth(USER_ID))
        assert resp.status_code == 403

    def test_edit_and_delete(self, client):
        giveaway_id = self._create(client).json()["giveaway"]["id"]
        resp = client.put(f"/api/giveaway/{giveaway_id}/edit", json={"name": "Nitro Basic"}, headers=auth(ADMIN_ID))
        assert resp.json()["giveaway"]["name"] == "Nitro Basic"
        assert client.get(f"/api/giveaway/{giveaway_id}").json()["description"] == "1 month"

        resp = client.delete(f"/api/giveaway/{giveaway_id}/delete", headers=auth(USER_ID))
        assert resp.status_code == 403
        client.delete(f"/api/giveaway/{giveaway_id}/delete", headers=auth(ADMIN_ID))
        assert client.get("/api/giveaways").json() == []
