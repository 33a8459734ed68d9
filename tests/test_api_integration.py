# tests/test_api_integration.py

from geoaccess.auth.identity import AccessLevel, Role
from geoaccess.models.auth import AuditEntry

PASSWORD = "correct-horse-battery"


def _h(api_key: str) -> dict:
    return {"X-API-Key": api_key}


def _audit_actions(db_session):
    db_session.expire_all()
    return [e.action for e in db_session.query(AuditEntry).order_by(AuditEntry.id).all()]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/ready").json() == {"status": "ready"}


def test_me_with_api_key_header_and_query(client, users):
    _, alice_key = users["alice"]

    r = client.get("/api/auth/me", headers=_h(alice_key))
    assert r.status_code == 200, r.text
    assert r.json()["username"] == "alice"
    assert r.json()["auth_method"] == "api_key"

    r = client.get("/api/auth/me", params={"api_key": alice_key})
    assert r.status_code == 200
    assert r.json()["username"] == "alice"


def test_anonymous_and_bad_key_are_distinct(client, users):
    r = client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json()["error"]["kind"] == "unauthenticated"

    r = client.get("/api/auth/me", headers=_h("gk_not_a_real_key_at_all"))
    assert r.status_code == 401
    assert r.json()["error"]["kind"] == "key_invalid"


def test_login_sets_cookie_and_session_works(client, users):
    r = client.post("/api/auth/login", json={"username": "alice", "password": PASSWORD})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["user"]["username"] == "alice"
    assert body["expires_in"] == 15 * 60

    set_cookie = r.headers["set-cookie"]
    assert "token=" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "samesite=strict" in set_cookie.lower()

    # cookie jar carries the session
    r = client.get("/api/auth/me")
    assert r.status_code == 200
    assert r.json()["auth_method"] == "session"

    # Authorization: Bearer also works
    client.cookies.clear()
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert r.status_code == 200

    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    assert 'token=""' in r.headers["set-cookie"] or "Max-Age=0" in r.headers["set-cookie"]


def test_login_failures(client, users, make_principal):
    make_principal("frozen", active=False)

    for username, password in [("alice", "wrong-password"), ("nobody", PASSWORD), ("frozen", PASSWORD)]:
        r = client.post("/api/auth/login", json={"username": username, "password": password})
        assert r.status_code == 401
        assert "set-cookie" not in r.headers


def test_garbage_token_is_token_invalid(client, users):
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.token"})
    assert r.status_code == 401
    assert r.json()["error"]["kind"] == "token_invalid"


def test_regenerate_api_key_rotates_and_audits(client, db_session, users):
    alice, first_key = users["alice"]

    r = client.post("/api/auth/api-key/regenerate", headers=_h(first_key))
    assert r.status_code == 200, r.text
    second_key = r.json()["api_key"]
    assert second_key.startswith("gk_")
    assert len(r.json()["previous_keys"]) == 1

    # the old key stops working, the new one works
    assert client.get("/api/auth/me", headers=_h(first_key)).status_code == 401
    assert client.get("/api/auth/me", headers=_h(second_key)).status_code == 200

    r = client.post("/api/auth/api-key/regenerate", headers=_h(second_key))
    third_key = r.json()["api_key"]

    r = client.get("/api/auth/api-key/history", headers=_h(third_key))
    history = r.json()
    assert len(history) == 2
    assert history[0]["key_prefix"] == second_key[:12]
    assert history[0]["revoked_at"] >= history[1]["revoked_at"]

    assert _audit_actions(db_session) == ["API_KEY_REGENERATE", "API_KEY_REGENERATE"]
    entry = db_session.query(AuditEntry).first()
    assert entry.actor_id == alice.id
    assert second_key not in str(entry.details)


def test_validate_api_key(client, users):
    _, alice_key = users["alice"]

    r = client.get("/api/auth/validate-api-key", headers=_h(alice_key))
    assert r.status_code == 200
    assert r.json()["valid"] is True

    assert client.get("/api/auth/validate-api-key").status_code == 401
    assert client.get("/api/auth/validate-api-key", headers=_h("gk_unknown_key_value_123")).status_code == 401


def test_non_admin_cannot_manage_users(client, users):
    _, alice_key = users["alice"]

    r = client.post(
        "/api/users",
        headers=_h(alice_key),
        json={"username": "mallory", "password": "password123"},
    )
    assert r.status_code == 403
    assert r.json()["error"]["kind"] == "forbidden"

    assert client.post("/api/users", json={"username": "mallory", "password": "password123"}).status_code == 401


def test_admin_creates_and_updates_user(client, db_session, users, make_group):
    _, admin_key = users["admin"]
    group = make_group("surveyors")

    r = client.post(
        "/api/users",
        headers=_h(admin_key),
        json={"username": "carol", "password": "password123", "email": "carol@example.com", "group_ids": [group.id]},
    )
    assert r.status_code == 201, r.text
    carol = r.json()
    assert carol["api_key"].startswith("gk_")

    # duplicate username
    r = client.post("/api/users", headers=_h(admin_key), json={"username": "carol", "password": "password123"})
    assert r.status_code == 409

    r = client.get("/api/groups/mine", headers=_h(carol["api_key"]))
    assert [g["name"] for g in r.json()] == ["surveyors"]

    r = client.put(f"/api/users/{carol['id']}", headers=_h(admin_key), json={"role": "admin"})
    assert r.status_code == 200
    assert r.json()["role"] == "admin"

    assert _audit_actions(db_session) == ["USER_CREATE", "USER_UPDATE", "USER_ROLE_CHANGE"]
    created = db_session.query(AuditEntry).filter(AuditEntry.action == "USER_CREATE").one()
    assert "password123" not in str(created.details)


def test_unknown_group_on_user_create_rolls_back(client, db_session, users):
    _, admin_key = users["admin"]

    r = client.post(
        "/api/users",
        headers=_h(admin_key),
        json={"username": "dave", "password": "password123", "group_ids": ["missing"]},
    )
    assert r.status_code == 422
    assert r.json()["error"]["details"] == {"invalid_ids": ["missing"]}

    r = client.get("/api/users", headers=_h(admin_key))
    assert "dave" not in [u["username"] for u in r.json()]
    assert _audit_actions(db_session) == []


def test_change_own_password(client, users):
    alice, alice_key = users["alice"]
    bob, bob_key = users["bob"]

    r = client.put(
        f"/api/users/{alice.id}/password",
        headers=_h(alice_key),
        json={"current_password": "wrong", "new_password": "brand-new-pass"},
    )
    assert r.status_code == 401

    r = client.put(
        f"/api/users/{alice.id}/password",
        headers=_h(alice_key),
        json={"current_password": PASSWORD, "new_password": "brand-new-pass"},
    )
    assert r.status_code == 200

    r = client.post("/api/auth/login", json={"username": "alice", "password": "brand-new-pass"})
    assert r.status_code == 200

    # someone else's password needs admin
    r = client.put(f"/api/users/{alice.id}/password", headers=_h(bob_key), json={"new_password": "bob-was-here"})
    assert r.status_code == 403


def test_models_filtered_by_access(client, users, make_model):
    alice, alice_key = users["alice"]
    _, admin_key = users["admin"]
    public = make_model("terrain", access_level=AccessLevel.PUBLIC)
    private = make_model("bunker", access_level=AccessLevel.PRIVATE)

    r = client.get("/api/models")
    assert [m["id"] for m in r.json()] == [public.id]

    r = client.get("/api/models", headers=_h(admin_key))
    assert {m["id"] for m in r.json()} == {public.id, private.id}

    # unreadable looks exactly like missing
    hidden = client.get(f"/api/models/{private.id}", headers=_h(alice_key))
    missing = client.get("/api/models/does-not-exist", headers=_h(alice_key))
    assert hidden.status_code == missing.status_code == 404
    assert hidden.json() == missing.json()

    r = client.put(
        f"/api/models/{private.id}/permissions",
        headers=_h(admin_key),
        json={"user_ids": [alice.id]},
    )
    assert r.status_code == 200, r.text
    assert r.json()["user_permissions"] == [{"id": alice.id, "username": "alice"}]

    r = client.get(f"/api/models/{private.id}", headers=_h(alice_key))
    assert r.status_code == 200
    assert r.json()["name"] == "bunker"


def test_permissions_update_is_audited_with_previous_values(client, db_session, users, make_zone, make_group):
    _, admin_key = users["admin"]
    zone = make_zone("port")
    group = make_group("pilots")

    r = client.put(
        f"/api/zones/{zone.id}/permissions",
        headers=_h(admin_key),
        json={"access_level": "public", "group_ids": [group.id]},
    )
    assert r.status_code == 200, r.text
    assert r.json()["access_level"] == "public"
    assert r.json()["group_permissions"] == [{"id": group.id, "name": "pilots"}]

    entry = db_session.query(AuditEntry).filter(AuditEntry.action == "ZONE_PERMISSION_CHANGE").one()
    assert entry.details["previous"] == {"access_level": "private", "user_ids": [], "group_ids": []}

    r = client.put(
        f"/api/zones/{zone.id}/permissions",
        headers=_h(admin_key),
        json={"user_ids": ["nobody"]},
    )
    assert r.status_code == 422
    assert r.json()["error"]["kind"] == "validation_failed"

    r = client.get(f"/api/zones/{zone.id}/permissions", headers=_h(admin_key))
    assert r.json()["user_permissions"] == []


def test_zone_single_grants(client, db_session, users):
    alice, alice_key = users["alice"]
    _, admin_key = users["admin"]

    r = client.post("/api/zones", headers=_h(admin_key), json={"name": "quay"})
    assert r.status_code == 201, r.text
    zone_id = r.json()["id"]
    assert r.json()["access_level"] == "private"

    assert client.get(f"/api/zones/{zone_id}", headers=_h(alice_key)).status_code == 404

    url = f"/api/zones/{zone_id}/permissions/users/{alice.id}"
    assert client.post(url, headers=_h(admin_key)).status_code == 201
    assert client.post(url, headers=_h(admin_key)).status_code == 409
    assert client.get(f"/api/zones/{zone_id}", headers=_h(alice_key)).status_code == 200

    assert client.delete(url, headers=_h(admin_key)).status_code == 200
    assert client.delete(url, headers=_h(admin_key)).status_code == 404
    assert client.get(f"/api/zones/{zone_id}", headers=_h(alice_key)).status_code == 404

    assert _audit_actions(db_session) == ["ZONE_CREATE", "ZONE_PERMISSION_CHANGE", "ZONE_PERMISSION_CHANGE"]


def test_group_membership_drives_zone_access(client, db_session, users, make_zone):
    alice, alice_key = users["alice"]
    _, admin_key = users["admin"]
    zone = make_zone("hangar")

    r = client.post("/api/groups", headers=_h(admin_key), json={"name": "crew"})
    assert r.status_code == 201, r.text
    group_id = r.json()["id"]
    assert client.post("/api/groups", headers=_h(admin_key), json={"name": "crew"}).status_code == 409

    r = client.post(f"/api/zones/{zone.id}/permissions/groups/{group_id}", headers=_h(admin_key))
    assert r.status_code == 201
    assert client.get(f"/api/zones/{zone.id}", headers=_h(alice_key)).status_code == 404

    r = client.post(f"/api/groups/{group_id}/members", headers=_h(admin_key), json={"user_id": alice.id})
    assert r.status_code == 201
    assert client.get(f"/api/zones/{zone.id}", headers=_h(alice_key)).status_code == 200

    r = client.delete(f"/api/groups/{group_id}/members/{alice.id}", headers=_h(admin_key))
    assert r.status_code == 200
    assert client.get(f"/api/zones/{zone.id}", headers=_h(alice_key)).status_code == 404

    r = client.delete(f"/api/groups/{group_id}", headers=_h(admin_key))
    assert r.status_code == 200
    assert r.json()["grants_removed"] == 1

    assert _audit_actions(db_session) == [
        "GROUP_CREATE",
        "ZONE_PERMISSION_CHANGE",
        "GROUP_UPDATE",
        "GROUP_UPDATE",
        "GROUP_DELETE",
    ]


def test_admin_audit_listing(client, users):
    _, admin_key = users["admin"]
    _, alice_key = users["alice"]

    client.post("/api/groups", headers=_h(admin_key), json={"name": "alpha"})
    client.post("/api/groups", headers=_h(admin_key), json={"name": "beta"})

    r = client.get("/api/admin/audit", headers=_h(admin_key), params={"action": "GROUP_CREATE", "limit": 1})
    assert r.status_code == 200
    entries = r.json()
    assert len(entries) == 1
    assert entries[0]["target_name"] == "beta"

    r = client.get("/api/admin/audit/verify", headers=_h(admin_key))
    assert r.json() == {"valid": True, "first_invalid_id": None}

    assert client.get("/api/admin/audit", headers=_h(alice_key)).status_code == 403


def test_delete_zone_removes_grants_and_is_audited(client, db_session, users, make_zone, make_group):
    alice, alice_key = users["alice"]
    _, admin_key = users["admin"]
    zone = make_zone("silo")
    group = make_group("crew", members=[alice])
    zone_id = zone.id

    r = client.put(
        f"/api/zones/{zone_id}/permissions",
        headers=_h(admin_key),
        json={"user_ids": [alice.id], "group_ids": [group.id]},
    )
    assert r.status_code == 200, r.text
    assert client.get(f"/api/zones/{zone_id}", headers=_h(alice_key)).status_code == 200

    assert client.delete(f"/api/zones/{zone_id}", headers=_h(alice_key)).status_code == 403
    assert client.delete("/api/zones/missing", headers=_h(admin_key)).status_code == 404
    assert _audit_actions(db_session) == ["ZONE_PERMISSION_CHANGE"]

    r = client.delete(f"/api/zones/{zone_id}", headers=_h(admin_key))
    assert r.status_code == 200, r.text
    assert r.json()["user_grants_removed"] == 1
    assert r.json()["group_grants_removed"] == 1

    assert client.get(f"/api/zones/{zone_id}", headers=_h(alice_key)).status_code == 404
    assert client.get(f"/api/zones/{zone_id}", headers=_h(admin_key)).status_code == 404

    assert _audit_actions(db_session) == ["ZONE_PERMISSION_CHANGE", "ZONE_DELETE"]
    entry = db_session.query(AuditEntry).filter(AuditEntry.action == "ZONE_DELETE").one()
    assert entry.target_id == zone_id
    assert entry.target_name == "silo"
    assert client.get("/api/admin/audit/verify", headers=_h(admin_key)).json()["valid"] is True
