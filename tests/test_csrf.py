from storefront.security.csrf import CSRF_COOKIE_NAME, CSRF_HEADER_NAME, CSRFGuard


def test_token_bound_to_secret():
    guard = CSRFGuard("k")
    secret = guard.new_secret()
    token = guard.make_token(secret)
    assert guard.token_matches(token, secret)
    assert not guard.token_matches(token, guard.new_secret())
    assert not guard.token_matches("", secret)
    assert not guard.token_matches(token, "")
    assert not guard.token_matches(CSRFGuard("other-key").make_token(secret), secret)


def test_endpoint_sets_secret_cookie_once(bare_client):
    r1 = bare_client.get("/api/csrf-token")
    assert r1.status_code == 200
    assert r1.json()["csrfToken"]
    set_cookie = r1.headers.get("set-cookie", "")
    assert set_cookie.startswith(f"{CSRF_COOKIE_NAME}=")
    assert "httponly" in set_cookie.lower()
    assert "samesite=strict" in set_cookie.lower()

    r2 = bare_client.get("/api/csrf-token")
    assert "set-cookie" not in r2.headers
    assert r2.json()["csrfToken"]


def test_mutation_without_header_rejected_before_store(bare_client, store):
    bare_client.get("/api/csrf-token")
    r = bare_client.post(
        "/api/user/register",
        json={"name": "Jane Doe", "email": "jane@example.com", "password": "Passw0rdX"},
    )
    assert r.status_code == 403
    assert r.json() == {"success": False, "message": "Invalid CSRF token"}
    assert store.count() == 0


def test_mutation_with_foreign_token_rejected(bare_client, store, app):
    foreign = app.state.ctx.csrf.make_token("some-other-browser-secret")
    bare_client.get("/api/csrf-token")
    r = bare_client.post(
        "/api/user/register",
        json={"name": "Jane Doe", "email": "jane@example.com", "password": "Passw0rdX"},
        headers={CSRF_HEADER_NAME: foreign},
    )
    assert r.status_code == 403
    assert store.count() == 0


def test_logout_is_guarded_too(bare_client):
    assert bare_client.post("/api/user/logout").status_code == 403


def test_valid_token_passes(client, store):
    r = client.post(
        "/api/user/register",
        json={"name": "Jane Doe", "email": "jane@example.com", "password": "Passw0rdX"},
    )
    assert r.json()["success"] is True
    assert store.count() == 1


def test_guard_can_be_disabled(env, store, hasher):
    from fastapi.testclient import TestClient

    from storefront.app import create_app
    from storefront.config import load_settings

    env["CSRF_ENABLED"] = "false"
    with TestClient(create_app(load_settings(env), store=store, hasher=hasher)) as c:
        r = c.post("/api/user/logout")
        assert r.status_code == 200
        assert r.json()["success"] is True
