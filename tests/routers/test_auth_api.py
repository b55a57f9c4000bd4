"""
Auth and profile endpoints through the FastAPI app (SQLite, Redis mocked).
"""
TEST_PASSWORD = "Sup3r-Secret-Pass!"

REGISTER = "/api/v1/auth/register"
LOGIN = "/api/v1/auth/login"


def _register(client, username="alice", password=TEST_PASSWORD):
    return client.post(
        REGISTER,
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )


class TestRegister:
    def test_register_seeds_default_categories(self, client, auth_headers):
        res = client.get("/api/v1/categories/", headers=auth_headers)
        assert res.status_code == 200
        names = {(c["name"], c["type"]) for c in res.json()}
        assert names == {
            ("Food", "expense"), ("Shopping", "expense"), ("Transport", "expense"),
            ("Housing", "expense"), ("Salary", "income"), ("Bonus", "income"),
            ("Investment", "income"),
        }

    def test_duplicate_username(self, client):
        assert _register(client).status_code == 201
        res = client.post(
            REGISTER,
            json={"username": "alice", "email": "other@example.com", "password": TEST_PASSWORD},
        )
        assert res.status_code == 409

    def test_duplicate_email(self, client):
        assert _register(client).status_code == 201
        res = client.post(
            REGISTER,
            json={"username": "alice2", "email": "alice@example.com", "password": TEST_PASSWORD},
        )
        assert res.status_code == 409

    def test_weak_password(self, client):
        res = _register(client, password="password")
        assert res.status_code == 422


class TestLogin:
    def test_login_with_email_returns_token_and_cookies(self, client, redis_calls):
        _register(client)
        res = client.post(LOGIN, json={"username": "alice@example.com", "password": TEST_PASSWORD})

        assert res.status_code == 200
        body = res.json()
        assert body["token_type"] == "bearer"
        assert body["access_token"]
        assert body["user"]["username"] == "alice"
        assert "access_token" in res.cookies
        assert "refresh_token" in res.cookies
        redis_calls.clear_login_failures.assert_awaited_once()

    def test_wrong_password_records_failure(self, client, redis_calls):
        _register(client)
        res = client.post(LOGIN, json={"username": "alice", "password": "Wrong-Pass-1234!"})

        assert res.status_code == 401
        redis_calls.record_login_failure.assert_awaited_once_with("alice")

    def test_locked_out(self, client, redis_calls):
        redis_calls.is_locked_out.return_value = True
        res = client.post(LOGIN, json={"username": "alice", "password": TEST_PASSWORD})
        assert res.status_code == 429

    def test_cookie_authenticates_without_header(self, client):
        _register(client)
        client.post(LOGIN, json={"username": "alice", "password": TEST_PASSWORD})
        res = client.get("/api/v1/users/me")
        assert res.status_code == 200
        assert res.json()["email"] == "alice@example.com"


class TestRefreshAndLogout:
    def test_refresh_rotates_token(self, client, redis_calls):
        _register(client)
        client.post(LOGIN, json={"username": "alice", "password": TEST_PASSWORD})

        res = client.post("/api/v1/auth/refresh")

        assert res.status_code == 200
        assert res.json()["access_token"]
        redis_calls.blacklist_token.assert_awaited_once()

    def test_refresh_without_cookie(self, client):
        assert client.post("/api/v1/auth/refresh").status_code == 401

    def test_revoked_refresh_token(self, client, redis_calls):
        _register(client)
        client.post(LOGIN, json={"username": "alice", "password": TEST_PASSWORD})
        redis_calls.is_blacklisted.return_value = True

        assert client.post("/api/v1/auth/refresh").status_code == 401

    def test_logout_blacklists_refresh_token(self, client, redis_calls):
        _register(client)
        client.post(LOGIN, json={"username": "alice", "password": TEST_PASSWORD})

        res = client.post("/api/v1/auth/logout")

        assert res.status_code == 204
        redis_calls.blacklist_token.assert_awaited_once()


class TestProfile:
    def test_requires_authentication(self, client):
        res = client.get("/api/v1/users/me")
        assert res.status_code == 401

    def test_rejects_garbage_token(self, client):
        res = client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401

    def test_update_profile(self, client, auth_headers):
        res = client.patch("/api/v1/users/me", json={"phone": "555-0100"}, headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["phone"] == "555-0100"

    def test_username_taken(self, client, auth_headers, login_as):
        login_as("bob")
        res = client.patch("/api/v1/users/me", json={"username": "bob"}, headers=auth_headers)
        assert res.status_code == 409

    def test_change_password(self, client, auth_headers):
        new_password = "An0ther-Secret-Pass!"
        res = client.post(
            "/api/v1/users/me/change-password",
            json={"current_password": TEST_PASSWORD, "new_password": new_password},
            headers=auth_headers,
        )
        assert res.status_code == 204

        res = client.post(LOGIN, json={"username": "alice", "password": new_password})
        assert res.status_code == 200

    def test_change_password_wrong_current(self, client, auth_headers):
        res = client.post(
            "/api/v1/users/me/change-password",
            json={"current_password": "Wrong-Pass-1234!", "new_password": "An0ther-Secret-Pass!"},
            headers=auth_headers,
        )
        assert res.status_code == 400
