def register_and_login(client, email="new@example.com", password="s3cretpass"):
    resp = client.post("/auth/register", json={"email": email, "password": password, "full_name": "New Person"})
    assert resp.status_code == 201, resp.text
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_register_login_and_me(client):
    tokens = register_and_login(client)
    me = client.get("/users/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}).json()
    assert me["email"] == "new@example.com"
    assert me["full_name"] == "New Person"
    assert me["is_admin"] is False


def test_duplicate_registration(client):
    register_and_login(client)
    resp = client.post("/auth/register", json={"email": "new@example.com", "password": "another-pass"})
    assert resp.status_code == 409


def test_bad_credentials(client):
    register_and_login(client)
    assert client.post("/auth/login", json={"email": "new@example.com", "password": "wrong-pass"}).status_code == 401


def test_refresh_rotates_token(client):
    tokens = register_and_login(client)
    resp = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    assert resp.json()["refresh_token"] != tokens["refresh_token"]
    # the old refresh token is spent
    assert client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401


def test_logout_revokes_refresh_token(client):
    tokens = register_and_login(client)
    assert client.post("/auth/logout", json={"refresh_token": tokens["refresh_token"]}).json() == {"status": "ok"}
    assert client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401


def test_access_token_cannot_refresh(client):
    tokens = register_and_login(client)
    assert client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]}).status_code == 401


def test_invalid_bearer_token(client):
    assert client.get("/users/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_update_profile(client, auth_headers):
    resp = client.patch("/users/me", json={"city": "Paris", "zip_code": "75001"}, headers=auth_headers)
    assert (resp.json()["city"], resp.json()["zip_code"]) == ("Paris", "75001")
    assert resp.json()["full_name"] == "Ada Lovelace"


def test_upload_avatar(client, auth_headers, user, monkeypatch):
    from storefront.api import users as users_api
    monkeypatch.setattr(users_api, "upload_bytes",
                        lambda bucket, prefix, data, ct, ext="": (f"{prefix}/a{ext}", f"http://minio.test/{bucket}/{prefix}/a{ext}"))
    resp = client.post("/users/me/avatar", files={"file": ("me.jpg", b"jpeg", "image/jpeg")}, headers=auth_headers)
    assert resp.json()["avatar_url"] == f"http://minio.test/avatars/{user.id}/a.jpg"
