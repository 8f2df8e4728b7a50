def test_register_sets_a_session_and_returns_camel_case(signup) -> None:
    client, user = signup("ada")
    assert user["username"] == "ada"
    assert user["isRecruiter"] is False
    assert "password" not in user
    assert user["privacySettings"] == {"profileVisibility": "all", "digitalCvVisibility": "all"}

    me = client.get("/api/user")
    assert me.status_code == 200
    assert me.json()["id"] == user["id"]


def test_register_reports_conflicts_and_validation_errors(signup, new_client) -> None:
    signup("ada")
    client = new_client()

    duplicate = client.post(
        "/api/register",
        json={"username": "ada", "email": "other@example.com", "password": "secret123", "name": "Ada"},
    )
    assert duplicate.status_code == 409
    assert duplicate.json() == {"message": "Username already exists"}

    invalid = client.post(
        "/api/register",
        json={"username": "bob", "email": "not-an-email", "password": "secret123", "name": "Bob"},
    )
    assert invalid.status_code == 400
    assert invalid.json()["field"] == "email"


def test_login_logout_cycle(signup, new_client) -> None:
    signup("ada", password="difference")
    client = new_client()

    assert client.get("/api/user").status_code == 401
    bad = client.post("/api/login", json={"username": "ada", "password": "wrong"})
    assert bad.status_code == 401
    assert bad.json() == {"message": "Invalid username or password"}

    assert client.post("/api/login", json={"username": "ada", "password": "difference"}).status_code == 200
    assert client.get("/api/user").json()["username"] == "ada"

    assert client.post("/api/logout").json() == {"message": "Logged out"}
    assert client.get("/api/user").status_code == 401


def test_protected_routes_need_a_session(new_client) -> None:
    client = new_client()
    response = client.get("/api/posts")
    assert response.status_code == 401
    assert response.json() == {"message": "Unauthorized"}


def test_admin_login_requires_a_recruiter_account(signup, new_client) -> None:
    signup("ada", password="secret123")
    signup("boss", is_recruiter=True, password="secret123")
    client = new_client()

    refused = client.post("/api/admin/login", json={"username": "ada", "password": "secret123"})
    assert refused.status_code == 403

    assert client.post("/api/admin/login", json={"username": "boss", "password": "secret123"}).status_code == 200
    assert client.get("/api/admin/analytics").status_code == 200


def test_recruiter_session_without_admin_login_is_not_admin(signup) -> None:
    client, _ = signup("boss", is_recruiter=True)
    response = client.get("/api/admin/analytics")
    assert response.status_code == 403
    assert response.json() == {"message": "Admin access required"}


def test_availability_checks_do_not_need_a_session(signup, new_client) -> None:
    signup("ada")
    client = new_client()
    assert client.get("/api/users/check-username", params={"username": "ada"}).json() == {"available": False}
    assert client.get("/api/users/check-username", params={"username": "grace"}).json() == {"available": True}
    assert client.get("/api/users/check-email", params={"email": "ADA@example.com"}).json() == {"available": False}
    assert client.get("/api/users/check-mobile", params={"mobileNumber": "+1555"}).json() == {"available": True}


def test_forgot_password_files_a_request_once(signup, new_client) -> None:
    signup("ada")
    client = new_client()

    first = client.post("/api/users/forgot-password", json={"email": "ada@example.com"})
    assert first.status_code == 201
    assert client.post("/api/users/forgot-password", json={"email": "ada@example.com"}).status_code == 409
    assert client.post("/api/users/forgot-password", json={"email": "nobody@example.com"}).status_code == 404


def test_health(new_client) -> None:
    assert new_client().get("/health").json() == {"status": "ok"}
