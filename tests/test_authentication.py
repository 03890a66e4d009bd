from homitutor.database.database import User, UserRole, EmailOtp
from homitutor.services import otp_service
from tests.conftest import API, PASSWORD, make_user, headers_for

def register_payload(**overrides):
    payload = {
        "username": "lantran",
        "email": "Lan.Tran@example.com",
        "password": PASSWORD,
        "first_name": "Lan",
        "last_name": "Tran",
        "role": "student"
    }
    payload.update(overrides)
    return payload

def test_register_creates_unverified_user_and_sends_code(client, db, monkeypatch):
    monkeypatch.setattr(otp_service, "generate_otp", lambda: "123456")

    response = client.post(f"{API}/auth/register", json=register_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["otp_sent"] is True
    assert body["user"]["email"] == "lan.tran@example.com"
    assert body["user"]["is_verified"] is False

    user = db.query(User).filter(User.email == "lan.tran@example.com").first()
    assert user.password != PASSWORD
    otp = db.query(EmailOtp).filter(EmailOtp.email == user.email).one()
    assert otp.otp != "123456"

def test_register_duplicate_email(client, student):
    response = client.post(f"{API}/auth/register", json=register_payload(email=student.email))
    assert response.status_code == 409

def test_register_as_admin_is_refused(client):
    response = client.post(f"{API}/auth/register", json=register_payload(role="admin"))
    assert response.status_code == 403

def test_register_validates_fields(client):
    assert client.post(f"{API}/auth/register", json=register_payload(password="123")).status_code == 422
    assert client.post(f"{API}/auth/register", json=register_payload(username="ab")).status_code == 422
    assert client.post(f"{API}/auth/register", json=register_payload(first_name="L")).status_code == 422

def test_register_verify_and_login_flow(client, monkeypatch):
    monkeypatch.setattr(otp_service, "generate_otp", lambda: "654321")
    client.post(f"{API}/auth/register", json=register_payload(role="tutor"))

    # Not verified yet
    response = client.post(f"{API}/auth/login", json={"email": "lan.tran@example.com", "password": PASSWORD})
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "ACCOUNT_NOT_VERIFIED"

    response = client.post(f"{API}/verify/verify-otp", json={"email": "lan.tran@example.com", "otp": "654321"})
    assert response.status_code == 200

    response = client.post(f"{API}/auth/login", json={"email": "lan.tran@example.com", "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "logged_in"
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "tutor"

    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "lan.tran@example.com"

def test_login_wrong_password(client, student):
    response = client.post(f"{API}/auth/login", json={"email": student.email, "password": "wrong-password"})
    assert response.status_code == 401

def test_login_unknown_email(client):
    response = client.post(f"{API}/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})
    assert response.status_code == 401

def test_login_deactivated_account(client, db):
    make_user(db, UserRole.STUDENT, "blocked@example.com", active=False)
    response = client.post(f"{API}/auth/login", json={"email": "blocked@example.com", "password": PASSWORD})
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "ACCOUNT_DEACTIVATED"

def test_deactivated_user_token_is_rejected(client, db, student, student_headers):
    student.is_active = False
    db.commit()

    response = client.get(f"{API}/auth/me", headers=student_headers)
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "ACCOUNT_DEACTIVATED"

def test_missing_or_invalid_token(client):
    assert client.get(f"{API}/auth/me").status_code == 401
    assert client.get(f"{API}/auth/me", headers={"Authorization": "Bearer not-a-token"}).status_code == 401

def test_refresh_and_logout(client, student):
    login = client.post(f"{API}/auth/login", json={"email": student.email, "password": PASSWORD}).json()
    access_headers = {"Authorization": f"Bearer {login['access_token']}"}
    refresh_headers = {"Authorization": f"Bearer {login['refresh_token']}"}

    refreshed = client.post(f"{API}/auth/refresh", headers=refresh_headers)
    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]

    # An access token cannot be used to refresh
    assert client.post(f"{API}/auth/refresh", headers=access_headers).status_code == 401

    assert client.post(f"{API}/auth/logout", headers=access_headers).status_code == 200
    assert client.post(f"{API}/auth/refresh", headers=refresh_headers).status_code == 401

def test_refresh_token_cannot_access_endpoints(client, student):
    login = client.post(f"{API}/auth/login", json={"email": student.email, "password": PASSWORD}).json()
    response = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {login['refresh_token']}"})
    assert response.status_code == 401

def test_role_guard(client, student_headers):
    response = client.get(f"{API}/admin/users", headers=student_headers)
    assert response.status_code == 403
