import logging
from datetime import datetime, timedelta
from homitutor.database.database import EmailOtp, User, UserRole
from homitutor.services import otp_service
from tests.conftest import API, make_user

def test_send_otp_unknown_email(client):
    response = client.post(f"{API}/verify/send-otp", json={"email": "nobody@example.com"})
    assert response.status_code == 404

def test_send_otp_already_verified(client, student):
    response = client.post(f"{API}/verify/send-otp", json={"email": student.email})
    assert response.status_code == 400

def test_send_otp_respects_resend_cooldown(client, db):
    make_user(db, UserRole.STUDENT, "new@example.com", verified=False)

    assert client.post(f"{API}/verify/send-otp", json={"email": "new@example.com"}).status_code == 200
    assert client.post(f"{API}/verify/send-otp", json={"email": "new@example.com"}).status_code == 429

def test_new_code_invalidates_previous_codes(client, db, monkeypatch):
    make_user(db, UserRole.STUDENT, "new@example.com", verified=False)
    codes = iter(["111111", "222222"])
    monkeypatch.setattr(otp_service, "generate_otp", lambda: next(codes))

    client.post(f"{API}/verify/send-otp", json={"email": "new@example.com"})
    # Move the first code out of the resend cooldown
    first = db.query(EmailOtp).filter(EmailOtp.email == "new@example.com").one()
    first.created_at = datetime.now() - timedelta(seconds=120)
    db.commit()
    assert client.post(f"{API}/verify/send-otp", json={"email": "new@example.com"}).status_code == 200

    response = client.post(f"{API}/verify/verify-otp", json={"email": "new@example.com", "otp": "111111"})
    assert response.status_code == 400

    response = client.post(f"{API}/verify/verify-otp", json={"email": "new@example.com", "otp": "222222"})
    assert response.status_code == 200

    db.expire_all()
    assert db.query(User).filter(User.email == "new@example.com").one().is_verified is True
    assert db.query(EmailOtp).filter(EmailOtp.used.is_(False)).count() == 0

def test_expired_code_is_rejected(client, db, monkeypatch):
    make_user(db, UserRole.STUDENT, "new@example.com", verified=False)
    monkeypatch.setattr(otp_service, "generate_otp", lambda: "333333")
    client.post(f"{API}/verify/send-otp", json={"email": "new@example.com"})

    otp = db.query(EmailOtp).filter(EmailOtp.email == "new@example.com").one()
    otp.expires_at = datetime.now() - timedelta(seconds=1)
    db.commit()

    response = client.post(f"{API}/verify/verify-otp", json={"email": "new@example.com", "otp": "333333"})
    assert response.status_code == 400

def test_verify_otp_format(client, db):
    make_user(db, UserRole.STUDENT, "new@example.com", verified=False)
    response = client.post(f"{API}/verify/verify-otp", json={"email": "new@example.com", "otp": "12ab"})
    assert response.status_code == 422

def test_otp_status(client, db):
    make_user(db, UserRole.STUDENT, "new@example.com", verified=False)

    before = client.get(f"{API}/verify/otp-status", params={"email": "new@example.com"}).json()
    assert before["latest_otp"] is None
    assert before["can_request_new_otp"] is True

    client.post(f"{API}/verify/send-otp", json={"email": "new@example.com"})

    after = client.get(f"{API}/verify/otp-status", params={"email": "new@example.com"}).json()
    assert after["is_verified"] is False
    assert after["active_otp_count"] == 1
    assert after["can_request_new_otp"] is False
    assert after["latest_otp"]["expired"] is False
    assert 0 < after["latest_otp"]["seconds_remaining"] <= 300

def test_code_stays_out_of_the_log_when_mail_is_disabled(client, db, monkeypatch, caplog):
    make_user(db, UserRole.STUDENT, "new@example.com", verified=False)
    monkeypatch.setattr(otp_service, "generate_otp", lambda: "424242")

    with caplog.at_level(logging.INFO, logger="server"):
        assert client.post(f"{API}/verify/send-otp", json={"email": "new@example.com"}).status_code == 200

    assert "Mail disabled" in caplog.text
    assert "424242" not in caplog.text
