from datetime import date, time, timedelta
import pytest
from homitutor.database.database import Booking, TeachingSchedule, UserRole
from tests.conftest import API, make_course, make_user, headers_for

LESSON_DAY = date.today() + timedelta(days=7)

@pytest.fixture
def course(db, tutor_profile, subject, level):
    return make_course(db, tutor_profile, subject, level, hourly_rate=200000)

def booking_payload(tutor_profile, course=None, **overrides):
    payload = {
        "tutor_id": tutor_profile.id,
        "course_id": course.id if course else None,
        "title": "Ôn tập hàm số",
        "mode": "online",
        "date": LESSON_DAY.isoformat(),
        "start_time": "09:00",
        "end_time": "10:30"
    }
    payload.update(overrides)
    return payload

@pytest.fixture
def booking(client, tutor_profile, course, student_headers):
    response = client.post(f"{API}/bookings/", headers=student_headers, json=booking_payload(tutor_profile, course))
    assert response.status_code == 201
    return response.json()

def set_status(client, booking_id, headers, status, reason=None):
    return client.patch(f"{API}/bookings/{booking_id}/status", headers=headers,
                        json={"status": status, "reason": reason})

################
### CREATION ###
################

def test_create_booking_uses_course_rate(booking, student):
    assert booking["status"] == "pending"
    assert booking["student"]["id"] == student.id
    assert booking["hourly_rate"] == 200000
    assert booking["total_hours"] == 1.5
    assert booking["total_amount"] == 300000

def test_create_booking_without_course_needs_rate(client, tutor_profile, student_headers):
    response = client.post(f"{API}/bookings/", headers=student_headers, json=booking_payload(tutor_profile))
    assert response.status_code == 400

    response = client.post(f"{API}/bookings/", headers=student_headers,
                           json=booking_payload(tutor_profile, hourly_rate=150000))
    assert response.status_code == 201
    assert response.json()["total_amount"] == 225000

def test_create_booking_validation(client, tutor_profile, course, student_headers):
    url = f"{API}/bookings/"
    assert client.post(url, headers=student_headers,
                       json=booking_payload(tutor_profile, course, start_time="10:00", end_time="09:00")).status_code == 400
    assert client.post(url, headers=student_headers,
                       json=booking_payload(tutor_profile, course, end_time="09:00")).status_code == 400
    assert client.post(url, headers=student_headers,
                       json=booking_payload(tutor_profile, course, mode="offline")).status_code == 422
    assert client.post(url, headers=student_headers,
                       json=booking_payload(tutor_profile, course, date=(date.today() - timedelta(days=1)).isoformat())).status_code == 400
    assert client.post(url, headers=student_headers,
                       json=booking_payload(tutor_profile, course, tutor_id="missing")).status_code == 404
    assert client.post(url, headers=student_headers,
                       json=booking_payload(tutor_profile, course, course_id="missing")).status_code == 404

def test_offline_booking_with_location(client, tutor_profile, course, student_headers):
    response = client.post(f"{API}/bookings/", headers=student_headers,
                           json=booking_payload(tutor_profile, course, mode="offline", location="Quận 3, TP.HCM"))
    assert response.status_code == 201
    assert response.json()["location"] == "Quận 3, TP.HCM"

def test_overlapping_booking_is_refused(client, db, booking, tutor_profile, course):
    other_student = make_user(db, UserRole.STUDENT, "other@example.com")
    response = client.post(f"{API}/bookings/", headers=headers_for(other_student),
                           json=booking_payload(tutor_profile, course, start_time="10:00", end_time="11:00"))
    assert response.status_code == 409

    # Back to back is fine
    response = client.post(f"{API}/bookings/", headers=headers_for(other_student),
                           json=booking_payload(tutor_profile, course, start_time="10:30", end_time="11:30"))
    assert response.status_code == 201

def test_tutor_cannot_create_booking(client, tutor_profile, course, tutor_headers):
    response = client.post(f"{API}/bookings/", headers=tutor_headers, json=booking_payload(tutor_profile, course))
    assert response.status_code == 403

###############
### LISTING ###
###############

def test_list_bookings(client, booking, student_headers, tutor_headers):
    student_list = client.get(f"{API}/bookings/student", headers=student_headers).json()
    assert student_list["total"] == 1

    tutor_list = client.get(f"{API}/bookings/tutor", headers=tutor_headers, params={"status": "pending"}).json()
    assert [b["id"] for b in tutor_list["bookings"]] == [booking["id"]]

    confirmed = client.get(f"{API}/bookings/tutor", headers=tutor_headers, params={"status": "confirmed"}).json()
    assert confirmed["total"] == 0

    everything = client.get(f"{API}/bookings/tutor", headers=tutor_headers, params={"status": "all"}).json()
    assert everything["total"] == 1

def test_get_booking_only_for_parties(client, db, booking, student_headers, tutor_headers, admin_headers):
    url = f"{API}/bookings/{booking['id']}"
    assert client.get(url, headers=student_headers).status_code == 200
    assert client.get(url, headers=tutor_headers).status_code == 200
    assert client.get(url, headers=admin_headers).status_code == 200

    outsider = make_user(db, UserRole.STUDENT, "outsider@example.com")
    assert client.get(url, headers=headers_for(outsider)).status_code == 403
    assert client.get(f"{API}/bookings/missing", headers=student_headers).status_code == 404

###################
### TRANSITIONS ###
###################

def test_tutor_confirms_then_completes(client, db, booking, tutor_profile, tutor_headers):
    slot = TeachingSchedule(tutor_id=tutor_profile.id, date=LESSON_DAY, start_time=time(8), end_time=time(12))
    db.add(slot)
    db.commit()

    response = set_status(client, booking["id"], tutor_headers, "confirmed")
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    db.expire_all()
    assert db.get(TeachingSchedule, slot.id).status == "booked"

    assert set_status(client, booking["id"], tutor_headers, "completed").status_code == 200
    db.expire_all()
    assert db.get(TeachingSchedule, slot.id).status == "completed"

    # Completed is final
    assert set_status(client, booking["id"], tutor_headers, "confirmed").status_code == 409

def test_tutor_rejects_with_reason(client, db, booking, tutor_headers):
    response = set_status(client, booking["id"], tutor_headers, "rejected", reason="Không có lịch trống")
    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "Không có lịch trống"

    assert set_status(client, booking["id"], tutor_headers, "confirmed").status_code == 409

def test_student_can_only_cancel(client, db, booking, tutor_profile, student_headers, tutor_headers):
    assert set_status(client, booking["id"], student_headers, "confirmed").status_code == 403
    assert set_status(client, booking["id"], tutor_headers, "cancelled").status_code == 403

    set_status(client, booking["id"], tutor_headers, "confirmed")
    slot = TeachingSchedule(tutor_id=tutor_profile.id, date=LESSON_DAY, start_time=time(9), end_time=time(10),
                            status="booked")
    db.add(slot)
    db.commit()

    response = set_status(client, booking["id"], student_headers, "cancelled", reason="Bị ốm")
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    db.expire_all()
    assert db.get(TeachingSchedule, slot.id).status == "available"

def test_pending_cannot_complete(client, booking, tutor_headers):
    assert set_status(client, booking["id"], tutor_headers, "completed").status_code == 409

def test_outsider_cannot_change_status(client, db, booking):
    outsider = make_user(db, UserRole.STUDENT, "outsider@example.com")
    assert set_status(client, booking["id"], headers_for(outsider), "cancelled").status_code == 403

#############
### NOTES ###
#############

def test_session_notes(client, db, booking, student_headers, tutor_headers):
    url = f"{API}/bookings/{booking['id']}/notes"

    # Pending bookings have no notes yet
    assert client.post(url, headers=tutor_headers, json={"tutor_notes": "Chuẩn bị bài"}).status_code == 409

    set_status(client, booking["id"], tutor_headers, "confirmed")
    response = client.post(url, headers=tutor_headers, json={"tutor_notes": "Covered quadratic functions"})
    assert response.status_code == 200
    assert response.json()["tutor_notes"] == "Covered quadratic functions"

    response = client.post(url, headers=student_headers,
                           json={"student_rating": 5, "student_feedback": "Dễ hiểu", "tutor_notes": "ignored"})
    body = response.json()
    assert body["student_rating"] == 5
    assert body["tutor_notes"] == "Covered quadratic functions"

    # A tutor can't rate the lesson
    assert client.post(url, headers=tutor_headers, json={"student_rating": 1}).status_code == 400
    assert client.post(url, headers=student_headers, json={"student_rating": 9}).status_code == 422

    detail = client.get(f"{API}/bookings/{booking['id']}", headers=student_headers).json()
    assert detail["session_note"]["student_feedback"] == "Dễ hiểu"

def test_session_note_does_not_change_tutor_rating(client, db, booking, tutor_profile, student_headers, tutor_headers):
    set_status(client, booking["id"], tutor_headers, "confirmed")
    client.post(f"{API}/bookings/{booking['id']}/notes", headers=student_headers, json={"student_rating": 2})

    db.expire_all()
    assert db.get(Booking, booking["id"]).tutor.rating == 0
