from datetime import datetime, timedelta
from homitutor.database.database import Booking, Course
from tests.conftest import API, make_course, make_tutor, headers_for

def course_payload(subject, level, **overrides):
    payload = {
        "title": "Đại số lớp 10",
        "description": "Functions, equations and inequalities for grade 10",
        "hourly_rate": 250000,
        "teaching_mode": "online",
        "subject_id": subject.id,
        "level_id": level.id
    }
    payload.update(overrides)
    return payload

def test_create_course(client, tutor_headers, tutor_profile, subject, level):
    response = client.post(f"{API}/courses/", headers=tutor_headers, json=course_payload(subject, level))
    assert response.status_code == 201
    body = response.json()
    assert body["tutor_id"] == tutor_profile.id
    assert body["status"] == "active"
    assert body["subject"]["slug"] == "toan-hoc"

def test_create_course_validation(client, tutor_headers, subject, level):
    response = client.post(f"{API}/courses/", headers=tutor_headers, json=course_payload(subject, level, hourly_rate=5000))
    assert response.status_code == 422

    response = client.post(f"{API}/courses/", headers=tutor_headers, json=course_payload(subject, level, subject_id="missing"))
    assert response.status_code == 404

def test_student_cannot_create_course(client, student_headers, subject, level):
    response = client.post(f"{API}/courses/", headers=student_headers, json=course_payload(subject, level))
    assert response.status_code == 403

def test_list_courses_filters(client, db, tutor_profile, subject, other_subject, level):
    algebra = make_course(db, tutor_profile, subject, level, title="Algebra basics", teaching_mode="online")
    mechanics = make_course(db, tutor_profile, other_subject, level, title="Mechanics", teaching_mode="offline")
    make_course(db, tutor_profile, subject, level, title="Retired course", status="inactive")

    def course_ids(**params):
        return {c["id"] for c in client.get(f"{API}/courses/", params=params).json()["courses"]}

    assert course_ids() == {algebra.id, mechanics.id}
    assert course_ids(subject_id=other_subject.id) == {mechanics.id}
    assert course_ids(teaching_mode="online") == {algebra.id}
    assert course_ids(search="algebra") == {algebra.id}

def test_get_course(client, db, tutor_profile, subject, level):
    course = make_course(db, tutor_profile, subject, level)
    assert client.get(f"{API}/courses/{course.id}").json()["title"] == "Algebra basics"
    assert client.get(f"{API}/courses/missing").status_code == 404

def test_update_course(client, db, tutor_headers, tutor_profile, subject, level):
    course = make_course(db, tutor_profile, subject, level)

    response = client.patch(f"{API}/courses/{course.id}", headers=tutor_headers,
                            json={"hourly_rate": 300000, "teaching_mode": "both"})
    assert response.status_code == 200
    assert response.json()["hourly_rate"] == 300000
    assert response.json()["teaching_mode"] == "both"

    assert client.patch(f"{API}/courses/{course.id}", headers=tutor_headers, json={}).status_code == 400

def test_other_tutor_cannot_touch_course(client, db, tutor_profile, subject, level):
    course = make_course(db, tutor_profile, subject, level)
    other = make_tutor(db, "other@example.com")
    headers = headers_for(other.user)

    assert client.patch(f"{API}/courses/{course.id}", headers=headers, json={"title": "Stolen"}).status_code == 404
    assert client.delete(f"{API}/courses/{course.id}", headers=headers).status_code == 404

def test_delete_course_without_bookings(client, db, tutor_headers, tutor_profile, subject, level):
    course_id = make_course(db, tutor_profile, subject, level).id

    assert client.delete(f"{API}/courses/{course_id}", headers=tutor_headers).status_code == 204
    db.expire_all()
    assert db.query(Course).filter(Course.id == course_id).count() == 0

def test_delete_course_with_bookings_deactivates(client, db, tutor_headers, tutor_profile, subject, level, student):
    course = make_course(db, tutor_profile, subject, level)
    start = datetime.now() + timedelta(days=3)
    db.add(Booking(student_id=student.id, tutor_id=tutor_profile.id, course_id=course.id, title="Lesson",
                   start_time=start, end_time=start + timedelta(hours=1), hourly_rate=200000,
                   total_hours=1, total_amount=200000))
    db.commit()

    assert client.delete(f"{API}/courses/{course.id}", headers=tutor_headers).status_code == 204
    db.expire_all()
    assert db.get(Course, course.id).status == "inactive"

def test_own_course_list_includes_inactive(client, db, tutor_headers, tutor_profile, subject, level):
    make_course(db, tutor_profile, subject, level)
    make_course(db, tutor_profile, subject, level, title="Retired course", status="inactive")

    response = client.get(f"{API}/tutors/courses", headers=tutor_headers)
    assert len(response.json()) == 2
