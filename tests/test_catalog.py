from homitutor.database.database import Testimonial
from tests.conftest import API, make_course, make_tutor

def test_list_subjects_with_slug(client, subject, other_subject):
    response = client.get(f"{API}/subjects")
    assert response.status_code == 200
    subjects = {s["name"]: s for s in response.json()}
    assert subjects["Toán học"]["slug"] == "toan-hoc"
    assert subjects["Vật lý"]["slug"] == "vat-ly"

def test_get_subject_with_levels(client, subject, level):
    response = client.get(f"{API}/subjects/{subject.id}")
    assert response.status_code == 200
    assert [lvl["id"] for lvl in response.json()["education_levels"]] == [level.id]

    response = client.get(f"{API}/subjects/{subject.id}/education-levels")
    assert [lvl["name"] for lvl in response.json()] == ["Trung học phổ thông"]

def test_get_unknown_subject(client):
    assert client.get(f"{API}/subjects/does-not-exist").status_code == 404

def test_subject_courses_only_active_and_verified(client, db, subject, level, tutor_profile):
    active = make_course(db, tutor_profile, subject, level, title="Active course")
    make_course(db, tutor_profile, subject, level, title="Old course", status="inactive")
    hidden_tutor = make_tutor(db, "hidden@example.com", verified=False)
    make_course(db, hidden_tutor, subject, level, title="Hidden course")

    response = client.get(f"{API}/subjects/{subject.id}/courses")
    assert [c["id"] for c in response.json()] == [active.id]

def test_education_levels_and_testimonials(client, db, level):
    db.add(Testimonial(name="Hà", role="Phụ huynh", rating=5, comment="Rất hài lòng"))
    db.add(Testimonial(name="Hidden", role="Học sinh", rating=3, comment="Not shown", is_featured=False))
    db.commit()

    assert [lvl["name"] for lvl in client.get(f"{API}/education-levels").json()] == [level.name]
    assert [t["name"] for t in client.get(f"{API}/testimonials").json()] == ["Hà"]
