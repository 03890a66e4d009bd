from homitutor.database.database import UserRole
from tests.conftest import API, make_user, headers_for

def test_get_and_update_profile(client, student_headers):
    response = client.get(f"{API}/users/profile", headers=student_headers)
    assert response.status_code == 200
    assert response.json()["first_name"] == "Lan"

    response = client.patch(f"{API}/users/profile", headers=student_headers, json={
        "first_name": "Lan Anh",
        "phone": "0912345678",
        "address": "12 Tran Hung Dao, Ha Noi",
        "date_of_birth": "2007-03-15"
    })
    assert response.status_code == 200
    body = response.json()
    assert body["first_name"] == "Lan Anh"
    assert body["phone"] == "0912345678"
    assert body["date_of_birth"] == "2007-03-15"

def test_update_profile_requires_a_field(client, student_headers):
    response = client.patch(f"{API}/users/profile", headers=student_headers, json={})
    assert response.status_code == 400

def test_update_profile_sanitizes_html(client, student_headers):
    response = client.patch(f"{API}/users/profile", headers=student_headers,
                            json={"address": "<script>alert(1)</script>Ha Noi"})
    assert response.status_code == 200
    assert "<script>" not in response.json()["address"]

def test_search_users_by_role(client, db, student, student_headers):
    tutor = make_user(db, UserRole.TUTOR, "minh@example.com", first_name="Minh", last_name="Pham")
    make_user(db, UserRole.STUDENT, "minhanh@example.com", first_name="Minh Anh", last_name="Vo")

    # Students only find tutors
    response = client.get(f"{API}/users/search", params={"query": "minh"}, headers=student_headers)
    assert response.status_code == 200
    assert [u["id"] for u in response.json()["users"]] == [tutor.id]

    # Tutors only find students, never themselves
    response = client.get(f"{API}/users/search", params={"query": "a"}, headers=headers_for(tutor))
    ids = {u["id"] for u in response.json()["users"]}
    assert student.id in ids
    assert tutor.id not in ids

def test_search_users_requires_query(client, student_headers):
    response = client.get(f"{API}/users/search", params={"query": "   "}, headers=student_headers)
    assert response.status_code == 400
