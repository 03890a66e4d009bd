from tests.conftest import API, make_tutor

def test_favorite_tutor_flow(client, db, tutor_profile, student_headers):
    url = f"{API}/students/favorite-tutors"

    assert client.get(f"{url}/check/{tutor_profile.id}", headers=student_headers).json()["is_favorite"] is False

    assert client.post(f"{url}/{tutor_profile.id}", headers=student_headers).status_code == 201
    assert client.post(f"{url}/{tutor_profile.id}", headers=student_headers).status_code == 409

    other = make_tutor(db, "other@example.com", first_name="Thao")
    client.post(f"{url}/{other.id}", headers=student_headers)

    favorites = client.get(url, headers=student_headers).json()
    assert {t["id"] for t in favorites} == {tutor_profile.id, other.id}
    assert client.get(f"{url}/check/{tutor_profile.id}", headers=student_headers).json()["is_favorite"] is True

    assert client.delete(f"{url}/{tutor_profile.id}", headers=student_headers).status_code == 204
    assert client.delete(f"{url}/{tutor_profile.id}", headers=student_headers).status_code == 404
    assert [t["id"] for t in client.get(url, headers=student_headers).json()] == [other.id]

def test_favorite_unknown_tutor(client, student_headers):
    assert client.post(f"{API}/students/favorite-tutors/missing", headers=student_headers).status_code == 404

def test_favorites_are_student_only(client, tutor_headers):
    assert client.get(f"{API}/students/favorite-tutors", headers=tutor_headers).status_code == 403
