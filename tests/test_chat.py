from datetime import datetime, timedelta
from homitutor.database.database import Message, UserRole
from tests.conftest import API, make_user, headers_for

def start(client, tutor_profile, headers, content=None):
    body = {"message": {"content": content}} if content else None
    return client.post(f"{API}/conversations/tutor/{tutor_profile.id}", headers=headers, json=body)

def test_start_conversation_once_per_pair(client, tutor_profile, student, student_headers):
    first = start(client, tutor_profile, student_headers, content="Chào thầy, em muốn học thêm toán")
    assert first.status_code == 201
    body = first.json()
    assert body["created"] is True
    assert body["student_id"] == student.id
    assert body["tutor_id"] == tutor_profile.user_id
    assert body["message"]["content"] == "Chào thầy, em muốn học thêm toán"

    second = start(client, tutor_profile, student_headers)
    assert second.status_code == 200
    assert second.json()["created"] is False
    assert second.json()["id"] == body["id"]

def test_start_conversation_rules(client, tutor_headers, student_headers, tutor_profile):
    assert client.post(f"{API}/conversations/tutor/missing", headers=student_headers).status_code == 404
    assert start(client, tutor_profile, tutor_headers).status_code == 403

def test_messages_and_unread_counts(client, tutor_profile, student_headers, tutor_headers):
    conversation_id = start(client, tutor_profile, student_headers).json()["id"]

    for text in ["Hello", "Are you free on Saturday?"]:
        response = client.post(f"{API}/conversations/{conversation_id}/messages", headers=student_headers,
                               json={"content": text})
        assert response.status_code == 201

    summaries = client.get(f"{API}/conversations/", headers=tutor_headers).json()
    assert len(summaries) == 1
    assert summaries[0]["unread_count"] == 2
    assert summaries[0]["last_message"]["content"] == "Are you free on Saturday?"
    assert summaries[0]["other_user"]["first_name"] == "Lan"

    # Own messages never count as unread
    assert client.get(f"{API}/conversations/", headers=student_headers).json()[0]["unread_count"] == 0

    detail = client.get(f"{API}/conversations/{conversation_id}", headers=tutor_headers).json()
    assert [m["content"] for m in detail["messages"]] == ["Hello", "Are you free on Saturday?"]
    assert len(detail["message_groups"]) == 1
    assert len(detail["message_groups"][0]["messages"]) == 2

    assert client.get(f"{API}/conversations/", headers=tutor_headers).json()[0]["unread_count"] == 0

def test_message_groups_split_by_sender_and_time(client, db, tutor_profile, student_headers, tutor_headers):
    conversation_id = start(client, tutor_profile, student_headers, content="First").json()["id"]
    client.post(f"{API}/conversations/{conversation_id}/messages", headers=tutor_headers, json={"content": "Reply"})
    client.post(f"{API}/conversations/{conversation_id}/messages", headers=tutor_headers, json={"content": "Later"})

    # Push the last message out of the grouping window
    later = db.query(Message).filter(Message.content == "Later").one()
    later.created_at = datetime.now() + timedelta(minutes=10)
    db.commit()

    groups = client.get(f"{API}/conversations/{conversation_id}", headers=student_headers).json()["message_groups"]
    assert [[m["content"] for m in g["messages"]] for g in groups] == [["First"], ["Reply"], ["Later"]]

def test_empty_or_html_only_message_is_refused(client, tutor_profile, student_headers):
    conversation_id = start(client, tutor_profile, student_headers).json()["id"]
    url = f"{API}/conversations/{conversation_id}/messages"
    assert client.post(url, headers=student_headers, json={"content": "   "}).status_code == 422
    assert client.post(url, headers=student_headers, json={"content": "<b></b>"}).status_code == 422

def test_message_markup_is_stored_as_plain_text(client, tutor_profile, student_headers):
    conversation_id = start(client, tutor_profile, student_headers).json()["id"]
    response = client.post(f"{API}/conversations/{conversation_id}/messages", headers=student_headers,
                           json={"content": "<b>Bài 3</b> <script>alert(1)</script>em chưa hiểu"})
    assert response.status_code == 201
    assert "<" not in response.json()["content"]
    assert response.json()["content"].startswith("Bài 3")

def test_outsider_cannot_read_conversation(client, db, tutor_profile, student_headers):
    conversation_id = start(client, tutor_profile, student_headers, content="Private").json()["id"]
    outsider = make_user(db, UserRole.STUDENT, "outsider@example.com")

    assert client.get(f"{API}/conversations/{conversation_id}", headers=headers_for(outsider)).status_code == 404
    response = client.post(f"{API}/conversations/{conversation_id}/messages", headers=headers_for(outsider),
                           json={"content": "Hi"})
    assert response.status_code == 404

def test_direct_message_between_student_and_tutor(client, db, student, tutor_profile, tutor_headers):
    response = client.post(f"{API}/conversations/direct", headers=tutor_headers,
                           json={"recipient_id": student.id, "content": "Buổi học mai dời sang 9h nhé"})
    assert response.status_code == 201

    # The tutor's direct message lands in the same conversation the student would open
    start_response = start(client, tutor_profile, headers_for(student))
    assert start_response.status_code == 200
    assert start_response.json()["id"] == response.json()["conversation_id"]

def test_direct_message_role_rules(client, db, student, student_headers, tutor_profile):
    other_student = make_user(db, UserRole.STUDENT, "other@example.com")
    response = client.post(f"{API}/conversations/direct", headers=student_headers,
                           json={"recipient_id": other_student.id, "content": "Hi"})
    assert response.status_code == 403

    response = client.post(f"{API}/conversations/direct", headers=student_headers,
                           json={"recipient_id": "missing", "content": "Hi"})
    assert response.status_code == 404

def test_mark_single_message_read(client, tutor_profile, student_headers, tutor_headers):
    created = start(client, tutor_profile, student_headers, content="Ping").json()
    url = f"{API}/conversations/{created['id']}/messages/{created['message']['id']}/read"

    # The sender's own message stays unread
    assert client.patch(url, headers=student_headers).json()["read"] is False
    assert client.patch(url, headers=tutor_headers).json()["read"] is True
    assert client.patch(f"{API}/conversations/{created['id']}/messages/missing/read",
                        headers=tutor_headers).status_code == 404

def test_admin_cannot_send_direct_messages(client, student, admin_headers):
    response = client.post(f"{API}/conversations/direct", headers=admin_headers,
                           json={"recipient_id": student.id, "content": "Hello"})
    assert response.status_code == 403
