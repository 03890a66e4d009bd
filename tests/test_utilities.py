from datetime import datetime, timedelta
from homitutor.utilities import slugify, group_messages, paginate
from homitutor.database.database import User, UserRole
from tests.conftest import make_user

def test_slugify_vietnamese_names():
    assert slugify("Tiếng Việt") == "tieng-viet"
    assert slugify("Toán học") == "toan-hoc"
    assert slugify("Địa lý") == "dia-ly"
    assert slugify("Hóa học") == "hoa-hoc"

def test_slugify_strips_symbols_and_collapses_separators():
    assert slugify("  C++ & Lập trình  ") == "c-lap-trinh"
    assert slugify("Tin học -- cơ bản") == "tin-hoc-co-ban"
    assert slugify("Ngữ văn 12") == "ngu-van-12"
    assert slugify("") == ""

def test_group_messages_by_sender_within_window():
    start = datetime(2024, 5, 1, 9, 0, 0)
    messages = [
        {"sender_id": "a", "created_at": start},
        {"sender_id": "a", "created_at": start + timedelta(minutes=2)},
        {"sender_id": "a", "created_at": start + timedelta(minutes=6)},  # 4 min after previous, same group
        {"sender_id": "b", "created_at": start + timedelta(minutes=7)},
        {"sender_id": "b", "created_at": start + timedelta(minutes=13)},  # 6 min gap, new group
    ]
    groups = group_messages(messages)

    assert [g["sender_id"] for g in groups] == ["a", "b", "b"]
    assert [len(g["messages"]) for g in groups] == [3, 1, 1]
    assert groups[0]["created_at"] == start + timedelta(minutes=6)

def test_group_messages_window_is_exclusive():
    start = datetime(2024, 5, 1, 9, 0, 0)
    messages = [
        {"sender_id": "a", "created_at": start},
        {"sender_id": "a", "created_at": start + timedelta(minutes=5)},
    ]
    assert len(group_messages(messages)) == 2

def test_group_messages_sender_switch_starts_new_group():
    start = datetime(2024, 5, 1, 9, 0, 0)
    messages = [
        {"sender_id": "a", "created_at": start},
        {"sender_id": "b", "created_at": start + timedelta(seconds=10)},
        {"sender_id": "a", "created_at": start + timedelta(seconds=20)},
    ]
    assert [g["sender_id"] for g in group_messages(messages)] == ["a", "b", "a"]

def test_group_messages_empty():
    assert group_messages([]) == []

def test_paginate(db):
    for i in range(5):
        make_user(db, UserRole.STUDENT, f"student{i}@example.com")

    items, total, total_pages = paginate(db.query(User).order_by(User.email), page=2, limit=2)

    assert total == 5
    assert total_pages == 3
    assert [u.email for u in items] == ["student2@example.com", "student3@example.com"]
