import pytest
from fastapi.testclient import TestClient

from app.models.change_log import ChangeLog
from app.repositories.question_repository import QuestionRepository
from app.services.csv_import_service import CsvImportService
from conftest import ADMIN_TOKEN, ALICE_TOKEN, BOB_TOKEN, auth, make_question


@pytest.mark.parametrize("headers", [{}, auth(ALICE_TOKEN), auth("unknown-token")])
def test_cache_endpoints_require_admin(client, users, headers):
    assert client.get("/api/admin/cache", headers=headers).status_code == 403
    assert client.delete("/api/admin/cache", headers=headers).status_code == 403


def test_cache_stats(client, users, questions):
    client.get("/api/questions")

    response = client.get("/api/admin/cache", headers=auth(ADMIN_TOKEN))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["stats"]["size"] == 2
    assert "filters:topics-companies" in body["stats"]["keys"]
    assert any(key.startswith("questions:") for key in body["stats"]["keys"])
    assert body["timestamp"]


def test_cache_clear(client, users, questions, query_cache):
    client.get("/api/questions")
    assert len(query_cache) == 2

    response = client.delete("/api/admin/cache", headers=auth(ADMIN_TOKEN))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "All caches cleared successfully"
    assert body["timestamp"]
    assert len(query_cache) == 0


def test_create_question_invalidates(client, users, questions, query_cache):
    client.get("/api/questions")
    response = client.post(
        "/api/admin/questions",
        json={"title": "Valid Parentheses", "difficulty": "EASY", "topics": ["Stack"], "companies": ["Meta"]},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 200
    assert response.json()["question"]["topics"] == ["Stack"]
    assert len(query_cache) == 0

    body = client.get("/api/questions").json()
    assert body["totalCount"] == 31
    assert "Stack" in body["filters"]["topics"]


def test_create_duplicate_title(client, users, questions):
    response = client.post(
        "/api/admin/questions",
        json={"title": "two sum", "difficulty": "EASY"},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 409


def test_question_mutations_require_admin(client, users, questions):
    response = client.put(
        f"/api/admin/questions/{questions[0].id}",
        json={"title": "Hacked", "difficulty": "EASY"},
        headers=auth(ALICE_TOKEN),
    )
    assert response.status_code == 403


def test_update_missing_question(client, users):
    response = client.put(
        "/api/admin/questions/999",
        json={"title": "Nothing", "difficulty": "EASY"},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 404


def test_delete_question_invalidates_and_logs(client, users, questions, query_cache, db_session):
    client.get("/api/questions")
    target = questions[0]

    response = client.delete(f"/api/admin/questions/{target.id}", headers=auth(ADMIN_TOKEN))
    assert response.status_code == 200
    assert response.json()["message"] == "Question deleted successfully"
    assert len(query_cache) == 0

    body = client.get("/api/questions").json()
    assert body["totalCount"] == 29
    assert all(row["id"] != target.id for row in body["questions"])

    types = [entry.change_type for entry in db_session.query(ChangeLog).all()]
    assert types == ["DELETED"]
    assert client.delete(f"/api/admin/questions/{target.id}", headers=auth(ADMIN_TOKEN)).status_code == 404


def test_csv_upload_creates_updates_and_invalidates(client, users, questions, query_cache):
    client.get("/api/questions")
    csv_body = (
        "Title,Difficulty,Frequency,AcceptanceRate,Link,Topics,Companies\n"
        "Two Sum,EASY,90,,,Array,Apple\n"
        "Climbing Stairs,easy,30,,https://example.com/climb,Dynamic Programming,\n"
        "Broken Row,IMPOSSIBLE,,,,,\n"
        ",MEDIUM,,,,,\n"
    )

    response = client.post(
        "/api/admin/upload",
        files={"file": ("questions.csv", csv_body, "text/csv")},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["processed"] == 2
    assert body["created"] == 1
    assert body["updated"] == 1
    assert len(body["errors"]) == 2
    assert any("Difficulty must be EASY, MEDIUM, or HARD" in error for error in body["errors"])
    assert any("Title is required" in error for error in body["errors"])
    assert len(query_cache) == 0

    listing = client.get("/api/questions", params={"search": "Two Sum"}).json()
    row = listing["questions"][0]
    assert row["companies"] == ["Google", "Amazon", "Apple"]
    assert row["frequency"] == 90
    assert row["acceptanceRate"] == 25.0


def test_csv_upload_without_changes_keeps_cache(client, users, questions, query_cache):
    client.get("/api/questions")
    response = client.post(
        "/api/admin/upload",
        files={"file": ("questions.csv", "title,difficulty\nBad,WRONG\n", "text/csv")},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 200
    assert response.json()["created"] == 0
    assert len(query_cache) == 2


def test_csv_upload_rejects_non_csv(client, users):
    response = client.post(
        "/api/admin/upload",
        files={"file": ("questions.txt", "title,difficulty\n", "text/plain")},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 400


def test_csv_upload_requires_columns(client, users):
    response = client.post(
        "/api/admin/upload",
        files={"file": ("questions.csv", "name,level\nfoo,EASY\n", "text/csv")},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 400


def test_regenerate_filters(client, users, questions, query_cache):
    client.get("/api/questions")
    response = client.post("/api/admin/regenerate-filters", headers=auth(ADMIN_TOKEN))
    assert response.status_code == 200
    body = response.json()
    assert body["companies"] == ["Amazon", "Google", "Meta"]
    assert "Hash Table" in body["topics"]
    assert len(query_cache) == 0


def test_csv_non_ascii_digits_are_row_errors(client, users, questions, query_cache):
    client.get("/api/questions")
    response = client.post(
        "/api/admin/upload",
        files={"file": ("questions.csv", "title,difficulty,frequency\nBrand New Problem,EASY,5\nAnother,EASY,²\n", "text/csv")},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 1
    assert body["errors"] == ["Row 2: Frequency must be a whole number"]
    assert len(query_cache) == 0
    assert client.get("/api/questions").json()["totalCount"] == 31


def test_csv_failure_midway_still_invalidates(api_app, users, questions, query_cache, monkeypatch):
    real_apply_row = CsvImportService._apply_row

    def fail_on_second_row(self, row, index, result):
        if index == 2:
            raise RuntimeError("database unavailable")
        return real_apply_row(self, row, index, result)

    monkeypatch.setattr(CsvImportService, "_apply_row", fail_on_second_row)
    failing_client = TestClient(api_app, raise_server_exceptions=False)
    assert failing_client.get("/api/questions").json()["totalCount"] == 30

    response = failing_client.post(
        "/api/admin/upload",
        files={"file": ("questions.csv", "title,difficulty\nBrand New Problem,EASY\nAnother,EASY\n", "text/csv")},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 500
    assert len(query_cache) == 0
    assert failing_client.get("/api/questions").json()["totalCount"] == 31


def test_question_tags_must_not_contain_commas(client, users):
    response = client.post(
        "/api/admin/questions",
        json={"title": "Longest Substring", "difficulty": "MEDIUM", "topics": ["Two Pointers, Sliding"]},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 422


def test_cleanup_topics_rewrites_tags_and_invalidates(client, users, db_session, query_cache):
    messy = make_question(db_session, "Messy", topics=['"Array"', "Array", "A", "Hash   Table"], companies=["Meta", "`Amazon`"])
    make_question(db_session, "Tidy", topics=["Array"], companies=["Google"])
    client.get("/api/questions")
    assert len(query_cache) == 2

    assert client.post("/api/admin/cleanup-topics", headers=auth(ALICE_TOKEN)).status_code == 403
    response = client.post("/api/admin/cleanup-topics", headers=auth(ADMIN_TOKEN))
    assert response.status_code == 200
    body = response.json()
    assert body["cleaned_count"] == 1
    assert body["total_topics_cleaned"] == 2
    assert body["total_companies_cleaned"] == 0
    assert body["results"][0]["new_topics"] == ["Array", "Hash Table"]
    assert body["results"][0]["new_companies"] == ["Amazon", "Meta"]
    assert len(query_cache) == 0

    db_session.expire_all()
    refreshed = QuestionRepository(db_session).get_by_id(messy.id)
    assert QuestionRepository.parse_topics(refreshed) == ["Array", "Hash Table"]


def test_change_log_listing(client, users, questions):
    client.post("/api/admin/questions", json={"title": "Valid Parentheses", "difficulty": "EASY"}, headers=auth(ADMIN_TOKEN))
    client.put(
        f"/api/admin/questions/{questions[0].id}",
        json={"title": "Two Sum", "difficulty": "MEDIUM"},
        headers=auth(ADMIN_TOKEN),
    )
    client.delete(f"/api/admin/questions/{questions[1].id}", headers=auth(ADMIN_TOKEN))

    assert client.get("/api/admin/changes", headers=auth(ALICE_TOKEN)).status_code == 403

    body = client.get("/api/admin/changes", headers=auth(ADMIN_TOKEN)).json()
    assert [change["change_type"] for change in body["changes"]] == ["DELETED", "UPDATED", "NEW"]
    assert body["pagination"] == {"page": 1, "limit": 50, "total": 3, "pages": 1}
    assert body["changes"][1]["question"]["title"] == "Two Sum"
    assert body["changes"][0]["question"] is None

    updated = client.get("/api/admin/changes", params={"type": "UPDATED"}, headers=auth(ADMIN_TOKEN)).json()
    assert len(updated["changes"]) == 1
    assert updated["changes"][0]["changes"]["new"]["difficulty"] == "MEDIUM"

    paged = client.get("/api/admin/changes", params={"page": 2, "limit": 2}, headers=auth(ADMIN_TOKEN)).json()
    assert [change["change_type"] for change in paged["changes"]] == ["NEW"]
    assert paged["pagination"]["pages"] == 2


def test_premium_status(client, users, questions):
    assert client.get("/api/premium/status").status_code == 401

    free = client.get("/api/premium/status", headers=auth(ALICE_TOKEN)).json()
    assert free["success"] is True
    assert free["subscription"]["maxQuestions"] == 100
    assert free["subscription"]["totalQuestions"] == 30
    assert free["subscription"]["canAccessAll"] is False

    premium = client.get("/api/premium/status", headers=auth(BOB_TOKEN)).json()["subscription"]
    assert premium["canAccessAll"] is True
    assert premium["maxQuestions"] == -1
    assert premium["planName"] == "PREMIUM"
