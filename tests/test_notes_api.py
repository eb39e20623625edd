from conftest import ALICE_TOKEN, BOB_TOKEN, auth


def notes_count(client, question_id, token):
    body = client.get("/api/questions", headers=auth(token)).json()
    return next(row["notesCount"] for row in body["questions"] if row["id"] == question_id)


def test_notes_require_authentication(client, questions):
    assert client.get("/api/notes").status_code == 401
    assert client.post("/api/notes", json={"question_id": questions[0].id, "content": "x"}).status_code == 401


def test_create_note_invalidates_listing(client, users, questions, query_cache):
    target = questions[0]
    assert notes_count(client, target.id, ALICE_TOKEN) == 0
    assert len(query_cache) == 2

    response = client.post(
        "/api/notes",
        json={"question_id": target.id, "content": "Use a hash map", "template_used": "approach"},
        headers=auth(ALICE_TOKEN),
    )
    assert response.status_code == 200
    assert response.json()["question_title"] == "Two Sum"
    assert len(query_cache) == 0

    assert notes_count(client, target.id, ALICE_TOKEN) == 1
    assert notes_count(client, target.id, BOB_TOKEN) == 0


def test_create_note_for_unknown_question(client, users):
    response = client.post("/api/notes", json={"question_id": 999, "content": "x"}, headers=auth(ALICE_TOKEN))
    assert response.status_code == 404


def test_update_and_delete_are_owner_only(client, users, questions, query_cache):
    created = client.post(
        "/api/notes",
        json={"question_id": questions[0].id, "content": "first draft"},
        headers=auth(ALICE_TOKEN),
    ).json()
    note_id = created["id"]

    assert client.put(f"/api/notes/{note_id}", json={"content": "stolen"}, headers=auth(BOB_TOKEN)).status_code == 404
    assert client.delete(f"/api/notes/{note_id}", headers=auth(BOB_TOKEN)).status_code == 404

    client.get("/api/questions", headers=auth(ALICE_TOKEN))
    updated = client.put(f"/api/notes/{note_id}", json={"content": "second draft"}, headers=auth(ALICE_TOKEN))
    assert updated.status_code == 200
    assert updated.json()["content"] == "second draft"
    assert len(query_cache) == 0

    client.get("/api/questions", headers=auth(ALICE_TOKEN))
    deleted = client.delete(f"/api/notes/{note_id}", headers=auth(ALICE_TOKEN))
    assert deleted.json() == {"success": True}
    assert len(query_cache) == 0
    assert notes_count(client, questions[0].id, ALICE_TOKEN) == 0


def test_list_notes_with_filters(client, users, questions):
    for content, question in (("hash map trick", questions[0]), ("carry digits", questions[1])):
        client.post("/api/notes", json={"question_id": question.id, "content": content}, headers=auth(ALICE_TOKEN))
    client.post("/api/notes", json={"question_id": questions[0].id, "content": "bob hash"}, headers=auth(BOB_TOKEN))

    all_notes = client.get("/api/notes", headers=auth(ALICE_TOKEN)).json()["notes"]
    assert len(all_notes) == 2

    searched = client.get("/api/notes", params={"search": "hash"}, headers=auth(ALICE_TOKEN)).json()["notes"]
    assert [note["content"] for note in searched] == ["hash map trick"]

    by_question = client.get(
        "/api/notes", params={"question_id": questions[1].id}, headers=auth(ALICE_TOKEN)
    ).json()["notes"]
    assert [note["question_title"] for note in by_question] == ["Add Two Numbers"]
