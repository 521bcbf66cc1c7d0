from app.story_reader.models import SavedStory, User, db
from app.story_reader.utils import find_or_create_user


LONG_STORY = "Había una vez un gato muy curioso que vivía en una casa grande cerca del río."


def _save(client, **overrides):
    payload = {"story": LONG_STORY, "language": "es", "gradeLevel": "2", "translations": {"gato": "cat"}}
    payload.update(overrides)
    return client.post("/api/stories", json=payload)


def test_saved_items_require_sign_in(client):
    for path in ("/api/stories", "/api/vocabulary", "/api/quiz-scores"):
        resp = client.get(path)
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Not authenticated"}
    assert _save(client).status_code == 401


def test_save_and_list_story(auth_client):
    resp = _save(auth_client)

    assert resp.status_code == 201
    saved = resp.get_json()["story"]
    assert saved["title"] == LONG_STORY[:50] + "..."
    assert saved["gradeLevel"] == "2"

    listed = auth_client.get("/api/stories").get_json()["stories"]
    assert len(listed) == 1
    assert listed[0]["title"] == LONG_STORY[:50] + "..."
    assert "story" not in listed[0]

    full = auth_client.get(f"/api/stories/{saved['id']}").get_json()["story"]
    assert full["story"] == LONG_STORY
    assert full["translations"] == {"gato": "cat"}


def test_short_story_title_still_gets_ellipsis(auth_client):
    saved = _save(auth_client, story="Hola.").get_json()["story"]
    assert saved["title"] == "Hola...."


def test_save_story_validates_input(auth_client):
    assert _save(auth_client, story="  ").status_code == 400
    assert _save(auth_client, gradeLevel="13").get_json() == {"error": "Invalid grade level"}
    assert _save(auth_client, language="xx").status_code == 400


def test_delete_story(auth_client):
    story_id = _save(auth_client).get_json()["story"]["id"]

    assert auth_client.delete(f"/api/stories/{story_id}").get_json() == {"success": True}
    assert auth_client.get(f"/api/stories/{story_id}").status_code == 404
    assert auth_client.delete(f"/api/stories/{story_id}").status_code == 404


def test_other_users_stories_are_hidden(auth_client):
    other = User(google_id="google-2", email="other@example.com", name="Other")
    db.session.add(other)
    db.session.commit()
    story = SavedStory(user_id=other.id, title="x...", content="x", language="es", grade_level="1")
    db.session.add(story)
    db.session.commit()

    assert auth_client.get(f"/api/stories/{story.id}").status_code == 404
    assert auth_client.get("/api/stories").get_json()["stories"] == []


def test_saved_story_page(auth_client):
    story_id = _save(auth_client).get_json()["story"]["id"]

    html = auth_client.get(f"/stories/{story_id}").get_data(as_text=True)

    assert 'data-word="gato" title="cat"' in html
    assert "Reader" in html


def test_vocabulary_is_unique_per_word_and_language(auth_client):
    first = auth_client.post("/api/vocabulary", json={"word": "Gato", "translation": "cat", "language": "es",
                                                      "context": "El gato come."})
    assert first.status_code == 201
    assert first.get_json()["created"] is True

    second = auth_client.post("/api/vocabulary", json={"word": "gato", "translation": "cat", "language": "es"})
    assert second.status_code == 200
    assert second.get_json()["created"] is False
    assert second.get_json()["entry"]["id"] == first.get_json()["entry"]["id"]

    auth_client.post("/api/vocabulary", json={"word": "chat", "translation": "cat", "language": "fr"})

    all_words = auth_client.get("/api/vocabulary").get_json()["vocabulary"]
    spanish = auth_client.get("/api/vocabulary?language=es").get_json()["vocabulary"]
    assert len(all_words) == 2
    assert [entry["word"] for entry in spanish] == ["gato"]
    assert spanish[0]["context"] == "El gato come."


def test_delete_vocabulary(auth_client):
    entry_id = auth_client.post("/api/vocabulary", json={"word": "perro", "language": "es"}).get_json()["entry"]["id"]

    assert auth_client.delete(f"/api/vocabulary/{entry_id}").status_code == 200
    assert auth_client.get("/api/vocabulary").get_json()["vocabulary"] == []
    assert auth_client.delete(f"/api/vocabulary/{entry_id}").status_code == 404


def test_vocabulary_requires_word(auth_client):
    assert auth_client.post("/api/vocabulary", json={"language": "es"}).status_code == 400


def test_auth_status(client, user):
    anonymous = client.get("/api/auth/status").get_json()
    assert anonymous == {"authenticated": False, "user": None, "signInAvailable": False}

    with client.session_transaction() as sess:
        sess["user_id"] = user.id
    signed_in = client.get("/api/auth/status").get_json()
    assert signed_in["authenticated"] is True
    assert signed_in["user"]["email"] == "reader@example.com"
    assert signed_in["user"]["totalPoints"] == 0


def test_logout_clears_session(auth_client):
    resp = auth_client.get("/auth/logout")

    assert resp.status_code == 302
    assert auth_client.get("/api/auth/status").get_json()["authenticated"] is False


def test_google_sign_in_unavailable_without_credentials(client):
    assert client.get("/auth/google").status_code == 503


def test_find_or_create_user_updates_existing_account(app):
    created = find_or_create_user("google-9", "new@example.com", "New")
    again = find_or_create_user("google-9", "new@example.com", "Renamed", "https://example.com/p.png")

    assert again.id == created.id
    assert again.name == "Renamed"
    assert again.profile_picture == "https://example.com/p.png"
    assert again.last_login is not None
    assert User.query.count() == 1


def test_deleting_a_user_removes_their_stories(app, user):
    db.session.add(SavedStory(user_id=user.id, title="t...", content="t", language="es", grade_level="1"))
    db.session.commit()

    db.session.delete(user)
    db.session.commit()

    assert SavedStory.query.count() == 0
