import inspect

from fastapi.routing import APIRoute

from formdesk.main import app


DRAFT = {
    "title": "Customer Survey",
    "description": "Tell us how we did",
    "sections": [{"title": "About you", "order": 0}],
    "questions": [
        {"order": 0, "type": "short_text", "text": "Name", "required": True,
         "sectionRef": "order-0"},
        {"order": 1, "type": "single_choice", "text": "Visit again?",
         "options": ["Yes", "No"]},
    ],
}


def test_requests_without_session_are_rejected(client):
    assert client.get("/api/forms").status_code == 401
    assert client.post("/api/forms", json=DRAFT).status_code == 401


def test_create_form_with_content(client, owner_headers, store):
    response = client.post("/api/forms", json=DRAFT, headers=owner_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["form"]["slug"] == "customer-survey"
    assert body["form"]["status"] == "draft"
    assert len(body["created"]["sections"]) == 1
    assert len(body["created"]["questions"]) == 2
    section_id = body["sectionIds"]["order-0"]
    by_text = {q["text"]: q for q in store.rows("form_questions")}
    assert by_text["Name"]["section_id"] == section_id
    assert by_text["Visit again?"]["section_id"] is None

    cookie = response.headers["set-cookie"]
    assert cookie.startswith(f"pending_form_id={body['form']['id']}")
    assert "Max-Age=300" in cookie
    assert "HttpOnly" in cookie


def test_create_form_requires_title(client, owner_headers):
    response = client.post("/api/forms", json={"title": "  "}, headers=owner_headers)
    assert response.status_code == 422


def test_pending_form_lookup(client, owner_headers):
    assert client.get("/api/forms/pending", headers=owner_headers).status_code == 404

    created = client.post("/api/forms", json=DRAFT, headers=owner_headers).json()

    response = client.get("/api/forms/pending", headers=owner_headers)
    assert response.status_code == 200
    assert response.json() == {"id": created["form"]["id"]}


def test_list_only_returns_own_forms(client, owner, owner_headers, make_form):
    mine = make_form(owner.id)
    make_form("someone-else")

    response = client.get("/api/forms", headers=owner_headers)

    assert response.status_code == 200
    assert [f["id"] for f in response.json()] == [mine.id]


def test_get_form_with_questions(client, owner, owner_headers, make_form, queries):
    form = make_form(owner.id)
    section = queries.create_section(form.id, title="Intro", order=0)
    queries.create_question(form.id, order=0, type="multiple_choice", text="Pick",
                            required=False, options=["a", "b"], section_id=section.id)

    response = client.get(f"/api/forms/{form.id}", headers=owner_headers)

    assert response.status_code == 200
    body = response.json()
    assert [s["title"] for s in body["sections"]] == ["Intro"]
    assert body["questions"][0]["options"] == ["a", "b"]
    assert body["questions"][0]["section_id"] == section.id


def test_unknown_and_foreign_forms(client, auth, owner_headers, make_form):
    assert client.get("/api/forms/missing", headers=owner_headers).status_code == 404

    other = auth.add_user("other@example.com")
    form = make_form(other.id)
    response = client.get(f"/api/forms/{form.id}", headers=owner_headers)
    assert response.status_code == 403
    assert client.delete(f"/api/forms/{form.id}", headers=owner_headers).status_code == 403


def test_save_content_reconciles_and_clears_pending_cookie(client, owner_headers, store):
    created = client.post("/api/forms", json=DRAFT, headers=owner_headers).json()
    form_id = created["form"]["id"]
    section_id = created["sectionIds"]["order-0"]

    edited = {
        "title": "Customer Survey",
        "sections": [{"title": "About you", "order": 0}],
        "questions": [
            {"order": 0, "type": "short_text", "text": "Name", "required": True,
             "sectionRef": {"kind": "persisted", "id": section_id}},
        ],
    }
    response = client.put(f"/api/forms/{form_id}/content", json=edited, headers=owner_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["created"] == {"sections": [], "questions": []}
    assert body["updated"]["sections"] == [section_id]
    assert len(body["deleted"]["questions"]) == 1
    assert [q["text"] for q in store.rows("form_questions")] == ["Name"]
    assert 'pending_form_id=""' in response.headers["set-cookie"]


def test_save_content_failure_is_reported(client, owner, owner_headers, make_form, store):
    form = make_form(owner.id)
    store.fail_on = ("insert", "form_questions")

    response = client.put(f"/api/forms/{form.id}/content", json=DRAFT, headers=owner_headers)

    assert response.status_code == 500
    assert response.json()["detail"].startswith("Failed to save form")


def test_update_settings(client, owner, owner_headers, make_form):
    form = make_form(owner.id, slug="survey")
    make_form(owner.id, slug="taken")
    url = f"/api/forms/{form.id}/settings"

    response = client.patch(url, json={"theme": "dark", "company_name": "Acme"},
                            headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["theme"] == "dark"
    assert response.json()["company_name"] == "Acme"

    assert client.patch(url, json={"slug": "Bad Slug"}, headers=owner_headers).status_code == 400
    assert client.patch(url, json={"title": " "}, headers=owner_headers).status_code == 400
    assert client.patch(url, json={"slug": "taken"}, headers=owner_headers).status_code == 409
    assert client.patch(url, json={"layout": "sideways"}, headers=owner_headers).status_code == 422


def test_update_status(client, owner, owner_headers, make_form, queries):
    form = make_form(owner.id, slug="launch")

    response = client.put(f"/api/forms/{form.id}/status", json={"status": "published"},
                          headers=owner_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "published"
    assert queries.get_form_by_slug("launch").id == form.id


def test_delete_form(client, owner, owner_headers, make_form, queries, storage):
    form = make_form(owner.id)
    queries.create_question(form.id, order=0, type="short_text", text="Q", required=False)

    response = client.delete(f"/api/forms/{form.id}", headers=owner_headers)

    assert response.status_code == 200
    assert response.json() == {"message": "Form deleted successfully", "id": form.id}
    assert queries.get_form(form.id) is None
    assert queries.get_questions(form.id) == []


def test_logo_upload_and_removal(client, owner, owner_headers, make_form, storage):
    form = make_form(owner.id)
    url = f"/api/forms/{form.id}/logo"

    response = client.post(url, files={"file": ("logo.png", b"\x89PNG", "image/png")},
                           headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["company_logo_url"].startswith(storage.public_url(form.id))
    assert len(storage.objects) == 1

    bad = client.post(url, files={"file": ("notes.txt", b"hi", "text/plain")},
                      headers=owner_headers)
    assert bad.status_code == 400

    response = client.delete(url, headers=owner_headers)
    assert response.status_code == 200
    assert response.json()["company_logo_url"] is None
    assert storage.objects == {}


def test_form_title(client, owner, owner_headers, make_form):
    form = make_form(owner.id, title="Lunch order")
    response = client.get(f"/api/forms/{form.id}/title", headers=owner_headers)
    assert response.json() == {"title": "Lunch order"}


def test_qr_print_sheet(client, owner, owner_headers, make_form):
    form = make_form(owner.id, title="Lunch order", slug="lunch-order")

    response = client.get(f"/api/forms/{form.id}/qr-pdf", headers=owner_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert response.headers["content-disposition"] == 'inline; filename="lunch-order-qr-code.html"'
    assert "Lunch order" in response.text
    assert "https://forms.example.com/f/lunch-order?source=qr" in response.text
    assert "data:image/png;base64," in response.text


def test_session_cookie_is_accepted(client, auth, owner, make_form):
    form = make_form(owner.id, title="Cookie form")
    client.cookies.set("sb-access-token", auth.token_for(owner))

    response = client.get(f"/api/forms/{form.id}/title")

    assert response.json() == {"title": "Cookie form"}


def test_update_settings_rejects_null_title_and_slug(client, owner, owner_headers, make_form, queries):
    form = make_form(owner.id, title="Keep me", slug="keep-me")
    url = f"/api/forms/{form.id}/settings"

    title = client.patch(url, json={"title": None}, headers=owner_headers)
    assert title.status_code == 400
    assert title.json()["detail"] == "Form title is required"

    slug = client.patch(url, json={"slug": None}, headers=owner_headers)
    assert slug.status_code == 400
    assert slug.json()["detail"].startswith("Slug must be")

    stored = queries.get_form(form.id)
    assert (stored.title, stored.slug) == ("Keep me", "keep-me")


def test_backend_routes_run_in_the_threadpool():
    blocking = [
        route for route in app.routes
        if isinstance(route, APIRoute) and route.path not in ("/health",)
    ]
    assert blocking
    for route in blocking:
        assert not inspect.iscoroutinefunction(route.endpoint), route.path
