from conftest import OTHER_USER_ID, auth_headers

COMPONENTS = [
    {"id": 0, "type": "Role", "content": "You are a {{role}}"},
    {"id": 1, "type": "Instructions", "content": "Explain {{topic}}"},
]
SETTINGS = {"provider": "openai", "model": "gpt-4o"}


def _save(client, headers, name="Explainer", **extra):
    body = {"name": name, "components": COMPONENTS, "settings": SETTINGS, **extra}
    return client.post("/api/prompts", json=body, headers=headers)


def test_prompts_require_auth(client):
    assert client.get("/api/prompts").status_code == 401


def test_save_and_fetch_prompt(client, headers):
    response = _save(client, headers, category=" Teaching ")
    assert response.status_code == 200
    saved = response.json()["prompt"]
    assert saved["name"] == "Explainer"
    assert saved["category"] == "Teaching"

    listing = client.get("/api/prompts", headers=headers).json()["prompts"]
    assert [p["id"] for p in listing] == [saved["id"]]

    full = client.get("/api/prompts", params={"id": saved["id"]}, headers=headers).json()["prompt"]
    assert full["components"] == COMPONENTS
    assert full["settings"] == SETTINGS


def test_save_same_name_overwrites_by_default(client, headers):
    first = _save(client, headers).json()["prompt"]
    updated = client.post(
        "/api/prompts",
        json={"name": "Explainer", "components": COMPONENTS[:1], "settings": SETTINGS},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["prompt"]["id"] == first["id"]

    full = client.get("/api/prompts", params={"id": first["id"]}, headers=headers).json()["prompt"]
    assert full["components"] == COMPONENTS[:1]
    assert len(client.get("/api/prompts", headers=headers).json()["prompts"]) == 1


def test_save_without_overwrite_conflicts(client, headers):
    _save(client, headers)
    response = _save(client, headers, overwrite=False)
    assert response.status_code == 409
    assert response.json() == {"error": 'A prompt with the name "Explainer" already exists.'}


def test_prompts_are_owner_scoped(client, headers):
    saved = _save(client, headers).json()["prompt"]
    other = auth_headers(OTHER_USER_ID)
    assert client.get("/api/prompts", headers=other).json() == {"prompts": []}
    assert client.get("/api/prompts", params={"id": saved["id"]}, headers=other).status_code == 404


def test_rename_and_recategorize(client, headers):
    saved = _save(client, headers, category="A").json()["prompt"]
    response = client.patch("/api/prompts", json={"id": saved["id"], "newName": "Renamed"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["prompt"]["name"] == "Renamed"
    assert response.json()["prompt"]["category"] == "A"

    response = client.patch("/api/prompts", json={"id": saved["id"], "newCategory": None}, headers=headers)
    assert response.json()["prompt"]["category"] is None


def test_rename_conflict_and_missing(client, headers):
    first = _save(client, headers, name="One").json()["prompt"]
    _save(client, headers, name="Two")
    response = client.patch("/api/prompts", json={"id": first["id"], "newName": "Two"}, headers=headers)
    assert response.status_code == 409

    response = client.patch("/api/prompts", json={"id": "nope", "newName": "Three"}, headers=headers)
    assert response.status_code == 404

    response = client.patch("/api/prompts", json={"id": first["id"]}, headers=headers)
    assert response.status_code == 400


def test_delete_prompt(client, headers):
    saved = _save(client, headers).json()["prompt"]
    assert client.delete("/api/prompts", headers=headers).status_code == 400
    assert client.delete("/api/prompts", params={"id": saved["id"]}, headers=headers).json() == {"success": True}
    assert client.get("/api/prompts", headers=headers).json() == {"prompts": []}


# ── Templates ────────────────────────────────────────────────────────────────

def test_template_lifecycle(client, headers):
    response = client.post("/api/templates", json={"name": "Base", "components": COMPONENTS}, headers=headers)
    assert response.status_code == 200
    template_id = response.json()["template"]["id"]

    listing = client.get("/api/templates", headers=headers).json()["templates"]
    assert len(listing) == 1
    assert set(listing[0]) == {"id", "name", "updated_at"}

    by_name = client.get("/api/templates", params={"name": "Base"}, headers=headers).json()["template"]
    assert by_name["id"] == template_id
    assert by_name["components"] == COMPONENTS

    renamed = client.patch("/api/templates", json={"id": template_id, "newName": "Core"}, headers=headers)
    assert renamed.json()["template"]["name"] == "Core"

    assert client.delete("/api/templates", params={"id": template_id}, headers=headers).status_code == 200
    assert client.get("/api/templates", params={"id": template_id}, headers=headers).status_code == 404


def test_template_conflicts(client, headers):
    client.post("/api/templates", json={"name": "A", "components": COMPONENTS}, headers=headers)
    b = client.post("/api/templates", json={"name": "B", "components": COMPONENTS}, headers=headers).json()["template"]

    response = client.post("/api/templates", json={"name": "A", "components": [], "overwrite": False}, headers=headers)
    assert response.status_code == 409

    response = client.patch("/api/templates", json={"id": b["id"], "newName": "A"}, headers=headers)
    assert response.status_code == 409
    assert response.json() == {"error": 'A template with the name "A" already exists.'}
