import pytest

from app.services.roadmap_service import title_slug


def _create(client, admin, headers_for, **overrides):
    body = {
        "title": "Instant payouts to Nequi",
        "description": "Let professionals cash out directly to their Nequi wallet.",
        "category": "features",
        "status": "planned",
        "visibility": "published",
        "target_audience": ["professional"],
        "tags": ["payouts"],
    }
    body.update(overrides)
    return client.post("/admin/api/roadmap", json=body, headers=headers_for(admin))


@pytest.mark.parametrize("title, expected", [
    ("Instant Payouts (v2)!", "instant-payouts-v2"),
    ("Reseñas más rápidas", "resenas-mas-rapidas"),
    ("!!!", "item"),
])
def test_title_slug(title, expected):
    assert title_slug(title) == expected


def test_admin_creates_published_item(client, admin, headers_for):
    response = _create(client, admin, headers_for)

    assert response.status_code == 201
    data = response.json()
    assert data["slug"] == "instant-payouts-to-nequi"
    assert data["vote_count"] == 0
    assert data["published_at"] is not None


def test_duplicate_titles_get_unique_slugs(client, admin, headers_for):
    _create(client, admin, headers_for)
    second = _create(client, admin, headers_for)
    assert second.json()["slug"] == "instant-payouts-to-nequi-2"


def test_explicit_slug_clash_is_rejected(client, admin, headers_for):
    _create(client, admin, headers_for, slug="nequi")
    response = _create(client, admin, headers_for, slug="nequi")
    assert response.status_code == 400


@pytest.mark.parametrize("overrides", [
    {"title": "ab"},
    {"description": "short"},
    {"category": "marketing"},
    {"target_audience": ["partners"]},
    {"tags": ["t"] * 11},
    {"target_quarter": "2026-Q1"},
])
def test_invalid_items_are_rejected(client, admin, headers_for, overrides):
    response = _create(client, admin, headers_for, **overrides)
    assert response.status_code == 422


def test_non_admin_cannot_create(client, customer, headers_for):
    response = _create(client, customer, headers_for)
    assert response.status_code == 403


def test_public_listing_hides_drafts_and_filters_audience(client, admin, headers_for):
    _create(client, admin, headers_for)
    _create(client, admin, headers_for, title="Dark mode", visibility="draft", target_audience=["all"])
    _create(client, admin, headers_for, title="Saved addresses", target_audience=["customer"])

    everything = client.get("/api/roadmap").json()
    for_pros = client.get("/api/roadmap", params={"audience": "professional"}).json()

    assert {i["title"] for i in everything} == {"Instant payouts to Nequi", "Saved addresses"}
    assert [i["title"] for i in for_pros] == ["Instant payouts to Nequi"]


def test_draft_item_is_not_public(client, admin, headers_for):
    _create(client, admin, headers_for, slug="secret-plan", visibility="draft")
    assert client.get("/api/roadmap/secret-plan").status_code == 404


def test_vote_toggles(client, admin, customer, other_customer, headers_for):
    item_id = _create(client, admin, headers_for).json()["id"]

    added = client.post(f"/api/roadmap/{item_id}/vote", headers=headers_for(customer)).json()
    other = client.post(f"/api/roadmap/{item_id}/vote", headers=headers_for(other_customer)).json()
    removed = client.post(f"/api/roadmap/{item_id}/vote", headers=headers_for(customer)).json()

    assert added == {"success": True, "action": "added", "vote_count": 1, "has_voted": True}
    assert other["vote_count"] == 2
    assert removed == {"success": True, "action": "removed", "vote_count": 1, "has_voted": False}


def test_voting_requires_login(client, admin, headers_for):
    item_id = _create(client, admin, headers_for).json()["id"]
    assert client.post(f"/api/roadmap/{item_id}/vote").status_code == 401


def test_shipping_stamps_date_and_delete(client, admin, headers_for):
    item_id = _create(client, admin, headers_for).json()["id"]

    updated = client.put(f"/admin/api/roadmap/{item_id}", json={"status": "shipped"}, headers=headers_for(admin))
    assert updated.status_code == 200
    assert updated.json()["shipped_at"] is not None

    deleted = client.delete(f"/admin/api/roadmap/{item_id}", headers=headers_for(admin))
    assert deleted.status_code == 204
    assert client.get(f"/admin/api/roadmap/{item_id}", headers=headers_for(admin)).status_code == 404
