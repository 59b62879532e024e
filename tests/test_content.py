"""
tests/test_content.py -- Integration tests for testimonials, inquiries, interest
sign-ups, text banners and pages.

Covers:
  - Testimonials: public reads, published-only feed, admin writes, stars bounds
  - Inquiries: public submission, admin resolve / unresolve rules, stats
  - Interests: public sign-up, duplicate email 409, admin search and delete
  - Text banners: public active feed, admin CRUD and toggle
  - Pages: homepage 404 until saved, navbar default and normalization,
    legal pages by type, generic pages with version bumps and path conflicts
"""

from __future__ import annotations

from content import pages

# ---------------------------------------------------------------------------
# Testimonials
# ---------------------------------------------------------------------------


def _testimonial(**overrides):
    data = {
        "name": "Jordan Reyes",
        "stars": 5,
        "quote": "Fast shipping and great quality.",
        "occupation": "Designer",
        "location": "Austin, TX",
    }
    data.update(overrides)
    return data


def test_create_testimonial_requires_admin(client, customer_headers, admin_headers):
    assert client.post("/api/v1/testimonials", json=_testimonial()).status_code == 401
    assert client.post("/api/v1/testimonials", json=_testimonial(), headers=customer_headers).status_code == 403
    resp = client.post("/api/v1/testimonials", json=_testimonial(), headers=admin_headers)
    assert resp.status_code == 201
    assert resp.json()["published"] is False


def test_testimonial_stars_bounds(client, admin_headers):
    assert client.post("/api/v1/testimonials", json=_testimonial(stars=6), headers=admin_headers).status_code == 400
    assert client.post("/api/v1/testimonials", json=_testimonial(stars=0), headers=admin_headers).status_code == 201


def test_published_feed_and_filters(client, admin_headers):
    hidden = client.post("/api/v1/testimonials", json=_testimonial(name="Hidden"), headers=admin_headers).json()
    client.post("/api/v1/testimonials", json=_testimonial(name="Shown", published=True), headers=admin_headers)
    client.post(
        "/api/v1/testimonials",
        json=_testimonial(name="Lukewarm", stars=2, published=True),
        headers=admin_headers,
    )

    feed = client.get("/api/v1/testimonials/published").json()
    assert {t["name"] for t in feed["testimonials"]} == {"Shown", "Lukewarm"}
    assert feed["pagination"]["limit"] == 6

    top = client.get("/api/v1/testimonials", params={"stars": 4, "published": True}).json()
    assert [t["name"] for t in top["testimonials"]] == ["Shown"]

    found = client.get("/api/v1/testimonials", params={"search": "hid"}).json()
    assert [t["id"] for t in found["testimonials"]] == [hidden["id"]]


def test_publish_update_delete_testimonial(client, admin_headers):
    created = client.post("/api/v1/testimonials", json=_testimonial(), headers=admin_headers).json()
    path = f"/api/v1/testimonials/{created['id']}"

    published = client.patch(f"{path}/publish", json={"published": True}, headers=admin_headers)
    assert published.json()["published"] is True

    updated = client.put(path, json={"quote": "Even better the second time."}, headers=admin_headers)
    assert updated.json()["quote"] == "Even better the second time."
    assert updated.json()["name"] == "Jordan Reyes"

    assert client.get(path).status_code == 200
    assert client.delete(path, headers=admin_headers).status_code == 200
    assert client.get(path).status_code == 404
    assert client.put(path, json={"stars": 1}, headers=admin_headers).status_code == 404


# ---------------------------------------------------------------------------
# Inquiries
# ---------------------------------------------------------------------------


def _inquiry(client, **overrides):
    data = {"name": "Pat Doe", "email": "pat@example.com", "purpose": "Order", "message": "Where is my parcel?"}
    data.update(overrides)
    return client.post("/api/v1/inquiries", json=data)


def test_submit_inquiry_is_public(client):
    resp = _inquiry(client)
    assert resp.status_code == 201
    assert resp.json()["resolved"] is False
    assert _inquiry(client, email="nope").status_code == 400


def test_inquiry_admin_only(client, customer_headers):
    _inquiry(client)
    assert client.get("/api/v1/inquiries").status_code == 401
    assert client.get("/api/v1/inquiries", headers=customer_headers).status_code == 403


def test_resolve_and_unresolve(client, admin, admin_headers):
    inquiry_id = _inquiry(client).json()["id"]
    path = f"/api/v1/inquiries/{inquiry_id}"

    blank = client.patch(f"{path}/resolve", json={"resolving_message": "   "}, headers=admin_headers)
    assert blank.status_code == 400

    resolved = client.patch(f"{path}/resolve", json={"resolving_message": "Shipped today."}, headers=admin_headers)
    assert resolved.status_code == 200
    body = resolved.json()
    assert body["resolved"] is True
    assert body["resolved_by"]["id"] == admin.id
    assert body["resolving_message"] == "Shipped today."
    assert body["resolved_at"]

    again = client.patch(f"{path}/resolve", json={"resolving_message": "Twice"}, headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "already_resolved"

    reopened = client.patch(f"{path}/unresolve", headers=admin_headers)
    assert reopened.json()["resolved"] is False
    assert reopened.json()["resolved_by"] is None

    not_resolved = client.patch(f"{path}/unresolve", headers=admin_headers)
    assert not_resolved.status_code == 400
    assert not_resolved.json()["error"]["code"] == "not_resolved"


def test_resolve_unknown_inquiry_is_404(client, admin_headers):
    resp = client.patch("/api/v1/inquiries/9999/resolve", json={"resolving_message": "x"}, headers=admin_headers)
    assert resp.status_code == 404


def test_inquiry_list_filters_and_stats(client, admin_headers):
    first = _inquiry(client).json()["id"]
    _inquiry(client, name="Lee")
    client.patch(f"/api/v1/inquiries/{first}/resolve", json={"resolving_message": "Done"}, headers=admin_headers)

    pending = client.get("/api/v1/inquiries", params={"resolved": False}, headers=admin_headers).json()
    assert [i["name"] for i in pending["inquiries"]] == ["Lee"]

    stats = client.get("/api/v1/inquiries/stats", headers=admin_headers).json()
    assert stats == {"total": 2, "resolved": 1, "pending": 1, "recent": 2, "resolution_rate": 50.0}


def test_delete_inquiry(client, admin_headers):
    inquiry_id = _inquiry(client).json()["id"]
    assert client.delete(f"/api/v1/inquiries/{inquiry_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/v1/inquiries/{inquiry_id}", headers=admin_headers).status_code == 404


# ---------------------------------------------------------------------------
# Interest sign-ups
# ---------------------------------------------------------------------------


def test_register_interest_is_public(client):
    resp = client.post("/api/v1/interests", json={"email": "  Ada@Example.com "})
    assert resp.status_code == 201
    assert resp.json()["email"] == "ada@example.com"
    assert client.post("/api/v1/interests", json={"email": "not-an-email"}).status_code == 400


def test_duplicate_interest_is_409(client):
    client.post("/api/v1/interests", json={"email": "ada@example.com"})
    resp = client.post("/api/v1/interests", json={"email": "ADA@example.com"})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "duplicate_interest"


def test_interest_list_search_and_delete(client, admin_headers, customer_headers):
    for email in ("ada@example.com", "lee@shop.io", "sam@example.com"):
        client.post("/api/v1/interests", json={"email": email})
    assert client.get("/api/v1/interests").status_code == 401
    assert client.get("/api/v1/interests", headers=customer_headers).status_code == 403

    body = client.get("/api/v1/interests", params={"search": "EXAMPLE"}, headers=admin_headers).json()
    assert [i["email"] for i in body["interests"]] == ["sam@example.com", "ada@example.com"]
    assert body["pagination"]["total"] == 2

    interest_id = body["interests"][0]["id"]
    assert client.delete(f"/api/v1/interests/{interest_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/v1/interests/{interest_id}", headers=admin_headers).status_code == 404
    # The address can sign up again once removed.
    assert client.post("/api/v1/interests", json={"email": "sam@example.com"}).status_code == 201


# ---------------------------------------------------------------------------
# Text banners
# ---------------------------------------------------------------------------


def _banner(client, headers, **overrides):
    data = {"content": "Free shipping over $50"}
    data.update(overrides)
    return client.post("/api/v1/text-banners", json=data, headers=headers)


def test_create_banner_requires_admin(client, customer_headers, admin_headers):
    assert _banner(client, {}).status_code == 401
    assert _banner(client, customer_headers).status_code == 403
    resp = _banner(client, admin_headers)
    assert resp.status_code == 201
    assert resp.json()["is_active"] is True
    assert _banner(client, admin_headers, content="   ").status_code == 400


def test_active_banners_are_public_and_newest_first(client, admin_headers):
    _banner(client, admin_headers, content="First")
    _banner(client, admin_headers, content="Hidden", is_active=False)
    _banner(client, admin_headers, content="Second")
    resp = client.get("/api/v1/text-banners/active")
    assert resp.status_code == 200
    assert [b["content"] for b in resp.json()] == ["Second", "First"]


def test_banner_update_toggle_and_delete(client, admin_headers):
    banner_id = _banner(client, admin_headers).json()["id"]

    resp = client.put(f"/api/v1/text-banners/{banner_id}", json={"content": "Sale ends Sunday"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["content"] == "Sale ends Sunday"
    assert resp.json()["is_active"] is True

    toggled = client.patch(f"/api/v1/text-banners/{banner_id}/toggle-status", headers=admin_headers).json()
    assert toggled["is_active"] is False
    assert client.get("/api/v1/text-banners/active").json() == []
    toggled = client.patch(f"/api/v1/text-banners/{banner_id}/toggle-status", headers=admin_headers).json()
    assert toggled["is_active"] is True

    fetched = client.get(f"/api/v1/text-banners/{banner_id}", headers=admin_headers).json()
    assert fetched["content"] == "Sale ends Sunday"
    assert client.delete(f"/api/v1/text-banners/{banner_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/v1/text-banners/{banner_id}", headers=admin_headers).status_code == 404


def test_unknown_banner_is_404(client, admin_headers):
    assert client.put("/api/v1/text-banners/999", json={"is_active": False}, headers=admin_headers).status_code == 404
    assert client.patch("/api/v1/text-banners/999/toggle-status", headers=admin_headers).status_code == 404
    assert client.delete("/api/v1/text-banners/999", headers=admin_headers).status_code == 404


def test_banner_list_search(client, admin_headers):
    _banner(client, admin_headers, content="Free shipping over $50")
    _banner(client, admin_headers, content="New mugs in stock")
    body = client.get("/api/v1/text-banners", params={"search": "SHIPPING"}, headers=admin_headers).json()
    assert [b["content"] for b in body["text_banners"]] == ["Free shipping over $50"]
    assert body["pagination"]["total"] == 1


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


def test_homepage_404_until_saved(client, admin, admin_headers):
    assert client.get("/api/v1/pages/homepage").status_code == 404
    body = {"hero_slides": [{"title": "Spring drop", "cta_text": "Shop now", "cta_link": "/new"}]}
    saved = client.put("/api/v1/pages/homepage", json=body, headers=admin_headers)
    assert saved.status_code == 200
    assert saved.json()["version"] == 1
    assert saved.json()["created_by"] == admin.id

    page = client.get("/api/v1/pages/homepage").json()
    assert page["kind"] == "homepage"
    assert page["content"]["hero_slides"][0]["title"] == "Spring drop"

    again = client.put("/api/v1/pages/homepage", json=body, headers=admin_headers)
    assert again.json()["version"] == 2

    assert client.delete("/api/v1/pages/homepage", headers=admin_headers).status_code == 200
    assert client.delete("/api/v1/pages/homepage", headers=admin_headers).status_code == 404


def test_homepage_write_requires_admin(client, customer_headers):
    assert client.put("/api/v1/pages/homepage", json={}, headers=customer_headers).status_code == 403


def test_navbar_default_and_save(client, admin_headers):
    default = client.get("/api/v1/pages/navbar")
    assert default.status_code == 200
    assert default.json()["id"] is None
    assert [s["title"] for s in default.json()["content"]["sections"]] == ["WOMEN", "MEN"]

    body = {
        "sections": [
            {
                "title": "SALE",
                "categories": [{"title": "Last chance", "items": [{"label": "Hats"}, {"label": "Bags"}]}],
            },
            {"title": "KIDS"},
        ]
    }
    saved = client.put("/api/v1/pages/navbar", json=body, headers=admin_headers)
    assert saved.status_code == 200
    sections = saved.json()["content"]["sections"]
    assert [s["order"] for s in sections] == [1, 2]
    assert all(s["id"] for s in sections)
    assert [i["order"] for i in sections[0]["categories"][0]["items"]] == [1, 2]

    assert client.get("/api/v1/pages/navbar").json()["content"]["sections"][0]["title"] == "SALE"

    assert client.delete("/api/v1/pages/navbar", headers=admin_headers).status_code == 200
    assert client.get("/api/v1/pages/navbar").json()["content"]["sections"][0]["title"] == "WOMEN"


def test_navbar_requires_a_section(client, admin_headers):
    resp = client.put("/api/v1/pages/navbar", json={"sections": []}, headers=admin_headers)
    assert resp.status_code == 400


def test_legal_types(client):
    types = client.get("/api/v1/pages/legal/types").json()
    assert {t["type"] for t in types} == set(pages.LEGAL_TYPES)
    privacy = next(t for t in types if t["type"] == "privacy-policy")
    assert privacy == {"type": "privacy-policy", "title": "Privacy Policy", "path": "legal/privacy-policy"}


def test_unknown_legal_type_is_400(client, admin_headers):
    resp = client.get("/api/v1/pages/legal/secret-policy")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_legal_type"
    assert client.put("/api/v1/pages/legal/secret-policy", json={"body": "x"}, headers=admin_headers).status_code == 400


def test_legal_page_lifecycle(client, admin_headers):
    assert client.get("/api/v1/pages/legal/privacy-policy").status_code == 404

    saved = client.put("/api/v1/pages/legal/privacy-policy", json={"body": "# We respect you"}, headers=admin_headers)
    assert saved.status_code == 200
    content = saved.json()["content"]
    assert content["title"] == "Privacy Policy"
    assert content["last_updated"]

    client.put(
        "/api/v1/pages/legal/terms-of-service",
        json={"title": "Terms", "body": "Be nice."},
        headers=admin_headers,
    )
    listed = client.get("/api/v1/pages/legal").json()
    assert [p["path"] for p in listed] == ["legal/privacy-policy", "legal/terms-of-service"]

    assert client.delete("/api/v1/pages/legal/privacy-policy", headers=admin_headers).status_code == 200
    assert client.get("/api/v1/pages/legal/privacy-policy").status_code == 404


def test_generic_page_crud(client, admin_headers, customer_headers):
    content = {"kind": "generic", "fields": {"headline": "Hi", "year": 2020}}
    body = {"name": "About", "path": "about", "content": content}
    created = client.post("/api/v1/pages", json=body, headers=admin_headers)
    assert created.status_code == 201
    page_id = created.json()["id"]
    assert created.json()["version"] == 1

    duplicate = client.post("/api/v1/pages", json=body, headers=admin_headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "duplicate_path"

    by_path = client.get("/api/v1/pages/about", headers=admin_headers)
    by_id = client.get(f"/api/v1/pages/{page_id}", headers=admin_headers)
    assert by_path.json()["id"] == by_id.json()["id"] == page_id

    updated = client.put(f"/api/v1/pages/{page_id}", json={"is_active": False}, headers=admin_headers)
    assert updated.json()["version"] == 2
    assert updated.json()["is_active"] is False

    inactive = client.get("/api/v1/pages", params={"is_active": False}, headers=admin_headers).json()
    assert [p["path"] for p in inactive["pages"]] == ["about"]

    assert client.get("/api/v1/pages", headers=customer_headers).status_code == 403
    assert client.delete(f"/api/v1/pages/{page_id}", headers=admin_headers).status_code == 200
    assert client.put(f"/api/v1/pages/{page_id}", json={"name": "Gone"}, headers=admin_headers).status_code == 404


def test_generic_page_rejects_nested_fields(client, admin_headers):
    body = {"name": "Odd", "path": "odd", "content": {"kind": "generic", "fields": {"nested": {"a": 1}}}}
    assert client.post("/api/v1/pages", json=body, headers=admin_headers).status_code == 400

