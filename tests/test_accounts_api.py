from datetime import datetime

import pytest

from conftest import API, PASSWORD, next_monday


@pytest.mark.asyncio
async def test_signup_login_and_profile(client, signup):
    headers = await signup("Maria@Example.com", "Maria")

    r = await client.get(f"{API}/auth/me", headers=headers)
    assert r.status_code == 200
    assert r.json()["email"] == "maria@example.com"

    r = await client.post(f"{API}/auth/signup", json={"email": "maria@example.com", "password": PASSWORD})
    assert r.status_code == 409

    r = await client.post(f"{API}/auth/login", json={"email": "maria@example.com", "password": "wrong-pass"})
    assert r.status_code == 401

    r = await client.post(f"{API}/auth/login", json={"email": "maria@example.com", "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["token_type"] == "bearer"

    r = await client.patch(f"{API}/auth/me", json={"phone": "+54 11 5555 0000"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["phone"] == "+54 11 5555 0000"
    assert r.json()["full_name"] == "Maria"


@pytest.mark.asyncio
async def test_protected_routes_need_a_token(client):
    r = await client.get(f"{API}/auth/me")
    assert r.status_code == 401
    r = await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_refresh_rotates_and_logout_revokes(client):
    r = await client.post(f"{API}/auth/signup", json={"email": "rot@example.com", "password": PASSWORD})
    first = r.json()["refresh_token"]

    r = await client.post(f"{API}/auth/refresh", json={"refresh_token": first})
    assert r.status_code == 200
    second = r.json()["refresh_token"]

    r = await client.post(f"{API}/auth/refresh", json={"refresh_token": first})
    assert r.status_code == 401

    r = await client.post(f"{API}/auth/logout", headers={"X-Refresh-Token": second})
    assert r.status_code == 200
    r = await client.post(f"{API}/auth/refresh", headers={"X-Refresh-Token": second})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_business_profile(client, salon):
    business = salon["business"]
    assert business["slug"] == "peluqueria-central"
    assert business["config"]["allow_online_booking"] is True

    r = await client.post(f"{API}/businesses", json={"name": "Otra"}, headers=salon["owner"])
    assert r.status_code == 409

    r = await client.get(f"{API}/businesses/mine", headers=salon["owner"])
    assert r.json()["id"] == business["id"]
    r = await client.get(f"{API}/businesses/mine", headers=salon["customer"])
    assert r.status_code == 404

    r = await client.get(f"{API}/businesses/slug/peluqueria-central")
    assert r.status_code == 200
    assert r.json()["id"] == business["id"]
    r = await client.get(f"{API}/businesses/slug/no-such-place")
    assert r.status_code == 404

    r = await client.patch(
        f"{API}/businesses/{business['id']}", json={"address": "Av. Corrientes 1234"}, headers=salon["owner"]
    )
    assert r.json()["address"] == "Av. Corrientes 1234"
    r = await client.patch(f"{API}/businesses/{business['id']}", json={"name": "Mia"}, headers=salon["customer"])
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_search_businesses(client, salon, signup):
    other = await signup("barber@example.com")
    await client.post(f"{API}/businesses", json={"name": "Barberia Norte"}, headers=other)

    r = await client.get(f"{API}/businesses", params={"q": "barber"})
    page = r.json()
    assert page["total"] == 1
    assert [b["name"] for b in page["items"]] == ["Barberia Norte"]

    r = await client.get(f"{API}/businesses", params={"page_size": 1, "page": 2})
    page = r.json()
    assert page["total"] == 2
    assert [b["name"] for b in page["items"]] == ["Peluqueria Central"]


@pytest.mark.asyncio
async def test_service_catalog(client, salon):
    business_id = salon["business"]["id"]
    r = await client.post(
        f"{API}/businesses/{business_id}/services",
        json={"name": "Color", "duration": 90, "price": 60.0},
        headers=salon["owner"],
    )
    color = r.json()

    r = await client.post(
        f"{API}/businesses/{business_id}/services",
        json={"name": "Nada", "duration": 0, "price": 10.0},
        headers=salon["owner"],
    )
    assert r.status_code == 422

    r = await client.patch(f"{API}/services/{color['id']}", json={"price": 65.0}, headers=salon["owner"])
    assert r.json()["price"] == 65.0

    r = await client.get(f"{API}/businesses/{business_id}/services")
    assert sorted(s["name"] for s in r.json()) == ["Color", "Corte"]

    r = await client.delete(f"{API}/services/{color['id']}", headers=salon["customer"])
    assert r.status_code == 403
    r = await client.delete(f"{API}/services/{color['id']}", headers=salon["owner"])
    assert r.status_code == 204
    r = await client.get(f"{API}/services/{color['id']}")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_booked_service_cannot_be_deleted(client, salon):
    start = datetime.combine(next_monday(), datetime.min.time()).replace(hour=11)
    r = await client.post(
        f"{API}/appointments",
        json={
            "business_id": salon["business"]["id"],
            "service_id": salon["service"]["id"],
            "start_time": start.isoformat(),
        },
        headers=salon["customer"],
    )
    assert r.status_code == 201, r.text

    r = await client.delete(f"{API}/services/{salon['service']['id']}", headers=salon["owner"])
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_owner_dashboard(client, salon):
    business_id = salon["business"]["id"]
    day = next_monday()
    for hour in (9, 11):
        start = datetime.combine(day, datetime.min.time()).replace(hour=hour)
        r = await client.post(
            f"{API}/appointments",
            json={"business_id": business_id, "service_id": salon["service"]["id"], "start_time": start.isoformat()},
            headers=salon["customer"],
        )
        assert r.status_code == 201, r.text

    r = await client.get(f"{API}/businesses/{business_id}/clients", headers=salon["owner"])
    assert [c["email"] for c in r.json()] == ["customer@example.com"]

    r = await client.get(f"{API}/businesses/{business_id}/stats", headers=salon["owner"])
    assert r.status_code == 200
    stats = r.json()
    assert stats["total_appointments"] == 2
    assert stats["upcoming_appointments"] == 2
    assert stats["total_clients"] == 1
    assert stats["top_service_name"] == "Corte"
    assert stats["peak_day"] == "Monday"
    assert stats["total_revenue"] == 0

    r = await client.get(f"{API}/businesses/{business_id}/stats", headers=salon["customer"])
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_slug_lookup_for_names_with_punctuation(client, signup):
    owner = await signup("joe@example.com")
    r = await client.post(f"{API}/businesses", json={"name": "Joe's Barber"}, headers=owner)
    business = r.json()
    assert business["slug"] == "joes-barber"

    r = await client.get(f"{API}/businesses/slug/joes-barber")
    assert r.status_code == 200
    assert r.json()["id"] == business["id"]
