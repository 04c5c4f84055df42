from __future__ import annotations

BANK = {"kind": "bank", "name": "Salary", "balance": 1000, "bank_code": "808", "account_number": "0001"}
CARD = {"kind": "credit_card", "name": "Card", "credit_limit": 5000, "card_issuer": "Issuer", "card_last4": "1234"}


def test_create_and_list_by_kind(client, signup):
    _, headers = signup("acc@example.com")
    assert client.post("/api/accounts", json=BANK, headers=headers).status_code == 201
    res = client.post("/api/accounts", json=CARD, headers=headers)
    assert res.status_code == 201
    card = res.json()
    assert card["kind"] == "credit_card"
    assert card["balance"] == 0
    assert card["current_credit_used"] == 0

    everything = client.get("/api/accounts", headers=headers).json()
    # default cash account from login plus the two above
    assert sorted(a["kind"] for a in everything) == ["bank", "cash", "credit_card"]

    banks = client.get("/api/accounts", params={"kind": "bank"}, headers=headers).json()
    assert [a["name"] for a in banks] == ["Salary"]
    assert banks[0]["account_number"] == "0001"
    assert "credit_limit" not in banks[0]


def test_natural_key_conflicts(client, signup):
    _, headers = signup("dup@example.com")
    client.post("/api/accounts", json=BANK, headers=headers)
    res = client.post("/api/accounts", json={**BANK, "name": "Other name"}, headers=headers)
    assert res.status_code == 409

    client.post("/api/accounts", json=CARD, headers=headers)
    assert client.post("/api/accounts", json=CARD, headers=headers).status_code == 409

    res = client.post("/api/accounts", json={"kind": "cash", "name": "我的現金"}, headers=headers)
    assert res.status_code == 409


def test_same_natural_key_for_different_users_is_fine(client, signup):
    _, first = signup("first@example.com")
    _, second = signup("second@example.com")
    assert client.post("/api/accounts", json=BANK, headers=first).status_code == 201
    assert client.post("/api/accounts", json=BANK, headers=second).status_code == 201


def test_credit_card_requires_issuer_and_last4(client, signup):
    _, headers = signup("card@example.com")
    res = client.post("/api/accounts", json={"kind": "credit_card", "name": "Card"}, headers=headers)
    assert res.status_code == 422


def test_update_switching_kind(client, signup):
    _, headers = signup("switch@example.com")
    bank = client.post("/api/accounts", json=BANK, headers=headers).json()
    res = client.patch(
        f"/api/accounts/{bank['id']}",
        json={"kind": "credit_card", "credit_limit": 800, "card_issuer": "X", "card_last4": "9999"},
        headers=headers,
    )
    assert res.status_code == 200
    card = res.json()
    assert card["kind"] == "credit_card"
    assert card["balance"] == 0
    assert card["credit_limit"] == 800
    assert "bank_code" not in card


def test_other_users_account_is_not_found(client, signup):
    _, owner = signup("owner@example.com")
    _, intruder = signup("intruder@example.com")
    bank = client.post("/api/accounts", json=BANK, headers=owner).json()
    assert client.put(f"/api/accounts/{bank['id']}", json={"name": "x"}, headers=intruder).status_code == 404
    assert client.delete(f"/api/accounts/{bank['id']}", headers=intruder).status_code == 404


def test_delete_refused_while_records_exist(client, signup):
    _, headers = signup("del@example.com")
    bank = client.post("/api/accounts", json=BANK, headers=headers).json()
    client.post(
        "/api/records",
        json={"amount": 10, "account_id": bank["id"], "payment_method": "bank", "category": "Food"},
        headers=headers,
    )
    assert client.delete(f"/api/accounts/{bank['id']}", headers=headers).status_code == 400

    empty = client.post("/api/accounts", json={**BANK, "account_number": "0002"}, headers=headers).json()
    assert client.delete(f"/api/accounts/{empty['id']}", headers=headers).status_code == 204


def test_repay_endpoint(client, signup):
    _, headers = signup("repay@example.com")
    bank = client.post("/api/accounts", json=BANK, headers=headers).json()
    card = client.post("/api/accounts", json={**CARD, "current_credit_used": 300}, headers=headers).json()

    res = client.post(f"/api/accounts/{card['id']}/repay", json={"from_account_id": bank["id"]}, headers=headers)
    assert res.status_code == 200
    body = res.json()
    assert body["record"]["amount"] == 300
    assert body["fromAccount"]["balance"] == 700
    assert body["account"]["current_credit_used"] == 0

    res = client.post(f"/api/accounts/{bank['id']}/repay", json={"from_account_id": bank["id"]}, headers=headers)
    assert res.status_code == 404
