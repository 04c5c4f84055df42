from __future__ import annotations

import pytest

from bookkeeper.services import group_service


@pytest.fixture
def trio(client, signup):
    """A group with an admin and one member, plus an outsider."""
    admin_id, admin = signup("admin@example.com", name="Admin")
    member_id, member = signup("member@example.com", name="Member")
    outsider_id, outsider = signup("outsider@example.com", name="Outsider")
    group = client.post("/api/groups", json={"name": "Flat"}, headers=admin).json()
    res = client.post("/api/groups/join", json={"joinCode": group["joinCode"].lower()}, headers=member)
    assert res.status_code == 200
    return {
        "group": group,
        "admin": (admin_id, admin),
        "member": (member_id, member),
        "outsider": (outsider_id, outsider),
    }


def test_create_group_and_join(client, trio):
    group = trio["group"]
    assert len(group["joinCode"]) == 6
    assert group["myRole"] == "admin"

    _, member = trio["member"]
    again = client.post("/api/groups/join", json={"joinCode": group["joinCode"]}, headers=member).json()
    assert again["memberCount"] == 2

    res = client.get(f"/api/groups/{group['id']}/members", headers=member).json()
    assert res["memberCount"] == 2
    assert [m["role"] for m in res["members"]] == ["admin", "member"]
    assert res["members"][0]["name"] == "Admin"


def test_join_code_errors(client, trio):
    _, outsider = trio["outsider"]
    assert client.post("/api/groups/join", json={"joinCode": "bad"}, headers=outsider).status_code == 400
    assert client.post("/api/groups/join", json={"joinCode": "ZZZZZ9"}, headers=outsider).status_code == 404


def test_outsider_cannot_see_group(client, trio):
    _, outsider = trio["outsider"]
    assert client.get(f"/api/groups/{trio['group']['id']}", headers=outsider).status_code == 403
    assert client.get("/api/groups", headers=outsider).json() == []


def test_only_admin_regenerates_code(client, trio):
    group = trio["group"]
    _, admin = trio["admin"]
    _, member = trio["member"]
    assert client.post(f"/api/groups/{group['id']}/regenerate-code", headers=member).status_code == 403
    res = client.post(f"/api/groups/{group['id']}/regenerate-code", headers=admin)
    assert res.status_code == 200
    assert len(res.json()["joinCode"]) == 6
    _, outsider = trio["outsider"]
    stale = client.post("/api/groups/join", json={"joinCode": group["joinCode"]}, headers=outsider)
    assert stale.status_code == 404


def test_member_leaves_and_admin_deletes(client, trio):
    group = trio["group"]
    _, admin = trio["admin"]
    _, member = trio["member"]

    res = client.delete(f"/api/groups/{group['id']}", headers=member).json()
    assert res["groupDeleted"] is False
    assert client.get(f"/api/groups/{group['id']}", headers=member).status_code == 403

    res = client.delete(f"/api/groups/{group['id']}", headers=admin).json()
    assert res["groupDeleted"] is True
    assert client.get("/api/groups", headers=admin).json() == []


def test_last_member_leaving_deletes_group(client, signup):
    _, admin = signup("solo-admin@example.com")
    _, member = signup("solo-member@example.com")
    group = client.post("/api/groups", json={"name": "Solo"}, headers=admin).json()
    client.post("/api/groups/join", json={"joinCode": group["joinCode"]}, headers=member)
    # Admin purges their data, leaving the member alone in the group
    client.post("/api/dev/purge-my-data", headers=admin)
    res = client.delete(f"/api/groups/{group['id']}", headers=member).json()
    assert res["groupDeleted"] is True


def _split(trio, amount=100, shares=(50, 50), payer="admin", **extra):
    admin_id = trio["admin"][0]
    member_id = trio["member"][0]
    payload = {
        "group_id": trio["group"]["id"],
        "amount": amount,
        "paid_by_id": trio[payer][0],
        "participants": [
            {"user_id": admin_id, "amount": shares[0]},
            {"user_id": member_id, "amount": shares[1]},
        ],
        "description": "Groceries",
    }
    payload.update(extra)
    return payload


def test_split_validation(client, trio):
    _, admin = trio["admin"]
    _, outsider = trio["outsider"]

    res = client.post("/api/splits", json=_split(trio, shares=(50, 40)), headers=admin)
    assert res.status_code == 400
    assert res.json()["expected"] == 100
    assert res.json()["actual"] == 90

    # within a cent is accepted
    assert client.post("/api/splits", json=_split(trio, shares=(50, 49.995)), headers=admin).status_code == 201

    payload = _split(trio)
    payload["paid_by_id"] = trio["outsider"][0]
    assert client.post("/api/splits", json=payload, headers=admin).status_code == 400

    assert client.post("/api/splits", json=_split(trio), headers=outsider).status_code == 403


def test_split_created_with_payer_share_paid(client, trio):
    admin_id, admin = trio["admin"]
    res = client.post("/api/splits", json=_split(trio, due_type="monthly"), headers=admin)
    assert res.status_code == 201
    split = res.json()
    paid = {p["user_id"]: p["is_paid"] for p in split["participants"]}
    assert paid[admin_id] is True
    assert paid[trio["member"][0]] is False
    assert split["month_key"] is not None and len(split["month_key"]) == 7

    listed = client.get("/api/splits", params={"group": trio["group"]["id"]}, headers=admin).json()
    assert [s["id"] for s in listed] == [split["id"]]


def test_settle_requires_payer_and_all_paid(client, trio):
    _, admin = trio["admin"]
    member_id, member = trio["member"]
    split = client.post("/api/splits", json=_split(trio), headers=admin).json()

    assert client.patch(f"/api/splits/{split['id']}/settle", headers=member).status_code == 403
    res = client.patch(f"/api/splits/{split['id']}/settle", headers=admin)
    assert res.status_code == 400
    assert res.json()["unpaidParticipants"] == [{"userId": member_id, "amount": 50}]
    assert client.patch("/api/splits/9999/settle", headers=admin).status_code == 404


def test_last_payment_auto_settles_and_notifies(client, trio):
    _, admin = trio["admin"]
    member_id, member = trio["member"]
    split = client.post("/api/splits", json=_split(trio), headers=admin).json()

    # Only your own share
    res = client.patch(f"/api/splits/{split['id']}/participants/{member_id}/pay", headers=admin)
    assert res.status_code == 403

    res = client.patch(f"/api/splits/{split['id']}/participants/{member_id}/pay", headers=member)
    assert res.status_code == 200
    assert res.json()["allPaid"] is True
    assert res.json()["autoSettled"] is True

    assert client.patch(f"/api/splits/{split['id']}/settle", headers=admin).status_code == 409

    for headers in (admin, member):
        notes = client.get("/api/notifications", headers=headers).json()["notifications"]
        repayments = [n for n in notes if n["type"] == "repayment"]
        assert len(repayments) == 1
        assert "Groceries" in repayments[0]["message"]


def test_explicit_settle_notifies_everyone(client, signup):
    admin_id, admin = signup("s-admin@example.com")
    _, member = signup("s-member@example.com")
    group = client.post("/api/groups", json={"name": "G"}, headers=admin).json()
    client.post("/api/groups/join", json={"joinCode": group["joinCode"]}, headers=member)
    # The payer covers the whole amount alone
    split = client.post(
        "/api/splits",
        json={
            "group_id": group["id"],
            "amount": 30,
            "paid_by_id": admin_id,
            "participants": [{"user_id": admin_id, "amount": 30}],
            "description": "Taxi",
        },
        headers=admin,
    ).json()
    res = client.patch(f"/api/splits/{split['id']}/settle", headers=admin)
    assert res.status_code == 200
    notes = client.get("/api/notifications", headers=admin).json()["notifications"]
    assert any(n["type"] == "repayment" and "Taxi" in n["message"] for n in notes)


def test_stats(client, trio):
    _, admin = trio["admin"]
    member_id, member = trio["member"]
    client.post("/api/splits", json=_split(trio, amount=100, shares=(40, 60)), headers=admin)
    client.post("/api/splits", json=_split(trio, amount=20, shares=(10, 10), payer="member"), headers=member)

    stats = client.get("/api/splits/stats", headers=admin).json()
    assert stats["totalUnsettled"] == 2
    assert stats["paidByMe"] == 100
    assert stats["owedToMe"] == 60
    assert stats["myDebts"] == 10
    assert stats["totalAmount"] == 110

    outsider_stats = client.get("/api/splits/stats", headers=trio["outsider"][1]).json()
    assert outsider_stats["totalUnsettled"] == 0


def test_exhausted_join_codes_are_a_conflict(client, trio, monkeypatch):
    _, admin = trio["admin"]
    monkeypatch.setattr(group_service, "generate_join_code", lambda: trio["group"]["joinCode"])
    res = client.post("/api/groups", json={"name": "Another"}, headers=admin)
    assert res.status_code == 409
    assert res.json()["code"] == "CONFLICT"
    assert len(client.get("/api/groups", headers=admin).json()) == 1
