from __future__ import annotations

import pytest

from loyalty.api.deps import get_aggregation_engine, get_record_store
from loyalty.main import app
from loyalty.models import Reward, TransactionStatus, TransactionType, UserRole
from loyalty.services.aggregation import AggregationEngine


@pytest.fixture()
def dealer_network(seed_user, seed_reward, seed_transaction):
    admin = seed_user("admin@example.com", UserRole.ADMIN)
    dealer = seed_user("dealer@example.com", UserRole.DEALER, first_name="Ravi", last_name="Kumar")
    other_dealer = seed_user("other@example.com", UserRole.DEALER)
    sub_dealer = seed_user("sub@example.com", UserRole.SUB_DEALER, created_by=dealer.id)
    contractor = seed_user("contractor@example.com", UserRole.CONTRACTOR)
    drill: Reward = seed_reward("Drill", 40)

    seed_transaction(dealer, 50, "10 OPC bags")
    seed_transaction(dealer, 30, "no tag")
    seed_transaction(sub_dealer, 200, "20 PPC bags")
    seed_transaction(other_dealer, 100, "20 OPC bags")
    seed_transaction(contractor, 60, "6 PPC bags", dealer_id=dealer.id)
    seed_transaction(contractor, 25, "5 OPC bags", dealer_id=dealer.id, status=TransactionStatus.PENDING)
    seed_transaction(
        dealer,
        40,
        "Redeemed: Drill",
        type=TransactionType.REDEEMED,
        reward_id=drill.id,
    )
    return {
        "admin": admin,
        "dealer": dealer,
        "other_dealer": other_dealer,
        "sub_dealer": sub_dealer,
        "contractor": contractor,
        "drill": drill,
    }


def test_analytics_requires_a_token(client) -> None:
    assert client.get("/api/analytics/snapshot").status_code in (401, 403)


def test_contractors_cannot_read_analytics(client, auth_headers, dealer_network) -> None:
    response = client.get("/api/analytics/snapshot", headers=auth_headers(dealer_network["contractor"]))
    assert response.status_code == 403


def test_admin_rollup_segments_reconcile(client, auth_headers, dealer_network) -> None:
    headers = auth_headers(dealer_network["admin"])

    def rollup(segment: str) -> dict:
        response = client.get(
            "/api/analytics/rollup",
            params={"window": "lifetime", "segment": segment},
            headers=headers,
        )
        assert response.status_code == 200
        return response.json()

    dealers, sub_dealers, combined = rollup("dealer"), rollup("sub_dealer"), rollup("all")

    assert dealers["rollup"] == {"points": 180, "bags": 33}
    assert sub_dealers["rollup"] == {"points": 200, "bags": 20}
    assert combined["rollup"] == {"points": 380, "bags": 53}
    assert combined["members"] == 3
    assert combined["scope"] == {"kind": "global", "dealer_id": None}
    assert combined["window"]["label"] == "All Time"


def test_dealer_rollup_defaults_to_own_sales(client, auth_headers, dealer_network) -> None:
    dealer = dealer_network["dealer"]

    response = client.get(
        "/api/analytics/rollup", params={"window": "lifetime"}, headers=auth_headers(dealer)
    )

    assert response.status_code == 200
    body = response.json()
    assert body["scope"] == {"kind": "my_sales", "dealer_id": dealer.id}
    assert body["rollup"] == {"points": 80, "bags": 13}


def test_dealer_cannot_request_global_scope(client, auth_headers, dealer_network) -> None:
    response = client.get(
        "/api/analytics/snapshot",
        params={"scope": "global"},
        headers=auth_headers(dealer_network["dealer"]),
    )
    assert response.status_code == 403


def test_inverted_custom_window_is_a_bad_request(client, auth_headers, dealer_network) -> None:
    response = client.get(
        "/api/analytics/rollup",
        params={"window": "custom", "start": "2024-03-10", "end": "2024-03-01"},
        headers=auth_headers(dealer_network["admin"]),
    )
    assert response.status_code == 400


def test_custom_window_without_end_is_a_bad_request(client, auth_headers, dealer_network) -> None:
    response = client.get(
        "/api/analytics/snapshot",
        params={"window": "custom", "start": "2024-03-10"},
        headers=auth_headers(dealer_network["admin"]),
    )
    assert response.status_code == 400


def test_admin_snapshot(client, auth_headers, dealer_network) -> None:
    response = client.get(
        "/api/analytics/snapshot",
        params={"window": "lifetime"},
        headers=auth_headers(dealer_network["admin"]),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["period"] == "All Time"
    assert body["total_users"] == 3
    assert body["active_users"] == 3
    assert body["engagement_rate"] == 100
    assert body["total_points_issued"] == 380
    assert body["total_bags_sold"] == 53
    assert body["total_rewards_redeemed"] == 1
    assert [item["bags"] for item in body["top_dealers"]] == [20, 20, 13]
    assert body["top_dealers"][2]["name"] == "Ravi Kumar"
    assert body["top_rewards"] == [
        {"reward_id": dealer_network["drill"].id, "title": "Drill", "redemptions": 1}
    ]
    assert body["role_counts"] == {"dealer": 2, "sub_dealer": 1, "contractor": 1, "builder": 0}


def test_network_snapshot(client, auth_headers, dealer_network) -> None:
    response = client.get(
        "/api/analytics/snapshot",
        params={"window": "yearly", "scope": "network"},
        headers=auth_headers(dealer_network["dealer"]),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["scope"]["kind"] == "network"
    assert body["total_users"] == 1
    assert body["total_bags_sold"] == 20


def test_breakdown_includes_custom_window(client, auth_headers, dealer_network) -> None:
    response = client.get(
        "/api/analytics/breakdown",
        params={"start": "2020-01-01", "end": "2099-12-31"},
        headers=auth_headers(dealer_network["admin"]),
    )

    assert response.status_code == 200
    breakdowns = response.json()["breakdowns"]
    assert [item["window"]["kind"] for item in breakdowns] == [
        "current_month",
        "quarterly",
        "half_yearly",
        "yearly",
        "lifetime",
        "custom",
    ]
    for item in breakdowns:
        assert item["total"]["bags"] == item["dealer"]["bags"] + item["sub_dealer"]["bags"]
    assert breakdowns[-1]["total"] == {"points": 380, "bags": 53}


def test_breakdown_is_admin_only(client, auth_headers, dealer_network) -> None:
    response = client.get("/api/analytics/breakdown", headers=auth_headers(dealer_network["dealer"]))
    assert response.status_code == 403


def test_dealer_performance(client, auth_headers, dealer_network) -> None:
    dealer = dealer_network["dealer"]

    response = client.get("/api/analytics/performance", headers=auth_headers(dealer))

    assert response.status_code == 200
    body = response.json()
    assert body["dealer_id"] == dealer.id
    lifetime = body["rows"][4]
    assert lifetime["window"]["kind"] == "lifetime"
    assert (lifetime["bags"], lifetime["points"], lifetime["unique_customers"]) == (6, 60, 1)


def test_pending_summary(client, auth_headers, dealer_network) -> None:
    admin = client.get("/api/analytics/pending", headers=auth_headers(dealer_network["admin"]))
    dealer = client.get("/api/analytics/pending", headers=auth_headers(dealer_network["dealer"]))
    other = client.get("/api/analytics/pending", headers=auth_headers(dealer_network["other_dealer"]))

    assert admin.json()["earned_requests"] == 1
    assert admin.json()["points_awaiting"] == 25
    assert dealer.json()["earned_requests"] == 1
    assert other.json()["earned_requests"] == 0


def test_store_failure_is_a_bad_gateway(client, auth_headers, dealer_network, stores) -> None:
    app.dependency_overrides[get_record_store] = lambda: stores.failing(fail_on={"users"})

    response = client.get(
        "/api/analytics/snapshot",
        params={"window": "lifetime"},
        headers=auth_headers(dealer_network["admin"]),
    )

    assert response.status_code == 502
    assert "users" in response.json()["detail"]


def test_slow_store_is_a_gateway_timeout(client, auth_headers, dealer_network, stores) -> None:
    slow = stores.slow(delays={"users": 5})
    app.dependency_overrides[get_aggregation_engine] = lambda: AggregationEngine(slow, timeout=0.05)

    response = client.get(
        "/api/analytics/rollup",
        params={"window": "lifetime"},
        headers=auth_headers(dealer_network["admin"]),
    )

    assert response.status_code == 504
