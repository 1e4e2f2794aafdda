"""
Field-force - Beat plans
Tests: create rules (MR self, one per day, assigned doctors only),
scoped list / update, planned-vs-actual comparison, deviation reason.
Run: cd backend && pytest tests/test_beat_plans.py -v
"""

import pytest

from tests.conftest import make_doctor, widen_visit_window


async def create_beat_plan(client, headers, doctors, date="2024-06-05", **extra):
    return await client.post("/api/beat-plans", json={
        "date": date, "plannedDoctors": doctors, **extra,
    }, headers=headers)


async def visit(client, headers, doctor_id, when="2024-06-05T11:00:00"):
    r = await client.post("/api/visits", json={"doctorId": doctor_id, "visitDate": when}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]["visit"]


class TestCreateBeatPlan:
    @pytest.mark.asyncio
    async def test_mr_plans_own_day(self, client, team):
        r = await create_beat_plan(client, team["h_mr1"], [team["doctor1"]["id"]], notes="Andheri loop")
        assert r.status_code == 201, r.text
        plan = r.json()["data"]["plan"]
        assert plan["mr_id"] == team["mr1"]["id"]
        assert plan["plan_date"] == "2024-06-05"
        assert plan["planned_doctors"] == [team["doctor1"]["id"]]
        assert plan["doctors"][0]["name"] == "Dr Mehta"
        assert plan["mr"]["name"] == "Ravi MR"

    @pytest.mark.asyncio
    async def test_one_plan_per_day(self, client, team):
        await create_beat_plan(client, team["h_mr1"], [team["doctor1"]["id"]])
        r = await create_beat_plan(client, team["h_mr1"], [team["doctor1"]["id"]], date="2024-06-05T18:00:00")
        assert r.status_code == 409

    @pytest.mark.asyncio
    async def test_requires_doctors(self, client, team):
        r = await create_beat_plan(client, team["h_mr1"], [])
        assert r.status_code == 400

    @pytest.mark.asyncio
    async def test_unassigned_doctor_listed(self, client, team):
        r = await create_beat_plan(client, team["h_mr1"], [team["doctor1"]["id"], team["doctor2"]["id"]])
        assert r.status_code == 400
        unassigned = r.json()["data"]["unassigned_doctors"]
        assert [d["id"] for d in unassigned] == [team["doctor2"]["id"]]

    @pytest.mark.asyncio
    async def test_inactive_doctor_rejected(self, client, team):
        doctor = await make_doctor(team["mr1"]["id"], is_active=False)
        r = await create_beat_plan(client, team["h_mr1"], [doctor["id"]])
        assert r.status_code == 400
        assert r.json()["message"] == "One or more doctors not found or inactive"

    @pytest.mark.asyncio
    async def test_owner_needs_mr_id(self, client, team):
        r = await create_beat_plan(client, team["h_owner"], [team["doctor1"]["id"]])
        assert r.status_code == 400
        r = await create_beat_plan(client, team["h_owner"], [team["doctor1"]["id"]], mrId=team["mr1"]["id"])
        assert r.status_code == 201

    @pytest.mark.asyncio
    async def test_manager_scope(self, client, team):
        r = await create_beat_plan(client, team["h_manager"], [team["doctor_out"]["id"]],
                                   mrId=team["outsider"]["id"])
        assert r.status_code == 403


class TestListAndUpdate:
    @pytest.mark.asyncio
    async def test_scoped_list_newest_first(self, client, team):
        await create_beat_plan(client, team["h_mr1"], [team["doctor1"]["id"]], date="2024-06-04")
        await create_beat_plan(client, team["h_mr1"], [team["doctor1"]["id"]], date="2024-06-06")
        await create_beat_plan(client, team["h_mr2"], [team["doctor2"]["id"]])
        await create_beat_plan(client, team["h_outsider"], [team["doctor_out"]["id"]])

        mine = (await client.get("/api/beat-plans", headers=team["h_mr1"])).json()
        assert [p["plan_date"] for p in mine["data"]["plans"]] == ["2024-06-06", "2024-06-04"]
        assert (await client.get("/api/beat-plans", headers=team["h_manager"])).json()["count"] == 3
        assert (await client.get("/api/beat-plans", headers=team["h_owner"])).json()["count"] == 4

        ranged = await client.get("/api/beat-plans?startDate=2024-06-05&endDate=2024-06-06",
                                  headers=team["h_manager"])
        assert ranged.json()["count"] == 2

    @pytest.mark.asyncio
    async def test_update_checks_doctors_and_scope(self, client, team):
        extra = await make_doctor(team["mr1"]["id"], "Dr Iyer")
        plan = (await create_beat_plan(client, team["h_mr1"], [team["doctor1"]["id"]])).json()["data"]["plan"]

        r = await client.put(f"/api/beat-plans/{plan['id']}",
                             json={"plannedDoctors": [team["doctor1"]["id"], extra["id"]], "notes": "extended"},
                             headers=team["h_mr1"])
        assert r.status_code == 200
        assert r.json()["data"]["plan"]["planned_doctors"] == [team["doctor1"]["id"], extra["id"]]
        assert r.json()["data"]["plan"]["notes"] == "extended"

        bad = await client.put(f"/api/beat-plans/{plan['id']}",
                               json={"plannedDoctors": [team["doctor2"]["id"]]}, headers=team["h_mr1"])
        assert bad.status_code == 400

        other = await client.put(f"/api/beat-plans/{plan['id']}", json={"notes": "x"}, headers=team["h_mr2"])
        assert other.status_code == 403


class TestComparison:
    @pytest.mark.asyncio
    async def test_deviation_detected_and_explained(self, client, team):
        await widen_visit_window()
        planned_only = await make_doctor(team["mr1"]["id"], "Dr Iyer")
        unplanned = await make_doctor(team["mr1"]["id"], "Dr Shah")
        plan = (await create_beat_plan(
            client, team["h_mr1"], [team["doctor1"]["id"], planned_only["id"]]
        )).json()["data"]["plan"]

        await visit(client, team["h_mr1"], team["doctor1"]["id"])
        await visit(client, team["h_mr1"], unplanned["id"], "2024-06-05T16:00:00")
        await visit(client, team["h_mr1"], planned_only["id"], "2024-06-06T10:00:00")

        r = await client.get(f"/api/beat-plans/{plan['id']}/comparison", headers=team["h_manager"])
        assert r.status_code == 200, r.text
        data = r.json()["data"]
        assert data["comparison"] == {
            "planned_count": 2,
            "actual_count": 2,
            "visited_as_planned_count": 1,
            "planned_but_not_visited_count": 1,
            "visited_but_not_planned_count": 1,
            "has_deviation": True,
            "deviation_reason_required": True,
        }
        assert data["planned_but_not_visited"][0]["name"] == "Dr Iyer"
        assert data["visited_but_not_planned"][0]["doctor"]["name"] == "Dr Shah"
        assert data["visited_as_planned"][0]["doctor_id"] == team["doctor1"]["id"]

        blank = await client.put(f"/api/beat-plans/{plan['id']}/deviation-reason",
                                 json={"deviationReason": "  "}, headers=team["h_mr1"])
        assert blank.status_code == 400

        r = await client.put(f"/api/beat-plans/{plan['id']}/deviation-reason",
                             json={"deviationReason": " Emergency call from Dr Shah "}, headers=team["h_mr1"])
        assert r.status_code == 200
        assert r.json()["data"]["plan"]["deviation_reason"] == "Emergency call from Dr Shah"

        again = await client.get(f"/api/beat-plans/{plan['id']}/comparison", headers=team["h_mr1"])
        assert again.json()["data"]["comparison"]["deviation_reason_required"] is False

    @pytest.mark.asyncio
    async def test_no_deviation_rejects_reason(self, client, team):
        await widen_visit_window()
        plan = (await create_beat_plan(client, team["h_mr1"], [team["doctor1"]["id"]])).json()["data"]["plan"]
        await visit(client, team["h_mr1"], team["doctor1"]["id"])

        r = await client.get(f"/api/beat-plans/{plan['id']}/comparison", headers=team["h_mr1"])
        assert r.json()["data"]["comparison"]["has_deviation"] is False

        r = await client.put(f"/api/beat-plans/{plan['id']}/deviation-reason",
                             json={"deviationReason": "Traffic"}, headers=team["h_mr1"])
        assert r.status_code == 400
        assert "No deviation found" in r.json()["message"]

    @pytest.mark.asyncio
    async def test_cancelled_visit_is_not_a_visit(self, client, team):
        await widen_visit_window()
        plan = (await create_beat_plan(client, team["h_mr1"], [team["doctor1"]["id"]])).json()["data"]["plan"]
        v = await visit(client, team["h_mr1"], team["doctor1"]["id"])
        await client.put(f"/api/visits/{v['id']}", json={"status": "Cancelled"}, headers=team["h_mr1"])

        r = await client.get(f"/api/beat-plans/{plan['id']}/comparison", headers=team["h_mr1"])
        comparison = r.json()["data"]["comparison"]
        assert comparison["actual_count"] == 0
        assert comparison["has_deviation"] is True

    @pytest.mark.asyncio
    async def test_comparison_scoped(self, client, team):
        plan = (await create_beat_plan(client, team["h_mr1"], [team["doctor1"]["id"]])).json()["data"]["plan"]
        r = await client.get(f"/api/beat-plans/{plan['id']}/comparison", headers=team["h_outsider"])
        assert r.status_code == 403
        r = await client.get("/api/beat-plans/nope/comparison", headers=team["h_owner"])
        assert r.status_code == 404
