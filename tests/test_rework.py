from datetime import date

from assembly_qc.rework import shift_rework_items
from assembly_qc.shifts import resolve_shift_window


def test_pending_list_is_global_and_newest_first(client, seed_event):
    old = seed_event(status="REWORK", at="08:00", day=date(2024, 3, 1))
    recent = seed_event(status="REWORK", at="09:00")
    seed_event(status="OK", at="09:30")

    rows = client.get("/get-rework-list").get_json()

    assert [row["id"] for row in rows] == [recent["id"], old["id"]]


def test_update_rework_records_the_inspection(client, fake_supabase, seed_event):
    item = seed_event(status="REWORK", at="08:00")

    resp = client.post(
        "/update-rework",
        json={"id": item["id"], "newStatus": "OK", "inspector": "Somchai"},
    )

    assert resp.status_code == 200
    event = resp.get_json()["event"]
    assert event["status"] == "OK"
    assert event["rework_checked_by"] == "Somchai"
    assert event["rework_checked_at"] == "2024-05-01T03:00:00.000000+00:00"
    assert event["timestamp"] == item["timestamp"]
    assert client.get("/get-rework-list").get_json() == []


def test_rework_can_be_reopened(client, seed_event):
    item = seed_event(status="REWORK", at="08:00")

    resp = client.post("/update-rework", json={"id": item["id"], "newStatus": "REWORK"})

    assert resp.status_code == 200
    event = resp.get_json()["event"]
    assert event["status"] == "REWORK"
    # Falls back to the session user.
    assert event["rework_checked_by"] == "Tester"


def test_update_rework_unknown_event(client):
    resp = client.post("/update-rework", json={"id": 404, "newStatus": "OK", "inspector": "A"})

    assert resp.status_code == 404


def test_update_rework_rejects_unknown_status(client, seed_event):
    item = seed_event(status="REWORK", at="08:00")

    resp = client.post("/update-rework", json={"id": item["id"], "newStatus": "DONE", "inspector": "A"})

    assert resp.status_code == 400


def test_final_verdicts_cannot_be_reinspected(client, fake_supabase, seed_event):
    passed = seed_event(status="OK", at="08:00")
    resolved = seed_event(status="REWORK", at="08:10")
    client.post("/update-rework", json={"id": resolved["id"], "newStatus": "NG", "inspector": "A"})

    for item in (passed, resolved):
        resp = client.post("/update-rework", json={"id": item["id"], "newStatus": "OK", "inspector": "B"})
        assert resp.status_code == 400

    rows = {row["id"]: row for row in fake_supabase.tables["qc_log"]}
    assert rows[passed["id"]]["status"] == "OK"
    assert rows[passed["id"]]["rework_checked_by"] is None
    assert rows[resolved["id"]]["status"] == "NG"
    assert rows[resolved["id"]]["rework_checked_by"] == "A"


def test_history_keeps_resolved_items(client, seed_event):
    # Logged yesterday, resolved this morning.
    resolved = seed_event(
        status="OK",
        at="19:00",
        day=date(2024, 4, 30),
        rework_checked_by="A",
        rework_checked_at="2024-05-01T01:30:00.000000+00:00",
    )
    pending = seed_event(status="REWORK", at="09:00")
    seed_event(status="OK", at="09:10")
    seed_event(status="NG", defect="Dent", at="09:20")
    seed_event(status="REWORK", at="09:00", day=date(2024, 4, 28))

    rows = client.get("/get-rework-history").get_json()

    assert [row["id"] for row in rows] == [pending["id"], resolved["id"]]


def test_history_range_spans_several_days(client, seed_event):
    older = seed_event(status="REWORK", at="09:00", day=date(2024, 4, 28))
    newer = seed_event(status="REWORK", at="09:00")

    rows = client.get("/get-rework-history?start=2024-04-28&end=2024-05-01").get_json()

    assert [row["id"] for row in rows] == [newer["id"], older["id"]]


def test_history_rejects_bad_dates(client):
    assert client.get("/get-rework-history?start=soon").status_code == 400


def test_shift_rework_items_are_scoped_to_the_window(app_instance, seed_event):
    inside = seed_event(status="REWORK", at="09:00")
    seed_event(status="REWORK", at="21:00")
    seed_event(status="REWORK", at="09:00", model="M2")

    with app_instance.app_context():
        rows = shift_rework_items(resolve_shift_window("2024-05-01", "day"), "M1")

    assert [row["id"] for row in rows] == [inside["id"]]
