# backend/tests/routes/test_availability_routes.py
"""
Route tests for weekly availability management and slot listing.
"""

from fastapi import status

from tests.factories.booking_builders import make_tutor


def _as(user):
    return {"X-Actor-Id": user.id}


def _rules_url(tutor_id):
    return f"/api/v1/tutors/{tutor_id}/availability"


class TestAvailabilityRoutes:
    def test_tutor_adds_and_lists_rules(self, client, db):
        tutor = make_tutor(db)

        created = client.post(
            _rules_url(tutor.id),
            json={"day_of_week": 1, "start_time": "09:00", "end_time": "10:00"},
            headers=_as(tutor),
        )

        assert created.status_code == status.HTTP_201_CREATED
        body = created.json()
        assert body["start_time"] == "09:00"
        assert body["end_time"] == "10:00"
        assert body["is_active"] is True

        listed = client.get(_rules_url(tutor.id)).json()
        assert [r["id"] for r in listed] == [body["id"]]

    def test_end_before_start_is_invalid_range(self, client, tutor):
        response = client.post(
            _rules_url(tutor.id),
            json={"day_of_week": 2, "start_time": "11:00", "end_time": "10:00"},
            headers=_as(tutor),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "INVALID_RANGE"

    def test_duplicate_active_rule_conflicts(self, client, tutor):
        response = client.post(
            _rules_url(tutor.id),
            json={"day_of_week": 1, "start_time": "09:00", "end_time": "12:00"},
            headers=_as(tutor),
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["code"] == "DUPLICATE"

    def test_toggle_update_and_delete(self, client, tutor):
        rule_id = client.get(_rules_url(tutor.id)).json()[0]["id"]

        off = client.post(
            f"{_rules_url(tutor.id)}/{rule_id}/active",
            json={"is_active": False},
            headers=_as(tutor),
        )
        assert off.json()["is_active"] is False
        assert client.get(f"{_rules_url(tutor.id)}/active").json() == []

        patched = client.patch(
            f"{_rules_url(tutor.id)}/{rule_id}", json={"end_time": "11:00"}, headers=_as(tutor)
        )
        assert patched.json()["end_time"] == "11:00"

        deleted = client.delete(f"{_rules_url(tutor.id)}/{rule_id}", headers=_as(tutor))
        assert deleted.status_code == status.HTTP_204_NO_CONTENT
        assert client.get(_rules_url(tutor.id)).json() == []

    def test_other_users_cannot_edit(self, client, tutor, student):
        rule_id = client.get(_rules_url(tutor.id)).json()[0]["id"]

        response = client.delete(f"{_rules_url(tutor.id)}/{rule_id}", headers=_as(student))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_rule_of_another_tutor_is_not_found(self, client, db, tutor):
        other = make_tutor(db)
        rule_id = client.get(_rules_url(tutor.id)).json()[0]["id"]

        response = client.delete(f"{_rules_url(other.id)}/{rule_id}", headers=_as(other))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestSlotRoutes:
    def test_slots_for_next_monday(self, client, tutor, student):
        client.post(
            "/api/v1/bookings",
            json={
                "tutor_id": tutor.id,
                "scheduled_at": "2030-01-07T09:00:00Z",
                "duration_minutes": 60,
            },
            headers=_as(student),
        )

        response = client.get(f"/api/v1/tutors/{tutor.id}/slots", params={"date": "2030-01-07"})

        assert response.status_code == status.HTTP_200_OK
        day = response.json()["days"][0]
        assert day["date"] == "2030-01-07"
        assert [s["start_at"] for s in day["slots"]] == [
            "2030-01-07T10:00:00+00:00",
            "2030-01-07T10:30:00+00:00",
            "2030-01-07T11:00:00+00:00",
            "2030-01-07T11:30:00+00:00",
        ]

    def test_include_unavailable_flags_booked_slots(self, client, tutor, student):
        client.post(
            "/api/v1/bookings",
            json={
                "tutor_id": tutor.id,
                "scheduled_at": "2030-01-07T09:00:00Z",
                "duration_minutes": 30,
            },
            headers=_as(student),
        )

        slots = client.get(
            f"/api/v1/tutors/{tutor.id}/slots",
            params={"date": "2030-01-07", "include_unavailable": "true"},
        ).json()["days"][0]["slots"]

        assert slots[0]["available"] is False
        assert all(s["available"] for s in slots[1:])
        assert len(slots) == 6

    def test_slot_step_is_fixed_and_every_offered_slot_is_bookable(self, client, tutor, student):
        url = f"/api/v1/tutors/{tutor.id}/slots"
        default = client.get(url, params={"date": "2030-01-07"}).json()
        custom = client.get(url, params={"date": "2030-01-07", "granularity_minutes": 45}).json()

        assert custom == default
        slot = default["days"][0]["slots"][1]
        response = client.post(
            "/api/v1/bookings",
            json={
                "tutor_id": tutor.id,
                "scheduled_at": slot["start_at"],
                "duration_minutes": 30,
            },
            headers=_as(student),
        )
        assert response.status_code == status.HTTP_201_CREATED

    def test_multi_day_range(self, client, tutor):
        days = client.get(
            f"/api/v1/tutors/{tutor.id}/slots", params={"date": "2030-01-06", "days": 3}
        ).json()["days"]

        assert [d["date"] for d in days] == ["2030-01-06", "2030-01-07", "2030-01-08"]
        assert [len(d["slots"]) for d in days] == [0, 6, 0]

    def test_range_too_long_is_rejected(self, client, tutor):
        response = client.get(
            f"/api/v1/tutors/{tutor.id}/slots", params={"date": "2030-01-07", "days": 60}
        )
        assert response.status_code == 422
