# backend/tests/routes/test_booking_routes.py
"""
Route tests for booking creation, transitions and listings, including the
error envelope callers branch on.
"""

from fastapi import status

from tests.factories.booking_builders import make_user
from tutorslots.models.user import UserRole

BOOKINGS = "/api/v1/bookings"


def _as(user):
    return {"X-Actor-Id": user.id}


def _book(client, student, tutor, scheduled_at="2030-01-07T09:00:00Z", minutes=30):
    return client.post(
        BOOKINGS,
        json={"tutor_id": tutor.id, "scheduled_at": scheduled_at, "duration_minutes": minutes},
        headers=_as(student),
    )


def _pay(client, student, booking_id, payment_provider):
    handle = client.post(f"{BOOKINGS}/{booking_id}/payment", headers=_as(student)).json()
    payment_provider.settle(handle["session_id"])
    return handle


class TestCreateBookingRoute:
    def test_student_books_free_slot(self, client, tutor, student):
        response = _book(client, student, tutor)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["status"] == "pending"
        assert data["payment_status"] == "pending"
        assert data["student_id"] == student.id
        assert data["scheduled_at"] == "2030-01-07T09:00:00+00:00"
        assert data["ends_at"] == "2030-01-07T09:30:00+00:00"
        assert data["meeting_link"] is None

    def test_second_student_gets_slot_unavailable(self, client, tutor, student, other_student):
        assert _book(client, student, tutor).status_code == status.HTTP_201_CREATED

        response = _book(client, other_student, tutor)

        assert response.status_code == status.HTTP_409_CONFLICT
        body = response.json()
        assert body["code"] == "SLOT_UNAVAILABLE"
        assert body["title"] == "Conflict"
        assert body["instance"] == BOOKINGS
        assert body["errors"]["reason"] == "overlap"

    def test_offset_timestamps_are_normalized_to_utc(self, client, tutor, student):
        response = _book(client, student, tutor, scheduled_at="2030-01-07T10:00:00+01:00")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["scheduled_at"] == "2030-01-07T09:00:00+00:00"

    def test_past_start_is_invalid_time(self, client, tutor, student):
        response = _book(client, student, tutor, scheduled_at="2030-01-06T09:00:00Z")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "INVALID_TIME"

    def test_missing_actor_is_unauthenticated(self, client, tutor):
        response = client.post(
            BOOKINGS,
            json={
                "tutor_id": tutor.id,
                "scheduled_at": "2030-01-07T09:00:00Z",
                "duration_minutes": 30,
            },
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["code"] == "UNAUTHENTICATED"

    def test_unknown_fields_are_rejected(self, client, tutor, student):
        response = client.post(
            BOOKINGS,
            json={
                "tutor_id": tutor.id,
                "scheduled_at": "2030-01-07T09:00:00Z",
                "duration_minutes": 30,
                "status": "confirmed",
            },
            headers=_as(student),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"


class TestBookingTransitionsRoute:
    def test_confirm_before_payment_is_payment_required(self, client, tutor, student):
        booking_id = _book(client, student, tutor).json()["id"]

        response = client.post(f"{BOOKINGS}/{booking_id}/confirm", headers=_as(tutor))

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert response.json()["code"] == "PAYMENT_REQUIRED"

    def test_reconcile_confirms_paid_booking(self, client, tutor, student, payment_provider):
        booking_id = _book(client, student, tutor).json()["id"]
        _pay(client, student, booking_id, payment_provider)

        reconciled = client.post(f"{BOOKINGS}/{booking_id}/payment/reconcile", headers=_as(student))
        assert reconciled.json() == {
            "booking_id": booking_id,
            "payment_status": "paid",
            "status": "confirmed",
        }

        data = client.get(f"{BOOKINGS}/{booking_id}", headers=_as(tutor)).json()
        assert data["meeting_link"]
        assert data["amount_paid"] == 12.5

    def test_tutor_rejects_and_window_reopens(self, client, tutor, student, other_student):
        booking_id = _book(client, student, tutor).json()["id"]

        rejected = client.post(
            f"{BOOKINGS}/{booking_id}/reject", json={"reason": "busy"}, headers=_as(tutor)
        )

        assert rejected.status_code == status.HTTP_200_OK
        assert rejected.json()["status"] == "cancelled"
        assert rejected.json()["cancellation_reason"] == "busy"
        assert _book(client, other_student, tutor).status_code == status.HTTP_201_CREATED

    def test_student_cannot_confirm_or_reject(self, client, tutor, student):
        booking_id = _book(client, student, tutor).json()["id"]

        for action in ("confirm", "reject", "complete"):
            response = client.post(f"{BOOKINGS}/{booking_id}/{action}", headers=_as(student))
            assert response.status_code == status.HTTP_403_FORBIDDEN
            assert response.json()["code"] == "FORBIDDEN"

    def test_confirm_cancelled_unpaid_booking_is_payment_required(self, client, tutor, student):
        booking_id = _book(client, student, tutor).json()["id"]
        client.post(f"{BOOKINGS}/{booking_id}/cancel", headers=_as(student))

        response = client.post(f"{BOOKINGS}/{booking_id}/confirm", headers=_as(tutor))

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert response.json()["code"] == "PAYMENT_REQUIRED"

    def test_outsider_cannot_see_or_cancel(self, client, tutor, student, other_student):
        booking_id = _book(client, student, tutor).json()["id"]

        assert (
            client.get(f"{BOOKINGS}/{booking_id}", headers=_as(other_student)).status_code
            == status.HTTP_403_FORBIDDEN
        )
        assert (
            client.post(f"{BOOKINGS}/{booking_id}/cancel", headers=_as(other_student)).status_code
            == status.HTTP_403_FORBIDDEN
        )

    def test_admin_may_act_on_any_booking(self, client, db, tutor, student):
        admin = make_user(db, role=UserRole.ADMIN.value)
        booking_id = _book(client, student, tutor).json()["id"]

        response = client.post(f"{BOOKINGS}/{booking_id}/cancel", headers=_as(admin))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["cancelled_by_id"] == admin.id

    def test_unknown_booking_is_not_found(self, client, student):
        response = client.get(f"{BOOKINGS}/01HZZZZZZZZZZZZZZZZZZZZZZZ", headers=_as(student))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "NOT_FOUND"


class TestBookingListingsRoute:
    def test_student_and_tutor_listings(self, client, tutor, student, other_student):
        first = _book(client, student, tutor, "2030-01-07T10:00:00Z").json()["id"]
        second = _book(client, student, tutor, "2030-01-07T09:00:00Z").json()["id"]
        _book(client, other_student, tutor, "2030-01-07T11:00:00Z")
        client.post(f"{BOOKINGS}/{first}/cancel", headers=_as(student))

        mine = client.get(f"/api/v1/students/{student.id}/bookings", headers=_as(student)).json()
        assert [b["id"] for b in mine["bookings"]] == [second, first]
        assert mine["total"] == 2

        pending = client.get(
            f"/api/v1/tutors/{tutor.id}/bookings",
            params={"status": "pending"},
            headers=_as(tutor),
        ).json()
        assert pending["total"] == 2
        assert all(b["status"] == "pending" for b in pending["bookings"])

    def test_listing_other_users_bookings_is_forbidden(self, client, student, other_student):
        response = client.get(
            f"/api/v1/students/{student.id}/bookings", headers=_as(other_student)
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_status_filter_is_rejected(self, client, tutor):
        response = client.get(
            f"/api/v1/tutors/{tutor.id}/bookings",
            params={"status": "archived"},
            headers=_as(tutor),
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "INVALID_STATUS"
