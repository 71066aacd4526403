"""Integration tests for the enrollment wizard and enrollment endpoints."""

from __future__ import annotations

import asyncio
import base64

import pytest
from httpx import AsyncClient

from aventures.config import get_settings
from aventures.enrollment.storage import LocalProofStorage

WIZARD = "/api/v1/trips/trip-djurdjura/enrollment/wizard"


def proof_body(data: bytes, content_type: str = "image/png") -> dict:
    return {
        "filename": "recu.png",
        "content_type": content_type,
        "data_base64": base64.b64encode(data).decode(),
    }


async def walk_to_payment(client: AsyncClient, headers: dict) -> None:
    await client.post(WIZARD, headers=headers)
    await client.patch(WIZARD, json={"accepted_terms": True}, headers=headers)
    await client.post(f"{WIZARD}/next", headers=headers)
    await client.patch(WIZARD, json={"tshirt_size": "L", "needs_transport": False}, headers=headers)
    await client.post(f"{WIZARD}/next", headers=headers)
    await client.patch(WIZARD, json={"medical_info_confirmed": True}, headers=headers)
    response = await client.post(f"{WIZARD}/next", headers=headers)
    assert response.json()["step"] == 4


async def submit_on_site(client: AsyncClient, headers: dict) -> dict:
    await walk_to_payment(client, headers)
    await client.patch(WIZARD, json={"payment_method": "on-site"}, headers=headers)
    response = await client.post(f"{WIZARD}/next", headers=headers)
    return response.json()


class TestTripAvailability:
    @pytest.mark.asyncio
    async def test_availability(self, client: AsyncClient, trip):
        response = await client.get(f"/api/v1/trips/{trip.id}/availability")
        assert response.json() == {"trip_id": trip.id, "available": True, "remaining": 12}

    @pytest.mark.asyncio
    async def test_availability_unknown_trip(self, client: AsyncClient):
        response = await client.get("/api/v1/trips/nope/availability")
        assert response.status_code == 404


class TestWizardEndpoints:
    @pytest.mark.asyncio
    async def test_open_wizard(self, client: AsyncClient, trip, user_headers, fake_redis):
        response = await client.post(WIZARD, headers=user_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["step"] == 1
        assert data["step_name"] == "confirm"
        assert data["remaining_seats"] == 12
        assert await fake_redis.keys("enrollment:wizard:*") == ["enrollment:wizard:user-amina:trip-djurdjura"]

    @pytest.mark.asyncio
    async def test_open_unknown_trip(self, client: AsyncClient, user_headers):
        response = await client.post("/api/v1/trips/nope/enrollment/wizard", headers=user_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_no_wizard_in_progress(self, client: AsyncClient, trip, user_headers):
        response = await client.get(WIZARD, headers=user_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_terms_gate(self, client: AsyncClient, trip, user_headers):
        await client.post(WIZARD, headers=user_headers)
        response = await client.post(f"{WIZARD}/next", headers=user_headers)
        data = response.json()
        assert data["step"] == 1
        assert data["error"] == "You must accept terms and conditions to continue"

    @pytest.mark.asyncio
    async def test_form_persists_across_requests(self, client: AsyncClient, trip, user_headers):
        await walk_to_payment(client, user_headers)
        response = await client.post(f"{WIZARD}/previous", headers=user_headers)
        data = response.json()
        assert data["step"] == 3
        assert data["form"]["tshirt_size"] == "L"
        assert data["form"]["accepted_terms"] is True

    @pytest.mark.asyncio
    async def test_invalid_field_value(self, client: AsyncClient, trip, user_headers):
        await client.post(WIZARD, headers=user_headers)
        response = await client.patch(WIZARD, json={"tshirt_size": "XXXL"}, headers=user_headers)
        assert response.status_code == 422

    @pytest.mark.parametrize("field", ["accepted_terms", "needs_transport", "medical_info_confirmed"])
    @pytest.mark.asyncio
    async def test_null_flag_rejected_and_session_intact(self, client: AsyncClient, trip, user_headers, field):
        await client.post(WIZARD, headers=user_headers)
        response = await client.patch(WIZARD, json={field: None}, headers=user_headers)
        assert response.status_code == 422

        state = await client.get(WIZARD, headers=user_headers)
        assert state.status_code == 200
        assert state.json()["form"][field] is False

    @pytest.mark.asyncio
    async def test_revoked_terms_block_submission(self, client: AsyncClient, trip, user_headers):
        await walk_to_payment(client, user_headers)
        await client.patch(
            WIZARD, json={"accepted_terms": False, "payment_method": "on-site"}, headers=user_headers,
        )
        data = (await client.post(f"{WIZARD}/next", headers=user_headers)).json()
        assert data["step"] == 4
        assert data["error"] == "You must accept terms and conditions to continue"
        assert data["enrollment_id"] is None

        availability = await client.get(f"/api/v1/trips/{trip.id}/availability")
        assert availability.json()["remaining"] == 12

    @pytest.mark.asyncio
    async def test_on_site_submission(self, client: AsyncClient, trip, user_headers):
        data = await submit_on_site(client, user_headers)
        assert data["step"] == 5
        assert data["step_name"] == "done"
        assert data["reservation_number"].startswith("CA-")

        enrollment = await client.get(f"/api/v1/enrollments/{data['enrollment_id']}", headers=user_headers)
        assert enrollment.status_code == 200
        body = enrollment.json()
        assert body["status"] == "pending"
        assert body["payment_method"] == "on-site"
        assert body["tshirt_size"] == "L"
        assert body["reservation_number"] == data["reservation_number"]

        availability = await client.get(f"/api/v1/trips/{trip.id}/availability")
        assert availability.json()["remaining"] == 11

    @pytest.mark.asyncio
    async def test_transfer_with_proof(self, client: AsyncClient, trip, user_headers, png_bytes):
        await walk_to_payment(client, user_headers)
        await client.patch(
            WIZARD, json={"payment_method": "baridimob", "transaction_number": "BM-77"}, headers=user_headers,
        )
        response = await client.put(f"{WIZARD}/payment-proof", json=proof_body(png_bytes), headers=user_headers)
        assert response.json()["proof_filename"] == "recu.png"

        data = (await client.post(f"{WIZARD}/next", headers=user_headers)).json()
        assert data["step"] == 5
        assert data["proof_uploaded"] is True

        body = (await client.get(f"/api/v1/enrollments/{data['enrollment_id']}", headers=user_headers)).json()
        assert body["transaction_number"] == "BM-77"
        assert body["payment_proof_url"].startswith(f"http://media.test/payment-proofs/{data['enrollment_id']}/")

    @pytest.mark.asyncio
    async def test_proof_must_be_image(self, client: AsyncClient, trip, user_headers):
        await walk_to_payment(client, user_headers)
        response = await client.put(
            f"{WIZARD}/payment-proof", json=proof_body(b"%PDF-1.4", "application/pdf"), headers=user_headers,
        )
        assert response.json()["error"] == "The payment proof must be an image"
        assert response.json()["proof_filename"] is None

    @pytest.mark.asyncio
    async def test_bad_base64(self, client: AsyncClient, trip, user_headers):
        await client.post(WIZARD, headers=user_headers)
        body = {"filename": "a.png", "content_type": "image/png", "data_base64": "***"}
        response = await client.put(f"{WIZARD}/payment-proof", json=body, headers=user_headers)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_second_enrollment_fails_on_commit(self, client: AsyncClient, trip, user_headers):
        await submit_on_site(client, user_headers)
        data = await submit_on_site(client, user_headers)
        assert data["step"] == 4
        assert data["error"] == "You are already enrolled in this trip"

    @pytest.mark.asyncio
    async def test_full_trip_fails_on_commit(self, client: AsyncClient, trip_factory, user_headers):
        await trip_factory(trip_id="trip-djurdjura", max_participants=1, participants_count=1)
        await client.post(WIZARD, headers=user_headers)
        state = (await client.get(WIZARD, headers=user_headers)).json()
        assert state["warning"] == "This trip appears to be full. Your enrollment may be refused."

        data = await submit_on_site(client, user_headers)
        assert data["step"] == 4
        assert data["error"] == "This trip is full"

    @pytest.mark.asyncio
    async def test_closed_trip_fails_on_commit(self, client: AsyncClient, trip_factory, user_headers):
        await trip_factory(trip_id="trip-djurdjura", status="cancelled")
        data = await submit_on_site(client, user_headers)
        assert data["step"] == 4
        assert data["error"] == "This trip is no longer open for enrollment"
        assert data["enrollment_id"] is None

        availability = await client.get("/api/v1/trips/trip-djurdjura/availability")
        assert availability.json() == {"trip_id": "trip-djurdjura", "available": False, "remaining": 12}

    @pytest.mark.asyncio
    async def test_close_keeps_enrollment(self, client: AsyncClient, trip, user_headers):
        data = await submit_on_site(client, user_headers)
        response = await client.delete(WIZARD, headers=user_headers)
        assert response.status_code == 204
        assert (await client.get(WIZARD, headers=user_headers)).status_code == 404
        enrollment = await client.get(f"/api/v1/enrollments/{data['enrollment_id']}", headers=user_headers)
        assert enrollment.status_code == 200


class TestEnrollmentEndpoints:
    @pytest.mark.asyncio
    async def test_other_users_cannot_read(self, client: AsyncClient, trip, user_headers):
        data = await submit_on_site(client, user_headers)
        response = await client.get(f"/api/v1/enrollments/{data['enrollment_id']}", headers={"X-User-Id": "user-karim"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_out_of_band_proof_upload(self, client: AsyncClient, trip, user_headers, png_bytes):
        data = await submit_on_site(client, user_headers)
        response = await client.put(
            f"/api/v1/enrollments/{data['enrollment_id']}/payment-proof",
            json=proof_body(png_bytes),
            headers=user_headers,
        )
        assert response.status_code == 200
        assert response.json()["payment_proof_url"].endswith(".png")

    @pytest.mark.asyncio
    async def test_out_of_band_proof_rejects_non_image(self, client: AsyncClient, trip, user_headers):
        data = await submit_on_site(client, user_headers)
        response = await client.put(
            f"/api/v1/enrollments/{data['enrollment_id']}/payment-proof",
            json=proof_body(b"hello", "text/plain"),
            headers=user_headers,
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_out_of_band_proof_storage_failure(
        self, client: AsyncClient, trip, user_headers, png_bytes, monkeypatch,
    ):
        data = await submit_on_site(client, user_headers)

        async def broken_upload(self, enrollment_id, proof):
            raise OSError("disk full")

        monkeypatch.setattr(LocalProofStorage, "upload", broken_upload)
        response = await client.put(
            f"/api/v1/enrollments/{data['enrollment_id']}/payment-proof",
            json=proof_body(png_bytes),
            headers=user_headers,
        )
        assert response.status_code == 503
        assert response.json()["detail"] == "The payment proof could not be stored. Please try again."

        body = (await client.get(f"/api/v1/enrollments/{data['enrollment_id']}", headers=user_headers)).json()
        assert body["payment_proof_url"] is None

    @pytest.mark.asyncio
    async def test_out_of_band_proof_upload_times_out(
        self, client: AsyncClient, trip, user_headers, png_bytes, monkeypatch,
    ):
        data = await submit_on_site(client, user_headers)

        async def stalled_upload(self, enrollment_id, proof):
            await asyncio.sleep(5)
            return "http://media.test/late.png"

        monkeypatch.setattr(LocalProofStorage, "upload", stalled_upload)
        monkeypatch.setenv("AVENTURES_ENROLLMENT_IO_TIMEOUT_SECONDS", "0.05")
        get_settings.cache_clear()
        try:
            response = await client.put(
                f"/api/v1/enrollments/{data['enrollment_id']}/payment-proof",
                json=proof_body(png_bytes),
                headers=user_headers,
            )
        finally:
            get_settings.cache_clear()
        assert response.status_code == 504
        assert "try again" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_cancel_releases_seat(self, client: AsyncClient, trip, user_headers):
        data = await submit_on_site(client, user_headers)
        response = await client.post(f"/api/v1/enrollments/{data['enrollment_id']}/cancel", headers=user_headers)
        assert response.json()["status"] == "cancelled"
        availability = await client.get(f"/api/v1/trips/{trip.id}/availability")
        assert availability.json()["remaining"] == 12

        again = await client.post(f"/api/v1/enrollments/{data['enrollment_id']}/cancel", headers=user_headers)
        assert again.status_code == 409


class TestAdminStatus:
    @pytest.mark.asyncio
    async def test_requires_admin(self, client: AsyncClient, trip, user_headers):
        data = await submit_on_site(client, user_headers)
        response = await client.post(
            f"/api/v1/admin/enrollments/{data['enrollment_id']}/status",
            json={"status": "confirmed"},
            headers=user_headers,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_complete_trip_awards_explorer(self, client: AsyncClient, trip, user_headers, admin_headers):
        data = await submit_on_site(client, user_headers)
        url = f"/api/v1/admin/enrollments/{data['enrollment_id']}/status"

        confirmed = await client.post(url, json={"status": "confirmed"}, headers=admin_headers)
        assert confirmed.json()["status"] == "confirmed"
        completed = await client.post(url, json={"status": "completed"}, headers=admin_headers)
        assert completed.json()["status"] == "completed"

        badges = (await client.get("/api/v1/users/me/badges", headers=user_headers)).json()
        assert [b["badge"]["id"] for b in badges["earned"]] == ["explorer"]

    @pytest.mark.asyncio
    async def test_invalid_transition(self, client: AsyncClient, trip, user_headers, admin_headers):
        data = await submit_on_site(client, user_headers)
        response = await client.post(
            f"/api/v1/admin/enrollments/{data['enrollment_id']}/status",
            json={"status": "completed"},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert "Invalid transition" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_enrollment(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/v1/admin/enrollments/missing/status", json={"status": "confirmed"}, headers=admin_headers,
        )
        assert response.status_code == 404
