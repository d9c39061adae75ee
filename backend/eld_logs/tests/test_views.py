"""
Tests for ELD Logs API Views.
"""

import pytest
from rest_framework import status

BASE = "/api/eld"


def append(client, driver_id, duty_status, at, **extra):
    return client.post(
        f"{BASE}/drivers/{driver_id}/duty-status/",
        {"status": duty_status, "at": at, **extra},
        format="json",
    )


@pytest.mark.django_db
class TestDutyStatusEndpoints:
    """Test the driver ledger endpoints."""

    def test_append_and_list(self, api_client):
        response = append(api_client, "D1", "off_duty", "2024-03-04T00:00:00Z")
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["entry"]["sequence"] == 1
        assert response.data["entry"]["is_open"] is True

        append(api_client, "D1", "on_duty", "2024-03-04T06:00:00Z", vehicle_id="TRK-12")
        response = api_client.get(f"{BASE}/drivers/D1/duty-status/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 2
        entries = response.data["entries"]
        assert [e["status"] for e in entries] == ["off_duty", "on_duty"]
        assert entries[0]["duration_seconds"] == 6 * 3600
        assert entries[1]["vehicle_id"] == "TRK-12"

    def test_invalid_initial_status_conflicts(self, api_client):
        response = append(api_client, "D1", "driving", "2024-03-04T06:00:00Z")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["status"] == "error"
        assert response.data["code"] == "conflict"
        assert response.data["context"]["driver_id"] == "D1"

    def test_out_of_order_append_conflicts(self, api_client):
        append(api_client, "D1", "off_duty", "2024-03-04T06:00:00Z")

        response = append(api_client, "D1", "on_duty", "2024-03-04T05:00:00Z")

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_stale_expected_sequence_conflicts(self, api_client):
        append(api_client, "D1", "off_duty", "2024-03-04T00:00:00Z")

        response = append(
            api_client, "D1", "on_duty", "2024-03-04T06:00:00Z", expected_sequence=0
        )

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_invalid_payload_rejected(self, api_client):
        response = append(api_client, "D1", "yard_move", "not-a-date", latitude=120)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["status"] == "error"
        assert {"status", "at", "latitude"} <= set(response.data["errors"])

    def test_current_entry(self, api_client):
        response = api_client.get(f"{BASE}/drivers/D1/duty-status/current/")
        assert response.data["entry"] is None

        append(api_client, "D1", "sleeper_berth", "2024-03-04T00:00:00Z")
        response = api_client.get(f"{BASE}/drivers/D1/duty-status/current/")

        assert response.data["entry"]["status"] == "sleeper_berth"


@pytest.mark.django_db
class TestCertificationEndpoints:
    """Test entry and day certification."""

    def test_certify_entry_once(self, api_client):
        first = append(api_client, "D1", "off_duty", "2024-03-04T00:00:00Z").data["entry"]
        append(api_client, "D1", "on_duty", "2024-03-04T06:00:00Z")
        url = f"{BASE}/entries/{first['id']}/certify/"

        response = api_client.post(url, {"actor_id": "D1"}, format="json")
        assert response.status_code == status.HTTP_200_OK
        assert response.data["entry"]["certified_by"] == "D1"

        response = api_client.post(url, {}, format="json")
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["code"] == "already_certified"

    def test_certify_open_entry_conflicts(self, api_client):
        entry = append(api_client, "D1", "off_duty", "2024-03-04T00:00:00Z").data["entry"]

        response = api_client.post(f"{BASE}/entries/{entry['id']}/certify/", {}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["code"] == "open_entry"

    def test_certify_day(self, api_client):
        append(api_client, "D1", "off_duty", "2024-03-04T00:00:00Z")
        append(api_client, "D1", "on_duty", "2024-03-04T06:00:00Z")
        append(api_client, "D1", "off_duty", "2024-03-04T09:00:00Z")

        response = api_client.post(
            f"{BASE}/drivers/D1/certify-day/",
            {"day": "2024-03-04", "timezone": "UTC"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data["entries"]) == 2

    def test_certify_day_unknown_timezone(self, api_client):
        response = api_client.post(
            f"{BASE}/drivers/D1/certify-day/",
            {"day": "2024-03-04", "timezone": "Mars/Olympus"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "timezone" in response.data["errors"]

    def test_unknown_entry(self, api_client):
        response = api_client.get(f"{BASE}/entries/4b8c7f4e-0d1f-4f7e-9a7b-2a57c8d9e001/")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["code"] == "entry_not_found"


@pytest.mark.django_db
class TestAmendmentEndpoints:
    """Test the amendment review workflow over the API."""

    def setup_method(self):
        self.reason = "Was driving, not loading"

    def _target(self, api_client):
        append(api_client, "D1", "off_duty", "2024-03-04T00:00:00Z")
        target = append(api_client, "D1", "on_duty", "2024-03-04T06:00:00Z").data["entry"]
        append(api_client, "D1", "off_duty", "2024-03-04T10:00:00Z")
        return target

    def _submit(self, api_client, target):
        return api_client.post(
            f"{BASE}/amendments/",
            {
                "target_entry_id": target["id"],
                "requested_by": "clerk",
                "reason": self.reason,
                "proposed_status": "driving",
            },
            format="json",
        )

    def test_submit_and_approve(self, api_client):
        target = self._target(api_client)
        response = self._submit(api_client, target)
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["state"] == "pending"
        amendment_id = response.data["id"]

        response = api_client.post(
            f"{BASE}/amendments/{amendment_id}/decide/",
            {"actor_id": "supervisor", "approve": True, "note": "Matches GPS"},
            format="json",
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.data["amendment"]["state"] == "approved"
        resulting_id = response.data["amendment"]["resulting_entry_id"]

        edited = api_client.get(f"{BASE}/entries/{resulting_id}/").data
        assert edited["data_source"] == "edited"
        assert edited["amends_entry_id"] == target["id"]
        assert edited["status"] == "driving"

        export = api_client.get(f"{BASE}/drivers/D1/export/").data
        superseded = [e["id"] for e in export["entries"] if e["superseded"]]
        assert superseded == [target["id"]]

    def test_self_approval_forbidden(self, api_client):
        target = self._target(api_client)
        amendment_id = self._submit(api_client, target).data["id"]

        response = api_client.post(
            f"{BASE}/amendments/{amendment_id}/decide/",
            {"actor_id": "clerk", "approve": True},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert api_client.get(f"{BASE}/amendments/{amendment_id}/").data["state"] == "pending"

    def test_reject_then_decide_again(self, api_client):
        target = self._target(api_client)
        amendment_id = self._submit(api_client, target).data["id"]
        url = f"{BASE}/amendments/{amendment_id}/decide/"

        api_client.post(url, {"actor_id": "supervisor", "approve": False}, format="json")
        response = api_client.post(url, {"actor_id": "supervisor", "approve": True}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        listed = api_client.get(f"{BASE}/amendments/", {"state": "rejected"}).data
        assert [a["id"] for a in listed] == [amendment_id]

    def test_submit_without_proposal(self, api_client):
        target = self._target(api_client)

        response = api_client.post(
            f"{BASE}/amendments/",
            {"target_entry_id": target["id"], "requested_by": "clerk", "reason": self.reason},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
