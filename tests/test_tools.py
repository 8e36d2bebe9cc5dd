"""Tests for the clinic EHR tool functions.

Each test mocks the get_client() singleton so no real clinic API is
needed. We verify that tools return structured data and handle edge cases
(empty data, wrong appointment state, missing records, API errors).
"""

from __future__ import annotations

from datetime import date
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from clinic_agents.clinic_client import ClinicAPIError

# We patch get_client in each tool module to return a mock client.
# The mock client's .get() method returns fake API responses.


def _mock_client(get_response: Any) -> AsyncMock:
    """Create a mock ClinicAPIClient whose .get() returns get_response."""
    client = AsyncMock()
    if isinstance(get_response, Exception):
        client.get.side_effect = get_response
    else:
        client.get.return_value = get_response
    return client


# --- patient_lookup ---


@pytest.mark.asyncio
@patch("clinic_agents.tools.patient.get_client")
async def test_patient_lookup_found(mock_gc: AsyncMock) -> None:
    client = _mock_client(
        {
            "data": [
                {
                    "id": "p1",
                    "firstName": "Maria",
                    "lastName": "Garcia",
                    "mrn": "MRN-001",
                    "dateOfBirth": "1980-01-01T00:00:00Z",
                    "phone": "555-0100",
                },
            ]
        }
    )
    mock_gc.return_value = client
    from clinic_agents.tools.patient import patient_lookup

    result = await patient_lookup("  Garcia ")
    assert result["total"] == 1
    assert result["patients"][0]["mrn"] == "MRN-001"
    assert result["patients"][0]["dateOfBirth"] == "1980-01-01"
    client.get.assert_awaited_once_with("/patients", params={"search": "Garcia", "limit": 5})


@pytest.mark.asyncio
@patch("clinic_agents.tools.patient.get_client")
async def test_patient_lookup_caps_results(mock_gc: AsyncMock) -> None:
    """At most five matches are returned even if the API sends more."""
    mock_gc.return_value = _mock_client({"data": [{"id": f"p{i}"} for i in range(8)]})
    from clinic_agents.tools.patient import patient_lookup

    result = await patient_lookup("Smith")
    assert result["total"] == 5


@pytest.mark.asyncio
@patch("clinic_agents.tools.patient.get_client")
async def test_patient_lookup_api_error_propagates(mock_gc: AsyncMock) -> None:
    """Infrastructure faults are not turned into data."""
    mock_gc.return_value = _mock_client(ClinicAPIError(0, "connection refused"))
    from clinic_agents.tools.patient import patient_lookup

    with pytest.raises(ClinicAPIError):
        await patient_lookup("Garcia")


# --- appointment_list ---


@pytest.mark.asyncio
@patch("clinic_agents.tools.scheduling.get_client")
async def test_appointment_list_for_day(mock_gc: AsyncMock) -> None:
    client = _mock_client(
        {
            "data": [
                {
                    "id": "a1",
                    "patient": {"firstName": "Maria", "lastName": "Garcia", "mrn": "MRN-001"},
                    "provider": {"firstName": "Ann", "lastName": "Lee", "credential": "MD"},
                    "scheduledAt": "2025-03-04T09:00:00Z",
                    "status": "SCHEDULED",
                }
            ]
        }
    )
    mock_gc.return_value = client
    from clinic_agents.tools.scheduling import appointment_list

    result = await appointment_list(date="2025-03-04")
    assert result["total"] == 1
    appt = result["appointments"][0]
    assert appt["patient"] == "Maria Garcia (MRN-001)"
    assert appt["provider"] == "Ann Lee, MD"
    assert appt["appointmentType"] == "unspecified"

    params = client.get.call_args.kwargs["params"]
    assert params["from"].startswith("2025-03-04T00:00:00")
    assert params["to"].startswith("2025-03-04T23:59:59")
    assert params["limit"] == 20


@pytest.mark.asyncio
@patch("clinic_agents.tools.scheduling.get_client")
async def test_appointment_list_invalid_date(mock_gc: AsyncMock) -> None:
    client = _mock_client({"data": []})
    mock_gc.return_value = client
    from clinic_agents.tools.scheduling import appointment_list

    result = await appointment_list(date="next tuesday")
    assert "error" in result
    client.get.assert_not_awaited()


# --- appointment_cancel ---


@pytest.mark.asyncio
@patch("clinic_agents.tools.scheduling.get_client")
async def test_appointment_cancel_scheduled(mock_gc: AsyncMock) -> None:
    client = _mock_client({"data": {"id": "a1", "status": "SCHEDULED"}})
    mock_gc.return_value = client
    from clinic_agents.tools.scheduling import appointment_cancel

    result = await appointment_cancel("a1", "Patient Request")
    assert result == {"success": True, "message": "Appointment a1 cancelled. Reason: Patient Request"}

    endpoint = client.patch.call_args.args[0]
    body = client.patch.call_args.kwargs["json_data"]
    assert endpoint == "/appointments/a1"
    assert body["status"] == "CANCELLED"
    assert body["cancellationReason"] == "Patient Request"
    assert "cancelledAt" in body


@pytest.mark.asyncio
@patch("clinic_agents.tools.scheduling.get_client")
async def test_appointment_cancel_already_completed(mock_gc: AsyncMock) -> None:
    """Only SCHEDULED appointments can be cancelled; nothing is written otherwise."""
    client = _mock_client({"data": {"id": "a1", "status": "COMPLETED"}})
    mock_gc.return_value = client
    from clinic_agents.tools.scheduling import appointment_cancel

    result = await appointment_cancel("a1", "Other")
    assert result["success"] is False
    assert "already COMPLETED" in result["error"]
    client.patch.assert_not_awaited()


@pytest.mark.asyncio
@patch("clinic_agents.tools.scheduling.get_client")
async def test_appointment_cancel_not_found(mock_gc: AsyncMock) -> None:
    mock_gc.return_value = _mock_client(ClinicAPIError(404, "Not found"))
    from clinic_agents.tools.scheduling import appointment_cancel

    result = await appointment_cancel("missing", "Other")
    assert result == {"success": False, "error": "Appointment not found."}


@pytest.mark.asyncio
@patch("clinic_agents.tools.scheduling.get_client")
async def test_appointment_cancel_blank_reason_defaults(mock_gc: AsyncMock) -> None:
    mock_gc.return_value = _mock_client({"data": {"id": "a1", "status": "SCHEDULED"}})
    from clinic_agents.tools.scheduling import appointment_cancel

    result = await appointment_cancel("a1", "  ")
    assert result["message"].endswith("Reason: Other")


# --- insurance_verify ---


@pytest.mark.asyncio
@patch("clinic_agents.tools.billing.get_client")
async def test_insurance_verify_primary_first(mock_gc: AsyncMock) -> None:
    mock_gc.return_value = _mock_client(
        {
            "data": [
                {"payer": {"name": "Aetna"}, "memberId": "S2", "isPrimary": False},
                {"payer": {"name": "Medicaid", "planType": "MEDICAID"}, "memberId": "P1", "isPrimary": True},
            ]
        }
    )
    from clinic_agents.tools.billing import insurance_verify

    result = await insurance_verify("p1")
    assert result["total"] == 2
    assert result["coverages"][0]["payer"] == "Medicaid"
    assert result["coverages"][0]["isPrimary"] is True


@pytest.mark.asyncio
@patch("clinic_agents.tools.billing.get_client")
async def test_insurance_verify_unknown_patient(mock_gc: AsyncMock) -> None:
    mock_gc.return_value = _mock_client(ClinicAPIError(404, "Not found"))
    from clinic_agents.tools.billing import insurance_verify

    result = await insurance_verify("nope")
    assert result == {"error": "Patient nope not found"}


# --- claim_lookup ---


@pytest.mark.asyncio
@patch("clinic_agents.tools.billing.get_client")
async def test_claim_lookup_status_filter(mock_gc: AsyncMock) -> None:
    client = _mock_client(
        {
            "data": [
                {
                    "id": "c1",
                    "claimNumber": "CLM-1001",
                    "patient": {"firstName": "Maria", "lastName": "Garcia", "mrn": "MRN-001"},
                    "payer": {"name": "Medicaid"},
                    "status": "DENIED",
                    "totalCharge": "150.00",
                    "paidAmount": None,
                    "serviceDate": "2025-02-01T00:00:00Z",
                    "denialReason": "CO-16",
                }
            ]
        }
    )
    mock_gc.return_value = client
    from clinic_agents.tools.billing import claim_lookup

    result = await claim_lookup(status="denied")
    claim = result["claims"][0]
    assert claim["totalCharge"] == 150.0
    assert claim["paidAmount"] is None
    assert claim["serviceDate"] == "2025-02-01"
    assert client.get.call_args.kwargs["params"]["status"] == "DENIED"


# --- metrics_query ---

_SUMMARY = {
    "data": [
        {"status": "PAID", "count": 30, "paidAmount": "4500.50"},
        {"status": "DENIED", "count": 6, "paidAmount": None},
        {"status": "PENDING", "count": 4, "paidAmount": None},
    ]
}


@pytest.mark.asyncio
@patch("clinic_agents.tools.analytics.get_client")
async def test_metrics_denial_rate(mock_gc: AsyncMock) -> None:
    mock_gc.return_value = _mock_client(_SUMMARY)
    from clinic_agents.tools.analytics import metrics_query

    result = await metrics_query("denial_rate")
    assert result["value"] == "15.0%"
    assert result["denied"] == 6
    assert result["total"] == 40
    assert result["period"] == "this_month"


@pytest.mark.asyncio
@patch("clinic_agents.tools.analytics.get_client")
async def test_metrics_revenue(mock_gc: AsyncMock) -> None:
    mock_gc.return_value = _mock_client(_SUMMARY)
    from clinic_agents.tools.analytics import metrics_query

    result = await metrics_query("revenue", period="this_week")
    assert result["value"] == "$4,500.50"
    assert result["claimCount"] == 30


@pytest.mark.asyncio
@patch("clinic_agents.tools.analytics.get_client")
async def test_metrics_claims_count_and_empty_rate(mock_gc: AsyncMock) -> None:
    mock_gc.return_value = _mock_client(_SUMMARY)
    from clinic_agents.tools.analytics import metrics_query

    result = await metrics_query("claims_count")
    assert result["total"] == 40
    assert {"status": "PENDING", "count": 4} in result["breakdown"]

    mock_gc.return_value = _mock_client({"data": []})
    empty = await metrics_query("denial_rate", period="today")
    assert empty["value"] == "0%"


@pytest.mark.asyncio
@patch("clinic_agents.tools.analytics.get_client")
async def test_metrics_unknown_metric(mock_gc: AsyncMock) -> None:
    client = _mock_client(_SUMMARY)
    mock_gc.return_value = client
    from clinic_agents.tools.analytics import metrics_query

    result = await metrics_query("churn")
    assert result["error"].startswith('Unknown metric "churn"')
    client.get.assert_not_awaited()


def test_period_start() -> None:
    from clinic_agents.tools.analytics import period_start

    today = date(2025, 3, 18)
    assert period_start("today", today) == today
    assert period_start("this_week", today) == date(2025, 3, 11)
    assert period_start("this_month", today) == date(2025, 3, 1)
    assert period_start("last_decade", today) == date(2025, 3, 1)
