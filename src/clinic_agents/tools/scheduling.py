"""Scheduling tools — list and cancel appointments.

API endpoints used:
- GET   /appointments       — Appointments in a time window and/or for a patient
- GET   /appointments/{id}  — A single appointment
- PATCH /appointments/{id}  — Update status (cancellation)
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from typing import Any

from clinic_agents.clinic_client import ClinicAPIError, get_client
from clinic_agents.tools.common import clean

logger = logging.getLogger(__name__)

APPOINTMENT_LIST_LIMIT = 20
CANCELLABLE_STATUS = "SCHEDULED"


def _display_patient(p: dict[str, Any]) -> str:
    return f"{p.get('firstName', '')} {p.get('lastName', '')} ({p.get('mrn', '?')})"


def _display_provider(p: dict[str, Any]) -> str:
    name = f"{p.get('firstName', '')} {p.get('lastName', '')}"
    credential = p.get("credential")
    return f"{name}, {credential}" if credential else name


async def appointment_list(
    date: str | None = None, patient_id: str | None = None
) -> dict[str, Any]:
    """List appointments, optionally filtered by date or patient ID.

    Args:
        date: Day in YYYY-MM-DD format; the whole calendar day is included.
        patient_id: Only appointments for this patient.

    Returns:
        {"appointments": [...], "total": n}, earliest first, at most 20.
    """
    params: dict[str, Any] = {
        "patientId": clean(patient_id),
        "limit": APPOINTMENT_LIST_LIMIT,
        "sort": "scheduledAt",
    }
    day_text = clean(date)
    if day_text:
        try:
            day = _parse_day(day_text)
        except ValueError:
            return {"error": f"Invalid date '{day_text}'. Use YYYY-MM-DD."}
        params["from"] = datetime.combine(day, time.min).isoformat()
        params["to"] = datetime.combine(day, time.max).isoformat()

    client = await get_client()
    data = await client.get("/appointments", params=params)

    appointments = [
        {
            "id": a.get("id"),
            "patient": _display_patient(a.get("patient") or {}),
            "provider": _display_provider(a.get("provider") or {}),
            "scheduledAt": a.get("scheduledAt"),
            "status": a.get("status"),
            "appointmentType": a.get("appointmentType") or "unspecified",
            "chiefComplaint": a.get("chiefComplaint"),
        }
        for a in data.get("data", [])[:APPOINTMENT_LIST_LIMIT]
    ]
    return {"appointments": appointments, "total": len(appointments)}


def _parse_day(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


async def appointment_cancel(appointment_id: str, reason: str = "Other") -> dict[str, Any]:
    """Cancel a scheduled appointment. Only works on SCHEDULED appointments.

    The appointment is re-fetched first; a missing appointment or one in any
    other state is reported as {"success": False, "error": ...} rather than
    raised, so the model can relay the reason to staff.

    Args:
        appointment_id: The appointment ID to cancel.
        reason: Patient Request, No Show, Provider Unavailable,
            Insurance Issue, or Other.
    """
    appointment_id = str(appointment_id).strip()
    reason = clean(reason) or "Other"
    client = await get_client()

    try:
        data = await client.get(f"/appointments/{appointment_id}")
    except ClinicAPIError as e:
        if e.not_found:
            return {"success": False, "error": "Appointment not found."}
        raise

    appt = data.get("data") or {}
    if not appt:
        return {"success": False, "error": "Appointment not found."}

    status = appt.get("status")
    if status != CANCELLABLE_STATUS:
        return {"success": False, "error": f"Cannot cancel — appointment is already {status}."}

    await client.patch(
        f"/appointments/{appointment_id}",
        json_data={
            "status": "CANCELLED",
            "cancelledAt": datetime.now(timezone.utc).isoformat(),
            "cancellationReason": reason,
        },
    )
    logger.info("Cancelled appointment %s (%s)", appointment_id, reason)
    return {"success": True, "message": f"Appointment {appointment_id} cancelled. Reason: {reason}"}
