"""Billing tools — insurance coverage and claims.

API endpoints used:
- GET /patients/{id}/coverages  — Patient's insurance coverages
- GET /claims                   — Claims filtered by status and/or patient
"""

from __future__ import annotations

from typing import Any

from clinic_agents.clinic_client import ClinicAPIError, get_client
from clinic_agents.tools.common import as_number, clean, date_only

CLAIM_LOOKUP_LIMIT = 10


async def insurance_verify(patient_id: str) -> dict[str, Any]:
    """Check insurance coverage status and plan details for a patient.

    Args:
        patient_id: The patient ID to check coverage for.

    Returns:
        {"coverages": [...], "total": n}; active coverages only, primary first.
    """
    patient_id = str(patient_id).strip()
    client = await get_client()

    try:
        data = await client.get(f"/patients/{patient_id}/coverages", params={"active": "true"})
    except ClinicAPIError as e:
        if e.not_found:
            return {"error": f"Patient {patient_id} not found"}
        raise

    rows = sorted(data.get("data", []), key=lambda c: not c.get("isPrimary", False))
    coverages = []
    for c in rows:
        payer = c.get("payer") or {}
        coverages.append(
            {
                "payer": payer.get("name"),
                "planType": payer.get("planType"),
                "memberId": c.get("memberId"),
                "groupNumber": c.get("groupNumber"),
                "planName": c.get("planName"),
                "isPrimary": bool(c.get("isPrimary", False)),
                "effectiveDate": date_only(c.get("effectiveDate")),
                "terminationDate": date_only(c.get("terminationDate")),
                "copay": c.get("copay"),
                "deductible": c.get("deductible"),
                "deductibleMet": c.get("deductibleMet"),
            }
        )
    return {"coverages": coverages, "total": len(coverages)}


async def claim_lookup(
    status: str | None = None, patient_id: str | None = None
) -> dict[str, Any]:
    """Look up claims filtered by status and/or patient.

    Args:
        status: PENDING, SUBMITTED, DENIED, PAID, APPEALED, etc.
        patient_id: Only claims for this patient.

    Returns:
        {"claims": [...], "total": n}, most recent service date first, at most 10.
    """
    status = clean(status)
    client = await get_client()
    data = await client.get(
        "/claims",
        params={
            "status": status.upper() if status else None,
            "patientId": clean(patient_id),
            "sort": "-serviceDate",
            "limit": CLAIM_LOOKUP_LIMIT,
        },
    )

    claims = []
    for c in data.get("data", [])[:CLAIM_LOOKUP_LIMIT]:
        patient = c.get("patient") or {}
        paid = c.get("paidAmount")
        claims.append(
            {
                "id": c.get("id"),
                "claimNumber": c.get("claimNumber"),
                "patient": f"{patient.get('firstName', '')} {patient.get('lastName', '')} "
                f"({patient.get('mrn', '?')})",
                "payer": (c.get("payer") or {}).get("name"),
                "status": c.get("status"),
                "totalCharge": as_number(c.get("totalCharge")),
                "paidAmount": as_number(paid) if paid is not None else None,
                "serviceDate": date_only(c.get("serviceDate")),
                "denialReason": c.get("denialReason"),
            }
        )
    return {"claims": claims, "total": len(claims)}
