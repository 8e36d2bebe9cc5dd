"""Patient lookup tool.

API endpoints used:
- GET /patients  — Search patients by first name, last name or MRN
"""

from __future__ import annotations

from typing import Any

from clinic_agents.clinic_client import get_client
from clinic_agents.tools.common import date_only

PATIENT_LOOKUP_LIMIT = 5


async def patient_lookup(query: str) -> dict[str, Any]:
    """Look up a patient by name or MRN. Returns matching patient records.

    Args:
        query: Part of a first or last name, or an exact MRN.

    Returns:
        {"patients": [...], "total": n} with at most 5 matches.
    """
    client = await get_client()
    data = await client.get(
        "/patients",
        params={"search": str(query).strip(), "limit": PATIENT_LOOKUP_LIMIT},
    )

    patients = [
        {
            "id": p.get("id"),
            "firstName": p.get("firstName"),
            "lastName": p.get("lastName"),
            "mrn": p.get("mrn"),
            "dateOfBirth": date_only(p.get("dateOfBirth")),
            "phone": p.get("phone"),
            "email": p.get("email"),
            "active": p.get("active", True),
        }
        for p in data.get("data", [])[:PATIENT_LOOKUP_LIMIT]
    ]
    return {"patients": patients, "total": len(patients)}
