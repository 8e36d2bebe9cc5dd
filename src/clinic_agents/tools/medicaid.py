"""Statewide Medicaid tools — providers, aggregated claims, patients, encounters.

The Medicaid tables hold monthly claim aggregates per billing provider and
procedure code. The API exposes them raw and grouped; ranking, trend
trimming, anomaly rules and rate formatting happen here.

API endpoints used:
- GET /medicaid/providers                  — Provider search (text, city, zip, NPI list)
- GET /medicaid/providers/{npi}            — One provider
- GET /medicaid/claims                     — Aggregated claim rows
- GET /medicaid/claims/summary?groupBy=... — Claim rows summed per NPI, code or month
- GET /medicaid/hcpcs                      — HCPCS/CPT code descriptions
- GET /medicaid/patients                   — Patient search / count
- GET /medicaid/patients/{id}              — One patient
- GET /medicaid/patients/{id}/encounters   — Encounter and claim history
- GET /medicaid/dashboard                  — Program-wide totals
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from clinic_agents.clinic_client import ClinicAPIError, get_client
from clinic_agents.tools.common import as_number, bounded_limit, clean, date_only, person_name

logger = logging.getLogger(__name__)

COST_OUTLIER_FACTOR = 1.5
COST_OUTLIER_HIGH_FACTOR = 2.0
VOLUME_SPIKE_FACTOR = 3.0
VOLUME_SPIKE_HIGH_FACTOR = 5.0
TREND_MONTHS = 12


async def _summary(client: Any, group_by: str, **filters: Any) -> list[dict[str, Any]]:
    """Claim aggregates summed per `group_by` key (billingNpi, procCode or yearMonth)."""
    params = {"groupBy": group_by}
    for key, value in filters.items():
        if isinstance(value, (list, tuple)):
            value = ",".join(value) if value else None
        params[key] = value
    data = await client.get("/medicaid/claims/summary", params=params)
    return [
        {
            "key": row.get("key"),
            "numClaims": int(row.get("numClaims") or 0),
            "numBeneficiaries": int(row.get("numBeneficiaries") or 0),
            "paidAmount": as_number(row.get("paidAmount")),
        }
        for row in data.get("data", [])
    ]


def _provider_row(p: dict[str, Any], stats: dict[str, Any] | None) -> dict[str, Any]:
    return {
        "npi": p.get("npi"),
        "name": person_name(p),
        "credentials": p.get("credentials"),
        "city": p.get("city"),
        "state": p.get("state"),
        "zip": p.get("zip"),
        "totalClaims": stats["numClaims"] if stats else 0,
        "totalPaid": stats["paidAmount"] if stats else 0.0,
    }


async def search_providers(
    query: str | None = None,
    city: str | None = None,
    zip: str | None = None,  # noqa: A002 - name is part of the tool schema
    sort_by: str = "total_claims",
    limit: int = 10,
) -> dict[str, Any]:
    """Search statewide Medicaid providers by name, NPI, city, zip, or credentials.

    With a city or zip filter the results are the top billers in that area,
    ranked by claim volume ("total_claims") or amount paid ("total_paid").
    Without one, matches are alphabetical.
    """
    query, city, zip = clean(query), clean(city), clean(zip)
    sort_by = clean(sort_by) or "total_claims"
    limit = bounded_limit(limit, default=10, maximum=50)
    client = await get_client()

    if city or zip:
        data = await client.get(
            "/medicaid/providers", params={"search": query, "city": city, "zip": zip}
        )
        candidates = {p["npi"]: p for p in data.get("data", []) if p.get("npi")}
        if not candidates:
            return {"providers": [], "total": 0, "sortedBy": sort_by}

        stats = await _summary(client, "billingNpi", npi=list(candidates))
        rank_key = "paidAmount" if sort_by == "total_paid" else "numClaims"
        stats.sort(key=lambda s: s[rank_key], reverse=True)
        providers = [
            _provider_row(candidates[s["key"]], s) for s in stats[:limit] if s["key"] in candidates
        ]
        return {"providers": providers, "total": len(providers), "sortedBy": sort_by}

    data = await client.get(
        "/medicaid/providers", params={"search": query, "sort": "orgName", "limit": limit}
    )
    found = data.get("data", [])[:limit]
    npis = [p["npi"] for p in found if p.get("npi")]
    stats_by_npi = {s["key"]: s for s in await _summary(client, "billingNpi", npi=npis)} if npis else {}
    providers = [_provider_row(p, stats_by_npi.get(p.get("npi"))) for p in found]
    return {"providers": providers, "total": len(providers)}


async def get_provider_analytics(npi: str) -> dict[str, Any]:
    """Detailed analytics for one provider: totals, top procedures, monthly trend."""
    npi = str(npi).strip()
    client = await get_client()

    try:
        data = await client.get(f"/medicaid/providers/{npi}")
    except ClinicAPIError as e:
        if e.not_found:
            return {"error": f"Provider NPI {npi} not found"}
        raise
    provider = data.get("data") or {}
    if not provider:
        return {"error": f"Provider NPI {npi} not found"}

    by_code = await _summary(client, "procCode", npi=npi)
    by_month = await _summary(client, "yearMonth", npi=npi)
    patients = await client.get("/medicaid/patients", params={"providerNpi": npi, "countOnly": "true"})

    top_codes = sorted(by_code, key=lambda s: s["numClaims"], reverse=True)[:10]
    descriptions = await _hcpcs_descriptions(client, [c["key"] for c in top_codes])

    total_claims = sum(s["numClaims"] for s in by_code)
    total_paid = sum(s["paidAmount"] for s in by_code)
    monthly = sorted(by_month, key=lambda s: s["key"])[-TREND_MONTHS:]

    return {
        "provider": {
            "npi": provider.get("npi", npi),
            "name": person_name(provider),
            "city": provider.get("city"),
            "state": provider.get("state"),
            "credentials": provider.get("credentials"),
        },
        "summary": {
            "totalClaims": total_claims,
            "totalBeneficiaries": sum(s["numBeneficiaries"] for s in by_code),
            "totalPaid": total_paid,
            "avgPaidPerClaim": total_paid / total_claims if total_claims else 0,
            "activePatients": int(patients.get("total", 0)),
        },
        "topProcedures": [
            {
                "procCode": c["key"],
                "description": descriptions.get(c["key"]),
                "numClaims": c["numClaims"],
                "totalPaid": c["paidAmount"],
            }
            for c in top_codes
        ],
        "monthlyTrend": [
            {"yearMonth": m["key"], "numClaims": m["numClaims"], "totalPaid": m["paidAmount"]}
            for m in monthly
        ],
    }


async def _hcpcs_descriptions(client: Any, codes: list[str]) -> dict[str, str]:
    if not codes:
        return {}
    data = await client.get("/medicaid/hcpcs", params={"codes": ",".join(codes)})
    return {h["code"]: h.get("description") for h in data.get("data", []) if h.get("code")}


async def search_medicaid_claims(
    npi: str | None = None,
    proc_code: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    limit: int = 20,
) -> dict[str, Any]:
    """Search aggregated claim rows by provider, procedure code and YYYY-MM range."""
    limit = bounded_limit(limit, default=20, maximum=100)
    client = await get_client()
    data = await client.get(
        "/medicaid/claims",
        params={
            "npi": clean(npi),
            "procCode": clean(proc_code),
            "from": clean(from_date),
            "to": clean(to_date),
            "sort": "-yearMonth",
            "limit": limit,
        },
    )

    claims = []
    for c in data.get("data", [])[:limit]:
        provider = c.get("billingProvider") or {}
        claims.append(
            {
                "billingNpi": c.get("billingNpi"),
                "provider": person_name(provider),
                "city": provider.get("city"),
                "procCode": c.get("procCode"),
                "yearMonth": c.get("yearMonth"),
                "numClaims": int(c.get("numClaims") or 0),
                "numBeneficiaries": int(c.get("numBeneficiaries") or 0),
                "paidAmount": as_number(c.get("paidAmount")),
            }
        )
    return {"claims": claims, "total": len(claims)}


async def get_procedure_info(code: str) -> dict[str, Any]:
    """Description, statewide average cost and top 5 providers for a procedure code."""
    code = str(code).strip().upper()
    client = await get_client()

    try:
        data = await client.get(f"/medicaid/hcpcs/{code}")
        hcpcs = data.get("data") or {}
    except ClinicAPIError as e:
        if not e.not_found:
            raise
        hcpcs = {}

    by_provider = await _summary(client, "billingNpi", procCode=code)
    total_claims = sum(s["numClaims"] for s in by_provider)
    total_paid = sum(s["paidAmount"] for s in by_provider)
    top = sorted(by_provider, key=lambda s: s["numClaims"], reverse=True)[:5]

    names: dict[str, dict[str, Any]] = {}
    if top:
        providers = await client.get(
            "/medicaid/providers", params={"npi": ",".join(s["key"] for s in top)}
        )
        names = {p["npi"]: p for p in providers.get("data", []) if p.get("npi")}

    if hcpcs.get("avgCostTx"):
        avg_cost: float | None = as_number(hcpcs["avgCostTx"])
    else:
        avg_cost = total_paid / total_claims if total_claims else None

    return {
        "code": code,
        "description": hcpcs.get("description") or "No description available",
        "category": hcpcs.get("category"),
        "avgCostTx": avg_cost,
        "summary": {"totalClaims": total_claims, "totalPaid": total_paid},
        "topProviders": [
            {
                "npi": s["key"],
                "name": person_name(names.get(s["key"])),
                "city": (names.get(s["key"]) or {}).get("city"),
                "numClaims": s["numClaims"],
                "totalPaid": s["paidAmount"],
            }
            for s in top
        ],
    }


def find_anomalies(
    provider_codes: list[dict[str, Any]],
    statewide_codes: list[dict[str, Any]],
    monthly: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Apply the billing anomaly rules to pre-summarized claim rows.

    Cost outlier: the provider's paid-per-claim for a code exceeds the
    statewide paid-per-claim by more than 1.5x (high above 2x).
    Volume spike: with more than three months of history, a month whose
    claim volume exceeds 3x the provider's monthly mean (high above 5x).
    High-severity anomalies come first.
    """
    statewide = {
        s["key"]: s["paidAmount"] / s["numClaims"] for s in statewide_codes if s["numClaims"]
    }
    anomalies: list[dict[str, Any]] = []

    for stat in provider_codes:
        state_avg = statewide.get(stat["key"], 0.0)
        provider_avg = stat["paidAmount"] / stat["numClaims"] if stat["numClaims"] else 0.0
        if state_avg > 0 and provider_avg > state_avg * COST_OUTLIER_FACTOR:
            anomalies.append(
                {
                    "type": "cost_outlier",
                    "procCode": stat["key"],
                    "detail": f"Avg paid ${provider_avg:.2f} vs statewide avg ${state_avg:.2f} "
                    f"(+{(provider_avg / state_avg - 1) * 100:.0f}%)",
                    "severity": "high"
                    if provider_avg > state_avg * COST_OUTLIER_HIGH_FACTOR
                    else "medium",
                }
            )

    if len(monthly) > 3:
        mean_volume = sum(m["numClaims"] for m in monthly) / len(monthly)
        for m in sorted(monthly, key=lambda s: s["key"]):
            volume = m["numClaims"]
            if mean_volume and volume > mean_volume * VOLUME_SPIKE_FACTOR:
                anomalies.append(
                    {
                        "type": "volume_spike",
                        "detail": f"{m['key']}: {volume:,} claims "
                        f"({volume / mean_volume:.1f}x avg of {mean_volume:.0f})",
                        "severity": "high"
                        if volume > mean_volume * VOLUME_SPIKE_HIGH_FACTOR
                        else "medium",
                    }
                )

    anomalies.sort(key=lambda a: a["severity"] != "high")
    return anomalies


async def detect_anomalies(npi: str) -> dict[str, Any]:
    """Detect cost outliers and monthly volume spikes for one provider."""
    npi = str(npi).strip()
    client = await get_client()

    provider_codes = await _summary(client, "procCode", npi=npi)
    codes = [s["key"] for s in provider_codes]
    statewide = await _summary(client, "procCode", procCode=codes) if codes else []
    monthly = await _summary(client, "yearMonth", npi=npi)

    anomalies = find_anomalies(provider_codes, statewide, monthly)
    high = sum(1 for a in anomalies if a["severity"] == "high")
    medium = sum(1 for a in anomalies if a["severity"] == "medium")
    return {
        "npi": npi,
        "anomalyCount": len(anomalies),
        "anomalies": anomalies,
        "summary": "No significant billing anomalies detected."
        if not anomalies
        else f"{high} high-severity and {medium} medium-severity anomalies found.",
    }


async def search_medicaid_patients(
    query: str | None = None, provider_npi: str | None = None, limit: int = 10
) -> dict[str, Any]:
    """Search Medicaid patients by name, MRN, or assigned provider NPI."""
    limit = bounded_limit(limit, default=10, maximum=50)
    client = await get_client()
    data = await client.get(
        "/medicaid/patients",
        params={
            "search": clean(query),
            "providerNpi": clean(provider_npi),
            "sort": "lastName,firstName",
            "limit": limit,
        },
    )

    patients = []
    for p in data.get("data", [])[:limit]:
        provider = p.get("primaryProvider")
        patients.append(
            {
                "id": p.get("id"),
                "mrn": p.get("mrn"),
                "name": f"{p.get('firstName', '')} {p.get('lastName', '')}".strip(),
                "dateOfBirth": date_only(p.get("dateOfBirth")),
                "gender": p.get("gender"),
                "city": p.get("city"),
                "insuranceStatus": p.get("insuranceStatus"),
                "primaryProvider": person_name(provider) if provider else None,
            }
        )
    return {"patients": patients, "total": len(patients)}


async def get_patient_encounters(
    patient_id: str,
    status: str | None = None,
    claim_status: str | None = None,
    limit: int = 20,
) -> dict[str, Any]:
    """Encounter and claim history for one Medicaid patient, newest first."""
    patient_id = str(patient_id).strip()
    limit = bounded_limit(limit, default=20, maximum=100)
    client = await get_client()

    try:
        data = await client.get(f"/medicaid/patients/{patient_id}")
    except ClinicAPIError as e:
        if e.not_found:
            return {"error": f"Patient {patient_id} not found"}
        raise
    patient = data.get("data") or {}
    if not patient:
        return {"error": f"Patient {patient_id} not found"}

    data = await client.get(
        f"/medicaid/patients/{patient_id}/encounters",
        params={
            "status": clean(status),
            "claimStatus": clean(claim_status),
            "sort": "-encounterDate",
            "limit": limit,
        },
    )
    encounters = []
    for e in data.get("data", [])[:limit]:
        paid = e.get("paidAmount")
        encounters.append(
            {
                "id": e.get("id"),
                "encounterDate": date_only(e.get("encounterDate")),
                "provider": person_name(e.get("provider")),
                "procCode": e.get("procCode"),
                "diagnosisCodes": e.get("diagnosisCodes", []),
                "status": e.get("status"),
                "claimStatus": e.get("claimStatus"),
                "paidAmount": as_number(paid) if paid else None,
            }
        )
    return {
        "patient": {
            "mrn": patient.get("mrn"),
            "name": f"{patient.get('firstName', '')} {patient.get('lastName', '')}".strip(),
        },
        "encounters": encounters,
        "total": len(encounters),
    }


def range_start(time_range: str, today: date | None = None) -> str | None:
    """First YYYY-MM included in a dashboard time range; None means all time."""
    today = today or datetime.now().date()
    if time_range == "last_30_days":
        return f"{today.year}-{today.month:02d}"
    if time_range == "last_90_days":
        month_index = today.year * 12 + today.month - 1 - 3
        return f"{month_index // 12}-{month_index % 12 + 1:02d}"
    if time_range == "ytd":
        return f"{today.year}-01"
    return None


async def get_medicaid_dashboard(time_range: str = "all") -> dict[str, Any]:
    """Program-wide totals: claims, paid, providers, patients, denial rate, flagged claims."""
    time_range = clean(time_range) or "all"
    client = await get_client()
    data = await client.get("/medicaid/dashboard", params={"from": range_start(time_range)})
    stats = data.get("data") or {}

    total_encounters = int(stats.get("totalEncounters") or 0)
    denied = int(stats.get("deniedEncounters") or 0)
    return {
        "timeRange": time_range,
        "totalClaims": int(stats.get("totalClaims") or 0),
        "totalPaid": as_number(stats.get("totalPaid")),
        "totalBeneficiaries": int(stats.get("totalBeneficiaries") or 0),
        "totalProviders": int(stats.get("totalProviders") or 0),
        "totalPatients": int(stats.get("totalPatients") or 0),
        "totalEncounters": total_encounters,
        "deniedEncounters": denied,
        "flaggedEncounters": int(stats.get("flaggedEncounters") or 0),
        "denialRate": f"{denied / total_encounters * 100:.1f}%" if total_encounters else "0.0%",
    }
