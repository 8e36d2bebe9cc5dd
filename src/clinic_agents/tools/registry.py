"""Registry of the domain tools a model-driven agent may call.

Each tool is registered once with its name, a description written for the
model, and a parameter schema. The same schema is advertised to the model
(to_model_tool) and used to validate calls before they touch domain data
(execute).

execute() always returns data. An unknown tool name or a missing required
argument comes back as {"error": ...} so the streaming pipeline can hand
the result to the model like any other tool output. Only infrastructure
faults (the clinic API being unreachable, for example) propagate.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from clinic_agents.tools import analytics, billing, medicaid, patient, scheduling

logger = logging.getLogger(__name__)

ToolExecutor = Callable[..., Awaitable[Any]]

# Keys under which tools return their record lists, checked in this order
# when reporting how many records a tool call produced.
COLLECTION_KEYS = (
    "patients",
    "providers",
    "claims",
    "encounters",
    "anomalies",
    "appointments",
    "coverages",
)


@dataclass(frozen=True)
class ToolParam:
    """One named argument of a tool."""

    type: str
    description: str
    required: bool = False

    def schema(self) -> dict[str, Any]:
        entry: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.required:
            entry["required"] = True
        return entry


@dataclass(frozen=True)
class ToolSpec:
    """A named, schema-described function that reads or writes domain data."""

    name: str
    description: str
    executor: ToolExecutor
    params: Mapping[str, ToolParam] = field(default_factory=dict)

    @property
    def required(self) -> list[str]:
        return [name for name, p in self.params.items() if p.required]

    def schema(self) -> dict[str, Any]:
        """Public description: {name, description, parameters: {field: {...}}}."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {name: p.schema() for name, p in self.params.items()},
        }

    def to_model_tool(self) -> dict[str, Any]:
        """Function declaration in the format the model client binds."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": {
                "type": "object",
                "properties": {
                    name: {"type": p.type, "description": p.description}
                    for name, p in self.params.items()
                },
                "required": self.required,
            },
        }


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce(param: ToolParam, value: Any) -> Any:
    """Models send IDs as JSON numbers often enough; string params always get a str."""
    if param.type == "string" and not isinstance(value, str):
        return str(value)
    return value


class ToolRegistry:
    """Fixed mapping from tool name to its spec. Read-only once built."""

    def __init__(self, specs: list[ToolSpec] | None = None) -> None:
        self._tools: dict[str, ToolSpec] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: ToolSpec, *, overwrite: bool = False) -> None:
        if spec.name in self._tools and not overwrite:
            raise ValueError(f"Tool {spec.name} already registered")
        self._tools[spec.name] = spec

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        return [spec.schema() for spec in self]

    def model_tools(self) -> list[dict[str, Any]]:
        return [spec.to_model_tool() for spec in self]

    async def execute(self, name: str, args: Mapping[str, Any] | None = None) -> Any:
        """Run a tool by name and return its structured result."""
        spec = self._tools.get(name)
        if spec is None:
            logger.warning("Model requested unknown tool %r", name)
            return {"error": f"Unknown function: {name}"}

        args = dict(args or {})
        missing = [p for p in spec.required if _is_missing(args.get(p))]
        if missing:
            return {"error": f"Missing required argument(s): {', '.join(missing)}"}

        # Models occasionally invent extra arguments; only declared ones are passed
        kwargs = {
            k: _coerce(spec.params[k], v)
            for k, v in args.items()
            if k in spec.params and v is not None
        }
        logger.info("Executing tool %s(%s)", name, ", ".join(sorted(kwargs)))
        return await spec.executor(**kwargs)


def result_count(payload: Any) -> int | None:
    """Number of records in a tool result, or None if it is not list-shaped."""
    if isinstance(payload, list):
        return len(payload)
    if not isinstance(payload, dict):
        return None
    for key in COLLECTION_KEYS:
        if isinstance(payload.get(key), list):
            return len(payload[key])
    total = payload.get("total")
    if isinstance(total, int) and not isinstance(total, bool):
        return total
    return None


def _string(description: str, required: bool = False) -> ToolParam:
    return ToolParam("string", description, required)


def _number(description: str) -> ToolParam:
    return ToolParam("number", description)


def build_registry() -> ToolRegistry:
    """The full clinic tool set: EHR tools plus statewide Medicaid tools."""
    return ToolRegistry(
        [
            ToolSpec(
                "patient_lookup",
                "Look up a patient by name or MRN. Returns matching patient records.",
                patient.patient_lookup,
                {"query": _string("Patient name or MRN to search for", required=True)},
            ),
            ToolSpec(
                "appointment_list",
                "List appointments, optionally filtered by date or patient ID.",
                scheduling.appointment_list,
                {
                    "date": _string("Date in YYYY-MM-DD format"),
                    "patient_id": _string("Patient ID to filter by"),
                },
            ),
            ToolSpec(
                "appointment_cancel",
                "Cancel a scheduled appointment. Only works on SCHEDULED appointments.",
                scheduling.appointment_cancel,
                {
                    "appointment_id": _string("The appointment ID to cancel", required=True),
                    "reason": _string(
                        "Reason for cancellation (e.g. Patient Request, No Show, Other)",
                        required=True,
                    ),
                },
            ),
            ToolSpec(
                "insurance_verify",
                "Check insurance coverage status and plan details for a patient.",
                billing.insurance_verify,
                {"patient_id": _string("The patient ID to check coverage for", required=True)},
            ),
            ToolSpec(
                "claim_lookup",
                "Look up claims filtered by status and/or patient.",
                billing.claim_lookup,
                {
                    "status": _string(
                        "Claim status: PENDING, SUBMITTED, DENIED, PAID, APPEALED, etc."
                    ),
                    "patient_id": _string("Patient ID to filter by"),
                },
            ),
            ToolSpec(
                "metrics_query",
                "Run analytics queries for clinic metrics like denial rate, revenue, "
                "and claims count.",
                analytics.metrics_query,
                {
                    "metric": _string(
                        "Metric to query: denial_rate, revenue, or claims_count", required=True
                    ),
                    "period": _string(
                        "Time period: today, this_week, or this_month (default: this_month)"
                    ),
                },
            ),
            ToolSpec(
                "search_providers",
                "Search statewide Medicaid providers by name, NPI, city, zip, or credentials. "
                "Also finds TOP BILLERS in a city: pass city and sort_by='total_claims' or "
                "'total_paid'. Returns each provider with totalClaims and totalPaid.",
                medicaid.search_providers,
                {
                    "query": _string("Provider name, organization name, or NPI to search"),
                    "city": _string("City name to filter by (e.g. Houston, Dallas)"),
                    "zip": _string("Zip code to filter by"),
                    "sort_by": _string(
                        'Sort results by: "total_claims" (default) or "total_paid"'
                    ),
                    "limit": _number("Max results to return (default 10)"),
                },
            ),
            ToolSpec(
                "get_provider_analytics",
                "Get detailed analytics for a Medicaid provider by NPI: total claims, total "
                "paid, top procedures billed, monthly trends, and patient count.",
                medicaid.get_provider_analytics,
                {"npi": _string("The 10-digit provider NPI number", required=True)},
            ),
            ToolSpec(
                "search_medicaid_claims",
                "Search aggregated Medicaid claims by provider NPI, procedure code, and/or "
                "date range. Use for claims data, billing codes, or statewide spending.",
                medicaid.search_medicaid_claims,
                {
                    "npi": _string("Provider NPI to filter by"),
                    "proc_code": _string("HCPCS/CPT procedure code (e.g. 99213)"),
                    "from_date": _string("Start year-month as YYYY-MM (e.g. 2023-01)"),
                    "to_date": _string("End year-month as YYYY-MM (e.g. 2023-12)"),
                    "limit": _number("Max results (default 20)"),
                },
            ),
            ToolSpec(
                "get_procedure_info",
                "Get information about an HCPCS/CPT procedure code: description, average "
                "Medicaid cost, and top providers.",
                medicaid.get_procedure_info,
                {
                    "code": _string(
                        "HCPCS or CPT procedure code (e.g. 99213, T1001)", required=True
                    )
                },
            ),
            ToolSpec(
                "detect_anomalies",
                "Detect billing anomalies for a Medicaid provider: cost outliers above the "
                "statewide average and monthly volume spikes. Use for fraud indicators or "
                "provider audits.",
                medicaid.detect_anomalies,
                {"npi": _string("Provider NPI to analyze for anomalies", required=True)},
            ),
            ToolSpec(
                "search_medicaid_patients",
                "Search Medicaid patient records by name, MRN, or assigned provider NPI.",
                medicaid.search_medicaid_patients,
                {
                    "query": _string("Patient first/last name or MRN (e.g. MRN-TX-000042)"),
                    "provider_npi": _string("Filter by primary provider NPI"),
                    "limit": _number("Max results (default 10)"),
                },
            ),
            ToolSpec(
                "get_patient_encounters",
                "Get encounter and claim history for a Medicaid patient: visit history, "
                "billing history, or claim statuses.",
                medicaid.get_patient_encounters,
                {
                    "patient_id": _string("Medicaid patient UUID", required=True),
                    "status": _string("Filter by status: completed, scheduled, etc."),
                    "claim_status": _string(
                        "Filter by claim status: clean, flagged, denied, paid"
                    ),
                    "limit": _number("Max results (default 20)"),
                },
            ),
            ToolSpec(
                "get_medicaid_dashboard",
                "Get high-level Medicaid program statistics: total claims, total paid, "
                "providers, patients, denial rate, flagged claims.",
                medicaid.get_medicaid_dashboard,
                {
                    "time_range": _string(
                        "Time range: last_30_days, last_90_days, ytd, or all (default: all)"
                    )
                },
            ),
        ]
    )
