"""Configuration for the clinic agent service.

Loads settings from environment variables (via a .env file or the system
environment). Uses sensible defaults so the package can be imported even
when env vars are not set. CI imports it without any API keys, and the
agents fall back to canned responses when no model key is configured.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists (absent in CI and Docker)
_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# --- Generative model ---
# Empty key means "no model available": every agent answers with its
# deterministic fallback and the chat pipeline reports an error frame.
ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")

# Higher-capability model used for the chat pipeline's generation stage
ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5")

# Model used by the five task agents
ANTHROPIC_AGENT_MODEL: str = os.getenv("ANTHROPIC_AGENT_MODEL", "claude-haiku-4-5")

# Cheap, low-latency model used only to classify a message to an agent name
ANTHROPIC_ROUTER_MODEL: str = os.getenv("ANTHROPIC_ROUTER_MODEL", "claude-haiku-4-5")

# Deadline for a single model call. Applied at every model suspension point.
MODEL_TIMEOUT_SECONDS: float = float(os.getenv("MODEL_TIMEOUT_SECONDS", "60"))

# --- Clinic data API ---
# The dashboard's REST API that owns patients, appointments, claims and the
# statewide Medicaid tables. Tools read and mutate domain data through it.
CLINIC_API_BASE_URL: str = os.getenv("CLINIC_API_BASE_URL", "http://localhost:3000/api")

# OAuth2 client-credentials grant for service-to-service calls. With no
# client id configured, requests are sent without a bearer token (local dev).
CLINIC_API_TOKEN_URL: str = os.getenv("CLINIC_API_TOKEN_URL", "")
CLINIC_CLIENT_ID: str = os.getenv("CLINIC_CLIENT_ID", "")
CLINIC_CLIENT_SECRET: str = os.getenv("CLINIC_CLIENT_SECRET", "")
CLINIC_SSL_VERIFY: bool = _env_bool("CLINIC_SSL_VERIFY", "true")

# --- Caller authentication ---
# Comma-separated "user_id:key" pairs. A caller presenting one of these keys
# as a bearer token is treated as that authenticated user.
AGENT_API_KEYS: str = os.getenv("AGENT_API_KEYS", "")

# --- Routing ---
# Strategy used by the chat pipeline to pick an agent: "model" or "keyword"
AGENT_ROUTER: str = os.getenv("AGENT_ROUTER", "model")

# --- Telemetry ---
# Where agent events are persisted: "logging" or "api" (POST /agent-logs)
EVENT_LOG_SINK: str = os.getenv("EVENT_LOG_SINK", "logging")
EVENT_LOG_QUEUE_SIZE: int = int(os.getenv("EVENT_LOG_QUEUE_SIZE", "1000"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
