"""Configuration management with environment variable loading."""

import os
from typing import Optional
from pathlib import Path

def load_env_file():
    """Load environment variables from .env file if it exists."""
    env_file = Path(__file__).parent.parent / ".env"
    if env_file.exists():
        with open(env_file, 'r') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    if key not in os.environ:  # Don't override existing env vars
                        os.environ[key] = value

def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Get environment variable with optional default."""
    return os.environ.get(name, default)

def build_db_url() -> Optional[str]:
    """Build PostgreSQL URL from DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD env vars."""
    host = get_env("DB_HOST")
    port = get_env("DB_PORT")
    name = get_env("DB_NAME")
    user = get_env("DB_USER")
    password = get_env("DB_PASSWORD")

    if all([host, port, name, user, password]):
        return f"postgresql://{user}:{password}@{host}:{port}/{name}"
    return None

def get_http_timeout() -> float:
    """HTTP timeout in seconds from FHIR_HTTP_TIMEOUT, falling back to the default."""
    raw = get_env(ENV_HTTP_TIMEOUT)
    if not raw:
        return DEFAULT_HTTP_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        from fhir_conformance.exceptions import ConfigurationError

        raise ConfigurationError(f"{ENV_HTTP_TIMEOUT} must be a number, got {raw!r}")

# Load .env file on import
load_env_file()

# Core Configuration Constants
DEFAULT_OUT_DIR = "./conformance_runs"
"""str: Default directory for storing sequence run results."""

DEFAULT_HTTP_TIMEOUT = 30.0
"""float: Seconds before a request to the server under test times out."""

ENV_BASE_URL = "FHIR_BASE_URL"
ENV_TOKEN = "FHIR_BEARER_TOKEN"
ENV_PATIENT_ID = "FHIR_PATIENT_ID"
ENV_HTTP_TIMEOUT = "FHIR_HTTP_TIMEOUT"

ENV_DB_URL = "FHIR_CONFORMANCE_DB_URL"
"""str: Environment variable name for complete database URL override."""

# Wire format
FHIR_JSON_MIME = "application/json+fhir"

# Response codes accepted as a rejection of an unauthenticated request
UNAUTHORIZED_STATUS_CODES = (401, 406)

# Argonaut Data Query
ARGONAUT_GUIDE_URL = "http://www.fhir.org/guides/argonaut/r2/Conformance-server.html"
SMOKING_STATUS_LOINC = "72166-2"
