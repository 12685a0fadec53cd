"""Temporal client factory.

Connects to Temporal Cloud when an API key is configured, otherwise to a
local development server (``temporal server start-dev``).
"""

import os
from pathlib import Path
from typing import Optional

# Load .env file if it exists
from dotenv import load_dotenv
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

from temporalio.client import Client
from temporalio.service import TLSConfig


LOCAL_ENDPOINT = "localhost:7233"


def _tls_config(cert_path: Optional[str], key_path: Optional[str]):
    """TLS for Temporal Cloud; mTLS when a client certificate is given."""
    if not cert_path:
        return True
    cert = Path(cert_path).read_bytes()
    key = Path(key_path).read_bytes() if key_path else None
    return TLSConfig(client_cert=cert, client_private_key=key)


async def get_temporal_client() -> Client:
    """Create and return a Temporal client.

    Reads configuration from environment variables:
    - TEMPORAL_ENDPOINT: Endpoint (e.g., "ns.acct.tmprl.cloud:7233"); default localhost:7233
    - TEMPORAL_NAMESPACE: Namespace (default "default")
    - TEMPORAL_API_KEY: Temporal Cloud API key; without it a local server is assumed
    - TEMPORAL_CERT_PATH / TEMPORAL_KEY_PATH: Client certificate and key (optional, mTLS)

    Returns:
        Connected Temporal client
    """
    endpoint = os.getenv("TEMPORAL_ENDPOINT")
    namespace = os.getenv("TEMPORAL_NAMESPACE", "default")
    api_key = os.getenv("TEMPORAL_API_KEY")
    cert_path = os.getenv("TEMPORAL_CERT_PATH")
    key_path = os.getenv("TEMPORAL_KEY_PATH")

    if not api_key:
        return await Client.connect(endpoint or LOCAL_ENDPOINT, namespace=namespace)

    if not endpoint:
        raise ValueError(
            "TEMPORAL_ENDPOINT environment variable not set. "
            "Set to your Temporal Cloud endpoint (e.g., 'ns.acct.tmprl.cloud:7233')"
        )

    return await Client.connect(
        endpoint,
        namespace=namespace,
        tls=_tls_config(cert_path, key_path),
        api_key=api_key,
    )
