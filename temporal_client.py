"""Temporal client factory.

Creates connections to Temporal Cloud (API key + TLS) or, when no API key is
configured, to a local development server.
"""

import os
from pathlib import Path
from typing import Union

# Load .env file if it exists
from dotenv import load_dotenv
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

from temporalio.client import Client
from temporalio.service import TLSConfig


DEFAULT_LOCAL_ENDPOINT = "localhost:7233"


async def get_temporal_client() -> Client:
    """Create and return a Temporal client.

    Reads configuration from environment variables:
    - TEMPORAL_ENDPOINT: Endpoint (e.g., "ns.acct.tmprl.cloud:7233"); defaults to localhost:7233
    - TEMPORAL_NAMESPACE: Namespace (e.g., "default")
    - TEMPORAL_API_KEY: API key for Temporal Cloud; omit for a local dev server
    - TEMPORAL_CERT_PATH: PEM file holding client certificate and key (optional, for mTLS)

    Returns:
        Connected Temporal client

    Raises:
        ValueError: If an API key is set without an endpoint
    """
    endpoint = os.getenv("TEMPORAL_ENDPOINT")
    namespace = os.getenv("TEMPORAL_NAMESPACE", "default")
    api_key = os.getenv("TEMPORAL_API_KEY")
    cert_path = os.getenv("TEMPORAL_CERT_PATH")

    if not api_key:
        # Local development server, no TLS
        return await Client.connect(endpoint or DEFAULT_LOCAL_ENDPOINT, namespace=namespace)

    if not endpoint:
        raise ValueError(
            "TEMPORAL_ENDPOINT environment variable not set. "
            "Set to your Temporal Cloud endpoint (e.g., 'temporal.example.com:7233')"
        )

    tls_config: Union[bool, TLSConfig] = True
    if cert_path:
        pem = Path(cert_path).read_bytes()
        tls_config = TLSConfig(client_cert=pem, client_private_key=pem)

    return await Client.connect(
        target_host=endpoint,
        namespace=namespace,
        tls=tls_config,
        api_key=api_key,
    )
