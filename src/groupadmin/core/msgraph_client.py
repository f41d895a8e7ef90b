"""Microsoft Graph API client wrapper."""

from azure.identity import ClientSecretCredential
from kiota_abstractions.base_request_configuration import RequestConfiguration
from msgraph import GraphServiceClient

from groupadmin.core.config import get_graph_credentials

GRAPH_SCOPES = ["https://graph.microsoft.com/.default"]
DIRECTORY_OBJECT_URL = "https://graph.microsoft.com/v1.0/directoryObjects/{object_id}"


def get_graph_client() -> GraphServiceClient:
    """Create and return an authenticated MS Graph client.

    Uses client credentials flow (app-only authentication) with
    credentials from environment variables.

    Returns:
        Authenticated GraphServiceClient instance
    """
    tenant_id, client_id, client_secret = get_graph_credentials()

    credential = ClientSecretCredential(
        tenant_id=tenant_id,
        client_id=client_id,
        client_secret=client_secret,
    )

    return GraphServiceClient(credentials=credential, scopes=GRAPH_SCOPES)


def request_config(query_parameters, advanced: bool = False) -> RequestConfiguration:
    """Wrap query parameters in a request configuration.

    Args:
        query_parameters: A ``*GetQueryParameters`` instance from a request builder
        advanced: Send ``ConsistencyLevel: eventual``, required by Graph for
            advanced directory queries (lambda filters on proxyAddresses, $count)

    Returns:
        RequestConfiguration for a ``.get()`` call
    """
    config = RequestConfiguration(query_parameters=query_parameters)
    if advanced:
        config.headers.add("ConsistencyLevel", "eventual")
    return config
