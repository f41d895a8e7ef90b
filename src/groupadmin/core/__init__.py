"""Core utilities for the group administration scripts."""

from groupadmin.core.config import (
    get_domain,
    get_exchange_credentials,
    get_graph_credentials,
    load_org_config,
)
from groupadmin.core.constants import ExitCode
from groupadmin.core.msgraph_client import get_graph_client

__all__ = [
    "ExitCode",
    "get_domain",
    "get_exchange_credentials",
    "get_graph_client",
    "get_graph_credentials",
    "load_org_config",
]
