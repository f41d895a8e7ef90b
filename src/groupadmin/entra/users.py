"""Entra ID user lookup operations."""

import logging
from dataclasses import dataclass, field

from msgraph import GraphServiceClient
from msgraph.generated.models.o_data_errors.o_data_error import ODataError
from msgraph.generated.models.user import User
from msgraph.generated.users.item.user_item_request_builder import UserItemRequestBuilder
from msgraph.generated.users.users_request_builder import UsersRequestBuilder

from groupadmin.core.msgraph_client import get_graph_client, request_config
from groupadmin.utils.config import get_settings

logger = logging.getLogger(__name__)

USER_SELECT = [
    "id",
    "displayName",
    "mail",
    "userPrincipalName",
    "mailNickname",
    "otherMails",
    "proxyAddresses",
]


@dataclass
class EntraUser:
    """Represents an Entra ID user."""

    id: str
    display_name: str | None
    email: str | None
    upn: str | None
    mail_nickname: str | None = None
    other_mails: list[str] = field(default_factory=list)
    proxy_addresses: list[str] = field(default_factory=list)


class EntraUserManager:
    """Look up users in Entra ID."""

    def __init__(self) -> None:
        """Initialize the user manager."""
        self.client: GraphServiceClient = get_graph_client()

    def _to_entra_user(self, user: User) -> EntraUser:
        """Convert MS Graph User to EntraUser.

        Args:
            user: MS Graph User object

        Returns:
            EntraUser object
        """
        return EntraUser(
            id=user.id or "",
            display_name=user.display_name,
            email=user.mail,
            upn=user.user_principal_name,
            mail_nickname=user.mail_nickname,
            other_mails=user.other_mails or [],
            proxy_addresses=user.proxy_addresses or [],
        )

    async def get_user(self, user_id: str) -> EntraUser | None:
        """Fetch a single user by object id or UPN.

        Args:
            user_id: Object id or user principal name

        Returns:
            EntraUser or None if not found

        Raises:
            ODataError: For any Graph error other than 404
        """
        query_params = UserItemRequestBuilder.UserItemRequestBuilderGetQueryParameters(
            select=USER_SELECT,
        )
        try:
            user = await self.client.users.by_user_id(user_id).get(
                request_configuration=request_config(query_params)
            )
        except ODataError as e:
            if e.response_status_code != 404:
                raise
            logger.debug(f"User not found: {user_id}")
            return None
        return self._to_entra_user(user) if user else None

    async def query_users(self, filter_expr: str, advanced: bool = False) -> list[EntraUser]:
        """Fetch users matching a $filter expression.

        Args:
            filter_expr: OData filter, literals already escaped
            advanced: Issue as an advanced query (ConsistencyLevel: eventual + $count)

        Returns:
            List of EntraUser objects
        """
        logger.debug(f"User query: {filter_expr}")
        query_params = UsersRequestBuilder.UsersRequestBuilderGetQueryParameters(
            filter=filter_expr,
            select=USER_SELECT,
            top=get_settings().graph_page_size,
            count=True if advanced else None,
        )
        config = request_config(query_params, advanced=advanced)
        result = await self.client.users.get(request_configuration=config)

        users = []
        if result and result.value:
            users.extend(self._to_entra_user(user) for user in result.value)

        # Handle pagination
        while result and result.odata_next_link:
            result = await self.client.users.with_url(result.odata_next_link).get()
            if result and result.value:
                users.extend(self._to_entra_user(user) for user in result.value)

        return users
