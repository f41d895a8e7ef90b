"""Entra ID group management operations."""

import logging
from dataclasses import dataclass, field
from enum import Enum

from msgraph import GraphServiceClient
from msgraph.generated.groups.groups_request_builder import GroupsRequestBuilder
from msgraph.generated.groups.item.group_item_request_builder import GroupItemRequestBuilder
from msgraph.generated.groups.item.members.members_request_builder import MembersRequestBuilder
from msgraph.generated.groups.item.transitive_members.transitive_members_request_builder import (
    TransitiveMembersRequestBuilder,
)
from msgraph.generated.models.group import Group
from msgraph.generated.models.o_data_errors.o_data_error import ODataError
from msgraph.generated.models.reference_create import ReferenceCreate

from groupadmin.core.identifiers import (
    IdentifierKind,
    classify_identifier,
    mail_nickname_from,
    odata_quote,
    smtp_addresses,
)
from groupadmin.core.msgraph_client import DIRECTORY_OBJECT_URL, get_graph_client, request_config
from groupadmin.utils.config import get_settings

logger = logging.getLogger(__name__)

GROUP_SELECT = [
    "id",
    "displayName",
    "description",
    "mail",
    "mailEnabled",
    "mailNickname",
    "securityEnabled",
    "groupTypes",
    "proxyAddresses",
    "visibility",
]

MEMBER_SELECT = ["id", "displayName", "mail", "userPrincipalName"]


class GroupType(Enum):
    """Types of Entra ID groups."""

    SECURITY = "security"
    MICROSOFT_365 = "microsoft365"
    DISTRIBUTION = "distribution"
    MAIL_ENABLED_SECURITY = "mail_enabled_security"
    UNKNOWN = "unknown"


# Group types Graph cannot create, delete or change membership of
EXCHANGE_MANAGED_TYPES = frozenset({GroupType.DISTRIBUTION, GroupType.MAIL_ENABLED_SECURITY})


@dataclass
class EntraGroup:
    """Represents an Entra ID group."""

    id: str
    display_name: str
    description: str | None
    mail: str | None
    mail_enabled: bool
    security_enabled: bool
    group_types: list[str]
    mail_nickname: str | None = None
    proxy_addresses: list[str] = field(default_factory=list)
    visibility: str | None = None

    @property
    def group_type(self) -> GroupType:
        """Determine the type of group."""
        # Microsoft 365 groups have "Unified" in groupTypes
        if "Unified" in self.group_types:
            return GroupType.MICROSOFT_365
        if self.mail_enabled and self.security_enabled:
            return GroupType.MAIL_ENABLED_SECURITY
        if self.mail_enabled and not self.security_enabled:
            return GroupType.DISTRIBUTION
        if self.security_enabled and not self.mail_enabled:
            return GroupType.SECURITY
        return GroupType.UNKNOWN

    @property
    def is_exchange_managed(self) -> bool:
        """Check if changes to this group must go through Exchange Online."""
        return self.group_type in EXCHANGE_MANAGED_TYPES

    @property
    def smtp_addresses(self) -> list[str]:
        """All SMTP addresses of the group, lowercase."""
        return smtp_addresses(self.proxy_addresses)


@dataclass
class GroupMember:
    """A direct or transitive member of a group."""

    id: str
    display_name: str | None
    email: str | None
    upn: str | None
    object_type: str

    @property
    def identifiers(self) -> set[str]:
        """Lowercase identifiers this member can be matched by."""
        return {value.lower() for value in (self.id, self.email, self.upn) if value}

    def to_row(self) -> dict[str, str]:
        """Row for the member export CSV."""
        return {
            "DisplayName": self.display_name or "",
            "Email": self.email or "",
            "UserPrincipalName": self.upn or "",
            "ObjectType": self.object_type,
            "Id": self.id,
        }


def group_filters(identifier: str) -> list[str]:
    """Build the $filter expressions used to find a group by identifier.

    Args:
        identifier: Email address, alias or display name (not an object id)

    Returns:
        Filter expressions, most specific first
    """
    value = odata_quote(identifier.strip())
    kind = classify_identifier(identifier)
    if kind == IdentifierKind.EMAIL:
        return [
            f"mail eq '{value}'",
            f"proxyAddresses/any(p:p eq 'smtp:{value}')",
        ]
    if kind == IdentifierKind.ALIAS:
        return [
            f"mailNickname eq '{value}'",
            f"displayName eq '{value}'",
        ]
    return [f"displayName eq '{value}'"]


def _object_type(directory_object) -> str:
    """Short type name ('user', 'group', ...) of a Graph directory object."""
    odata_type = getattr(directory_object, "odata_type", None) or ""
    return odata_type.replace("#microsoft.graph.", "") or "unknown"


class EntraGroupManager:
    """Manage groups in Entra ID."""

    def __init__(self) -> None:
        """Initialize the group manager."""
        self.client: GraphServiceClient = get_graph_client()

    def _to_entra_group(self, group: Group) -> EntraGroup:
        """Convert MS Graph Group to EntraGroup.

        Args:
            group: MS Graph Group object

        Returns:
            EntraGroup object
        """
        return EntraGroup(
            id=group.id or "",
            display_name=group.display_name or "",
            description=group.description,
            mail=group.mail,
            mail_enabled=group.mail_enabled or False,
            security_enabled=group.security_enabled or False,
            group_types=group.group_types or [],
            mail_nickname=group.mail_nickname,
            proxy_addresses=group.proxy_addresses or [],
            visibility=group.visibility,
        )

    async def get_group(self, group_id: str) -> EntraGroup | None:
        """Fetch a group by object id.

        Args:
            group_id: The group ID

        Returns:
            EntraGroup or None if not found

        Raises:
            ODataError: For any Graph error other than 404
        """
        query_params = GroupItemRequestBuilder.GroupItemRequestBuilderGetQueryParameters(
            select=GROUP_SELECT,
        )
        try:
            group = await self.client.groups.by_group_id(group_id).get(
                request_configuration=request_config(query_params)
            )
        except ODataError as e:
            if e.response_status_code != 404:
                raise
            logger.debug(f"Group not found: {group_id}")
            return None
        return self._to_entra_group(group) if group else None

    async def query_groups(self, filter_expr: str, advanced: bool = False) -> list[EntraGroup]:
        """Fetch groups matching a $filter expression, following pagination."""
        query_params = GroupsRequestBuilder.GroupsRequestBuilderGetQueryParameters(
            filter=filter_expr,
            select=GROUP_SELECT,
            top=get_settings().graph_page_size,
            count=True if advanced else None,
        )
        config = request_config(query_params, advanced=advanced)
        result = await self.client.groups.get(request_configuration=config)

        groups = []
        if result and result.value:
            groups.extend(self._to_entra_group(group) for group in result.value)

        while result and result.odata_next_link:
            result = await self.client.groups.with_url(result.odata_next_link).get()
            if result and result.value:
                groups.extend(self._to_entra_group(group) for group in result.value)

        return groups

    async def find_groups(self, identifier: str) -> list[EntraGroup]:
        """Find groups matching an id, email address, alias or display name.

        Each filter from group_filters is tried in turn; results are
        deduplicated by id, keeping the order they were found in.

        Args:
            identifier: Free-form group identifier

        Returns:
            Matching groups (empty if none)
        """
        if classify_identifier(identifier) == IdentifierKind.OBJECT_ID:
            group = await self.get_group(identifier.strip())
            return [group] if group else []

        found: dict[str, EntraGroup] = {}
        for filter_expr in group_filters(identifier):
            advanced = filter_expr.startswith("proxyAddresses")
            logger.debug(f"Group query: {filter_expr}")
            for group in await self.query_groups(filter_expr, advanced=advanced):
                found.setdefault(group.id, group)

        logger.debug(f"Found {len(found)} groups for '{identifier}'")
        return list(found.values())

    async def get_group_by_name(self, display_name: str) -> EntraGroup | None:
        """Find a group by exact display name.

        Args:
            display_name: The display name to search for

        Returns:
            First matching EntraGroup, None if not found
        """
        groups = await self.query_groups(f"displayName eq '{odata_quote(display_name)}'")
        return groups[0] if groups else None

    async def get_group_by_mail_nickname(self, mail_nickname: str) -> EntraGroup | None:
        """Find a group by mail nickname (alias).

        Args:
            mail_nickname: The alias to search for

        Returns:
            EntraGroup if found, None otherwise
        """
        groups = await self.query_groups(f"mailNickname eq '{odata_quote(mail_nickname)}'")
        return groups[0] if groups else None

    async def search_groups(self, prefix: str, limit: int = 5) -> list[EntraGroup]:
        """Find groups whose display name starts with a prefix.

        Used to suggest alternatives when a lookup finds nothing.
        """
        try:
            groups = await self.query_groups(
                f"startswith(displayName,'{odata_quote(prefix.strip())}')"
            )
        except Exception as e:
            logger.debug(f"Group search failed for '{prefix}': {e}")
            return []
        return groups[:limit]

    async def get_group_members(
        self,
        group_id: str,
        transitive: bool = False,
    ) -> list[GroupMember]:
        """Get members of a group.

        Args:
            group_id: The group ID
            transitive: If True, include members of nested groups

        Returns:
            List of GroupMember objects
        """
        group_request = self.client.groups.by_group_id(group_id)
        if transitive:
            builder = group_request.transitive_members
            params = (
                TransitiveMembersRequestBuilder.TransitiveMembersRequestBuilderGetQueryParameters
            )
            query_params = params(
                select=MEMBER_SELECT,
                top=get_settings().graph_page_size,
            )
        else:
            builder = group_request.members
            query_params = MembersRequestBuilder.MembersRequestBuilderGetQueryParameters(
                select=MEMBER_SELECT,
                top=get_settings().graph_page_size,
            )

        result = await builder.get(request_configuration=request_config(query_params))

        members: list[GroupMember] = []
        if result and result.value:
            members.extend(self._to_group_member(obj) for obj in result.value if obj.id)

        while result and result.odata_next_link:
            result = await builder.with_url(result.odata_next_link).get()
            if result and result.value:
                members.extend(self._to_group_member(obj) for obj in result.value if obj.id)

        logger.debug(f"Group {group_id} has {len(members)} members (transitive={transitive})")
        return members

    def _to_group_member(self, directory_object) -> GroupMember:
        """Convert a Graph directory object (user, group, contact...) to GroupMember."""
        return GroupMember(
            id=directory_object.id or "",
            display_name=getattr(directory_object, "display_name", None),
            email=getattr(directory_object, "mail", None),
            upn=getattr(directory_object, "user_principal_name", None),
            object_type=_object_type(directory_object),
        )

    async def add_member(self, group_id: str, object_id: str) -> bool:
        """Add a user (or other directory object) to a group.

        Args:
            group_id: The group ID
            object_id: The directory object ID to add

        Returns:
            True if successful
        """
        request_body = ReferenceCreate(
            odata_id=DIRECTORY_OBJECT_URL.format(object_id=object_id),
        )

        try:
            await self.client.groups.by_group_id(group_id).members.ref.post(request_body)
            logger.info(f"Added {object_id} to group {group_id}")
            return True
        except Exception as e:
            # Graph rejects duplicates with "One or more added object references already exist"
            if "already exist" in str(e):
                logger.info(f"{object_id} is already a member of group {group_id}")
                return True
            logger.error(f"Failed to add {object_id} to group {group_id}: {e}")
            return False

    async def delete_group(self, group_id: str) -> bool:
        """Delete a group from Entra ID.

        Args:
            group_id: The group ID to delete

        Returns:
            True if successful
        """
        try:
            await self.client.groups.by_group_id(group_id).delete()
            logger.info(f"Deleted group: {group_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to delete group {group_id}: {e}")
            return False

    async def create_group(
        self,
        display_name: str,
        group_type: GroupType = GroupType.SECURITY,
        description: str | None = None,
        mail_nickname: str | None = None,
        owner_id: str | None = None,
        private: bool = False,
    ) -> EntraGroup | None:
        """Create a security group or Microsoft 365 group in Entra ID.

        Distribution lists and mail-enabled security groups cannot be created
        through Graph; use ExchangeOnlineClient for those.

        Args:
            display_name: The display name for the group
            group_type: SECURITY or MICROSOFT_365
            description: Optional description
            mail_nickname: Mail nickname (defaults to display_name with special chars removed)
            owner_id: Object ID of the initial owner
            private: Create a Microsoft 365 group as Private instead of Public

        Returns:
            Created EntraGroup or None on failure
        """
        if group_type not in (GroupType.SECURITY, GroupType.MICROSOFT_365):
            raise ValueError(f"Graph cannot create {group_type.value} groups")

        if not mail_nickname:
            mail_nickname = mail_nickname_from(display_name)

        unified = group_type == GroupType.MICROSOFT_365
        group = Group(
            display_name=display_name,
            description=description or None,
            mail_enabled=unified,
            mail_nickname=mail_nickname,
            security_enabled=not unified,
            group_types=["Unified"] if unified else [],
        )
        if unified:
            group.visibility = "Private" if private else "Public"
        if owner_id:
            group.additional_data = {
                "owners@odata.bind": [DIRECTORY_OBJECT_URL.format(object_id=owner_id)]
            }

        try:
            created = await self.client.groups.post(group)
            if created:
                logger.info(f"Created {group_type.value} group: {display_name} (ID: {created.id})")
                return self._to_entra_group(created)
        except Exception as e:
            logger.error(f"Failed to create group {display_name}: {e}")

        return None
