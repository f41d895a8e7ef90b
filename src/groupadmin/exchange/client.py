"""Exchange Online PowerShell client.

Executes Exchange Online PowerShell cmdlets via subprocess to manage
distribution lists, mail-enabled security groups and recipient address
list visibility, none of which Microsoft Graph can change.

Prerequisites:
1. Install Exchange Online Management module:
   Install-Module -Name ExchangeOnlineManagement

2. For app-only (unattended) authentication, you need:
   - Azure AD App Registration with Exchange.ManageAsApp permission
   - A certificate (self-signed or CA-signed) uploaded to the app
   - The certificate installed locally (or accessible as .pfx file)
   - App assigned "Exchange Recipient Administrator" role

References:
- https://learn.microsoft.com/en-us/powershell/exchange/app-only-auth-powershell-v2
- https://learn.microsoft.com/en-us/powershell/exchange/exchange-online-powershell-v2
"""

import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from groupadmin.core.config import get_exchange_credentials
from groupadmin.core.identifiers import ps_quote
from groupadmin.utils.config import get_settings

logger = logging.getLogger(__name__)

SELECT_FIELDS = (
    "Identity, DisplayName, PrimarySmtpAddress, Alias, "
    "RecipientTypeDetails, HiddenFromAddressListsEnabled"
)

# Set-* cmdlet that owns HiddenFromAddressListsEnabled for each recipient type
VISIBILITY_CMDLETS: dict[str, str] = {
    "UserMailbox": "Set-Mailbox",
    "SharedMailbox": "Set-Mailbox",
    "RoomMailbox": "Set-Mailbox",
    "EquipmentMailbox": "Set-Mailbox",
    "MailUser": "Set-MailUser",
    "GuestMailUser": "Set-MailUser",
    "MailContact": "Set-MailContact",
    "MailUniversalDistributionGroup": "Set-DistributionGroup",
    "MailUniversalSecurityGroup": "Set-DistributionGroup",
    "MailNonUniversalGroup": "Set-DistributionGroup",
    "RoomList": "Set-DistributionGroup",
    "GroupMailbox": "Set-UnifiedGroup",
}


def _as_list(value) -> list:
    """Normalize PowerShell JSON output (scalars for single items) to a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class ExchangeCommandError(Exception):
    """A PowerShell command could not be run or did not complete."""


@dataclass
class ExchangeGroup:
    """Represents an Exchange Online mail-enabled group."""

    identity: str  # Group identity (name or email)
    display_name: str
    primary_smtp_address: str
    group_type: str  # RecipientTypeDetails, e.g. "MailUniversalDistributionGroup"
    alias: str | None = None
    hidden_from_address_lists: bool = False


@dataclass
class ExchangeRecipient:
    """Any mail-enabled recipient (mailbox, mail user, contact, group)."""

    identity: str
    display_name: str
    primary_smtp_address: str
    recipient_type_details: str
    alias: str | None = None
    hidden_from_address_lists: bool = False

    @property
    def visibility_cmdlet(self) -> str | None:
        """Cmdlet that changes this recipient's GAL visibility, None if unsupported."""
        return VISIBILITY_CMDLETS.get(self.recipient_type_details)


class ExchangeOnlineClient:
    """Client for Exchange Online PowerShell operations.

    Executes Exchange cmdlets via subprocess using the official
    ExchangeOnlineManagement PowerShell module. Each call opens and closes
    its own connection.
    """

    def __init__(
        self,
        certificate_thumbprint: str | None = None,
        certificate_path: Path | str | None = None,
        certificate_password: str | None = None,
        organization: str | None = None,
    ) -> None:
        """Initialize the Exchange Online client.

        Args:
            certificate_thumbprint: Thumbprint of installed certificate (Windows)
            certificate_path: Path to .pfx certificate file (cross-platform)
            certificate_password: Password for the .pfx file
            organization: The organization domain (overrides env config)
        """
        creds = get_exchange_credentials()
        self.tenant_id = creds.tenant_id
        self.client_id = creds.client_id
        self.organization = organization or creds.organization
        self.certificate_thumbprint = certificate_thumbprint or creds.certificate_thumbprint
        self.certificate_path = certificate_path or creds.certificate_path
        self.certificate_password = certificate_password or creds.certificate_password

        settings = get_settings()
        self.pwsh_path = settings.pwsh_path
        self.timeout = settings.powershell_timeout

    def _build_connect_command(self) -> str:
        """Build the Connect-ExchangeOnline command."""
        # *>$null keeps the banner out of the JSON output
        if self.certificate_path:
            # Key Vault generated certs have an empty password
            if self.certificate_password:
                secure_str = (
                    f"-CertificatePassword (ConvertTo-SecureString "
                    f"-String '{ps_quote(self.certificate_password)}' -AsPlainText -Force) "
                )
            else:
                secure_str = ""
            return (
                f"Connect-ExchangeOnline "
                f"-AppId '{self.client_id}' "
                f"-CertificateFilePath '{self.certificate_path}' "
                f"{secure_str}"
                f"-Organization '{self.organization}' -ShowBanner:$false *>$null"
            )
        elif self.certificate_thumbprint:
            return (
                f"Connect-ExchangeOnline "
                f"-AppId '{self.client_id}' "
                f"-CertificateThumbprint '{self.certificate_thumbprint}' "
                f"-Organization '{self.organization}' -ShowBanner:$false *>$null"
            )
        else:
            raise ValueError("Either certificate_thumbprint or certificate_path must be provided")

    def _run_powershell(
        self,
        commands: list[str],
        parse_json: bool = True,
    ) -> dict | list | str | None:
        """Run PowerShell commands and return the result.

        Args:
            commands: List of PowerShell commands to execute
            parse_json: If True, parse output as JSON

        Returns:
            Parsed JSON dict or list, raw string output, or None on failure
        """
        full_script = [
            "Import-Module ExchangeOnlineManagement -ErrorAction Stop",
            self._build_connect_command(),
            *commands,
            "Disconnect-ExchangeOnline -Confirm:$false *>$null",
        ]

        script = "; ".join(full_script)

        try:
            result = subprocess.run(  # noqa: S603
                [self.pwsh_path, "-NoProfile", "-NonInteractive", "-Command", script],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )

            if result.returncode != 0:
                logger.error(f"PowerShell error: {result.stderr.strip()}")
                return None

            output = result.stdout.strip()
            if not output:
                return {} if parse_json else ""

            if parse_json:
                try:
                    return json.loads(output)
                except json.JSONDecodeError:
                    # Banner text may precede JSON
                    starts = [i for i in (output.find("{"), output.find("[")) if i != -1]
                    if starts:
                        try:
                            return json.loads(output[min(starts) :])
                        except json.JSONDecodeError:
                            pass
                    if "{" in output or "[" in output:
                        logger.warning(f"Failed to parse JSON output: {output[:200]}")
                    return {"raw": output}

            return output

        except subprocess.TimeoutExpired:
            logger.error(f"PowerShell command timed out after {self.timeout}s")
            return None
        except FileNotFoundError:
            logger.error(f"PowerShell ({self.pwsh_path}) not found. Install PowerShell 7+.")
            return None
        except Exception as e:
            logger.error(f"Failed to run PowerShell: {e}")
            return None

    @staticmethod
    def _to_group(data: dict, identity: str) -> ExchangeGroup:
        return ExchangeGroup(
            identity=data.get("Identity") or identity,
            display_name=data.get("DisplayName") or "",
            primary_smtp_address=(data.get("PrimarySmtpAddress") or "").lower(),
            group_type=data.get("RecipientTypeDetails") or "",
            alias=data.get("Alias"),
            hidden_from_address_lists=bool(data.get("HiddenFromAddressListsEnabled")),
        )

    async def create_distribution_group(
        self,
        name: str,
        alias: str,
        security: bool = False,
        managed_by: str | None = None,
        notes: str | None = None,
    ) -> ExchangeGroup | None:
        """Create a distribution list or mail-enabled security group.

        Args:
            name: Name and display name of the group
            alias: Email alias (without domain)
            security: Create a mail-enabled security group instead of a distribution list
            managed_by: Email of the group owner/manager
            notes: Description/notes for the group

        Returns:
            Created ExchangeGroup or None on failure
        """
        cmd_parts = [
            f"New-DistributionGroup -Name '{ps_quote(name)}'",
            f"-DisplayName '{ps_quote(name)}'",
            f"-Alias '{ps_quote(alias)}'",
            f"-Type '{'Security' if security else 'Distribution'}'",
        ]

        if managed_by:
            cmd_parts.append(f"-ManagedBy '{ps_quote(managed_by)}'")

        if notes:
            cmd_parts.append(f"-Notes '{ps_quote(notes)}'")

        commands = [
            f"$group = {' '.join(cmd_parts)} -ErrorAction Stop",
            f"$group | Select-Object {SELECT_FIELDS} | ConvertTo-Json",
        ]

        result = self._run_powershell(commands)
        if result and isinstance(result, dict) and "Identity" in result:
            kind = "mail-enabled security group" if security else "distribution list"
            logger.info(f"Created {kind}: {name}")
            return self._to_group(result, name)

        logger.error(f"Failed to create distribution group: {name}")
        return None

    async def delete_distribution_group(self, identity: str) -> bool:
        """Delete a distribution group or mail-enabled security group.

        Args:
            identity: Group name, alias, or email address

        Returns:
            True if deleted, or if Exchange reported that the group does not exist
        """
        quoted = ps_quote(identity)
        commands = [
            f"$group = Get-DistributionGroup -Identity '{quoted}' -ErrorAction SilentlyContinue",
            "if (-not $group) { Write-Output 'NOT_FOUND' } else { "
            f"Remove-DistributionGroup -Identity '{quoted}' "
            "-BypassSecurityGroupManagerCheck -Confirm:$false -ErrorAction Stop; "
            "Write-Output 'SUCCESS' }",
        ]

        result = self._run_powershell(commands, parse_json=False)
        if result is None:
            logger.error(f"Failed to delete distribution group: {identity}")
            return False

        if "SUCCESS" in result:
            logger.info(f"Deleted distribution group: {identity}")
            return True

        if "NOT_FOUND" in result:
            logger.info(f"Distribution group already deleted: {identity}")
            return True

        logger.error(f"Failed to delete distribution group: {identity}: {result or 'no output'}")
        return False

    async def add_distribution_group_member(self, identity: str, member: str) -> bool:
        """Add a member to a distribution group or mail-enabled security group.

        Args:
            identity: Group name, alias, or email address
            member: Member email address to add

        Returns:
            True if added or already a member
        """
        commands = [
            f"try {{ Add-DistributionGroupMember -Identity '{ps_quote(identity)}' "
            f"-Member '{ps_quote(member)}' -BypassSecurityGroupManagerCheck -ErrorAction Stop; "
            "'SUCCESS' } catch { $_.Exception.Message }",
        ]

        result = self._run_powershell(commands, parse_json=False)
        result_str = str(result) if result else ""

        if "SUCCESS" in result_str:
            logger.info(f"Added {member} to {identity}")
            return True

        if "already a member" in result_str.lower():
            logger.info(f"{member} is already a member of {identity}")
            return True

        logger.error(f"Failed to add {member} to {identity}: {result_str or 'no output'}")
        return False

    async def get_recipient(self, identity: str) -> ExchangeRecipient | None:
        """Get any mail-enabled recipient by identity.

        Args:
            identity: Email address, alias, name or object id

        Returns:
            ExchangeRecipient if exactly one recipient matches, None otherwise

        Raises:
            ExchangeCommandError: If PowerShell could not run the lookup
        """
        commands = [
            f"$r = Get-Recipient -Identity '{ps_quote(identity)}' -ErrorAction SilentlyContinue",
            f"if ($r) {{ @($r | Select-Object {SELECT_FIELDS}) | ConvertTo-Json -AsArray }}",
        ]

        result = self._run_powershell(commands)
        if result is None:
            raise ExchangeCommandError(f"Get-Recipient failed for '{identity}'")
        recipients = [r for r in _as_list(result) if isinstance(r, dict) and "Identity" in r]
        if not recipients:
            return None
        if len(recipients) > 1:
            logger.error(f"'{identity}' matches {len(recipients)} recipients")
            return None

        data = recipients[0]
        return ExchangeRecipient(
            identity=data.get("Identity") or identity,
            display_name=data.get("DisplayName") or "",
            primary_smtp_address=(data.get("PrimarySmtpAddress") or "").lower(),
            recipient_type_details=data.get("RecipientTypeDetails") or "",
            alias=data.get("Alias"),
            hidden_from_address_lists=bool(data.get("HiddenFromAddressListsEnabled")),
        )

    async def set_hidden_from_address_lists(
        self,
        recipient: ExchangeRecipient,
        hidden: bool,
    ) -> bool:
        """Hide a recipient from, or show it in, the global address list.

        Args:
            recipient: Recipient from get_recipient
            hidden: True to hide, False to show

        Returns:
            True if successful
        """
        cmdlet = recipient.visibility_cmdlet
        if not cmdlet:
            logger.error(
                f"Cannot change address list visibility of {recipient.recipient_type_details} "
                f"recipient {recipient.primary_smtp_address or recipient.identity}"
            )
            return False

        extra = " -BypassSecurityGroupManagerCheck" if cmdlet == "Set-DistributionGroup" else ""
        flag = "$true" if hidden else "$false"
        identity = recipient.primary_smtp_address or recipient.identity
        commands = [
            f"{cmdlet} -Identity '{ps_quote(identity)}' "
            f"-HiddenFromAddressListsEnabled:{flag}{extra} -ErrorAction Stop",
            "Write-Output 'SUCCESS'",
        ]

        result = self._run_powershell(commands, parse_json=False)
        if result and "SUCCESS" in str(result):
            state = "hidden from" if hidden else "shown in"
            logger.info(f"{identity} is now {state} the address lists")
            return True

        logger.error(f"Failed to change address list visibility for {identity}")
        return False

    async def close(self) -> None:
        """Close the client (no-op for subprocess approach)."""
        pass
