"""
Encryption root key migration.

Column encryption and Vault secrets in the source project are sealed with
its pgsodium root key. This stage fetches that key from the management API
and writes it to the destination server's key file through psql.
"""

import logging
import re
import shlex
from typing import Optional

import httpx

from supabase_migrator.core.exceptions import ConfigurationError, SecretMigrationError
from supabase_migrator.models.config import ProjectConfig, SecretsConfig
from supabase_migrator.utils.command import CommandRunner
from supabase_migrator.utils.sanitize import redact

logger = logging.getLogger(__name__)

_HEX_KEY = re.compile(r'^[0-9a-fA-F]+$')


class SecretMigrator:
    """Moves the pgsodium root key from the source to the destination project."""

    def __init__(
        self,
        source: ProjectConfig,
        destination_db_url: str,
        runner: CommandRunner,
        config: SecretsConfig,
        psql_bin: str = "psql",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0
    ):
        self.source = source
        self.destination_db_url = destination_db_url
        self.runner = runner
        self.config = config
        self.psql_bin = psql_bin
        self._transport = transport
        self._timeout = timeout

    async def get_root_key(self) -> str:
        """
        Fetch the source project's root key.

        Raises:
            ConfigurationError: If project_ref or access_token is not configured
            SecretMigrationError: If the management API refuses or answers badly
        """
        if not self.source.project_ref or not self.source.access_token:
            raise ConfigurationError(
                "Secret migration needs the source project_ref and access_token"
            )

        url = f"{self.config.management_api_url}/v1/projects/{self.source.project_ref}/pgsodium"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.get(
                    url, headers={"Authorization": f"Bearer {self.source.access_token}"}
                )
        except httpx.HTTPError as e:
            raise SecretMigrationError(f"Failed to reach the management API: {e}")

        if response.is_error:
            raise SecretMigrationError(
                f"Management API returned {response.status_code}: "
                f"{redact(response.text, [self.source.access_token])}",
                status_code=response.status_code
            )

        try:
            root_key = response.json()["root_key"]
        except (ValueError, KeyError, TypeError):
            raise SecretMigrationError("Management API response has no root_key")

        if not isinstance(root_key, str) or not _HEX_KEY.match(root_key):
            raise SecretMigrationError("Root key is not a hexadecimal string")
        return root_key

    def _apply_command(self, root_key: str) -> str:
        # root_key is validated hex and the path is quoted as a SQL literal
        key_path = self.config.root_key_path.replace("'", "''")
        statement = f"COPY (SELECT '{root_key}') TO '{key_path}'"
        return shlex.join([
            self.psql_bin,
            "--variable", "ON_ERROR_STOP=1",
            "--command", statement,
            "--dbname", self.destination_db_url,
        ])

    async def apply_root_key(self, root_key: str) -> None:
        """Write the root key to the destination server's key file."""
        await self.runner.run(self._apply_command(root_key), secrets=[root_key])

    async def migrate(self) -> None:
        """Fetch the key from the source and install it at the destination."""
        logger.info("Migrating encryption root key...")
        root_key = await self.get_root_key()
        await self.apply_root_key(root_key)
        logger.info(f"Root key written to {self.config.root_key_path} on the destination")
