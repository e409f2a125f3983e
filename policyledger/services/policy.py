"""
Policy service: append-only CRUD over the warehouse policy table.

Policies are never changed in place. Every create, update and delete inserts
a new row with a fresh rowId and createdAt; the current-policy view decides
which row is current. After each write the metadata manager is asked to
refresh the policy's derived metadata.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

from policyledger.config import PoliciesConfig, WarehouseConfig
from policyledger.models.result import PolicyResult
from policyledger.models.warehouse import table_fqdn
from policyledger.services.metadata import MetadataManager
from policyledger.services.queries import Query, build_insert, build_select_current
from policyledger.services.warehouse import WarehouseClient, WarehouseError
from policyledger.utils.ids import new_id, utc_now_iso

logger = logging.getLogger(__name__)


class PolicyService:
    """Service for reading and writing policies."""

    def __init__(
        self,
        client: WarehouseClient,
        metadata_manager: MetadataManager,
        config: WarehouseConfig,
        policies_config: Optional[PoliciesConfig] = None,
    ):
        self.client = client
        self.metadata_manager = metadata_manager
        self.config = config
        self.policies_config = policies_config or PoliciesConfig()
        self._background_tasks: set[asyncio.Task] = set()

    # ============== Relations ==============

    def policy_table(self, project_id: str) -> str:
        return table_fqdn(project_id, self.config.dataset_id, self.config.policy_table_id)

    def policy_view(self, project_id: str) -> str:
        return table_fqdn(project_id, self.config.dataset_id, self.config.policy_view_id)

    def account_view(self, project_id: str) -> str:
        return table_fqdn(project_id, self.config.dataset_id, self.config.account_view_id)

    # ============== Reads ==============

    async def list_policies(
        self,
        project_id: str,
        dataset_id: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> PolicyResult:
        """
        List current policies, optionally scoped to a dataset or an account.

        dataset_id takes precedence when both filters are given.
        """
        view = self.policy_view(project_id)
        try:
            query = self._list_query(project_id, view, dataset_id, account_id)
            rows = await self.client.execute(query)
        except ValueError as e:
            return PolicyResult.fail(400, str(e))
        except WarehouseError as e:
            return PolicyResult.fail(500, str(e))

        if not rows:
            return PolicyResult.fail(400, f"Policies do not exist within table/view: '{view}'")
        return PolicyResult.ok(rows)

    def _list_query(
        self,
        project_id: str,
        view: str,
        dataset_id: Optional[str],
        account_id: Optional[str],
    ) -> Query:
        fields = self.config.policy_view_fields
        dialect = self.client.dialect_name
        if dataset_id:
            return build_select_current(
                view,
                fields,
                dataset_id=dataset_id,
                limit=self.policies_config.list_limit,
                dialect=dialect,
            )
        if account_id:
            return build_select_current(
                view,
                fields,
                account_id=account_id,
                account_view=self.account_view(project_id),
                dialect=dialect,
            )
        return build_select_current(view, fields, limit=self.policies_config.list_limit)

    async def get_policy(self, project_id: str, policy_id: str) -> PolicyResult:
        """Get the current version of a single policy."""
        view = self.policy_view(project_id)
        try:
            query = build_select_current(
                view, self.config.policy_view_fields, policy_id=policy_id
            )
            rows = await self.client.execute(query)
        except ValueError as e:
            return PolicyResult.fail(400, str(e))
        except WarehouseError as e:
            return PolicyResult.fail(500, str(e))

        if len(rows) == 1:
            return PolicyResult.ok(rows[0])
        return PolicyResult.fail(400, f"Policy does not exist within table/view: '{view}'")

    # ============== Writes ==============

    async def create_policy(self, project_id: str, data: Optional[Mapping[str, Any]]) -> PolicyResult:
        """
        Create a new policy.

        If the metadata refresh fails, a tombstone row for the new policy is
        inserted in the background and the failure is returned.
        """
        policy_id = new_id()
        record = self._new_version(data, policy_id, is_deleted=False)

        failure = await self._write(project_id, record, "create")
        if failure is not None:
            return failure

        try:
            await self.metadata_manager.perform_metadata_update(project_id, [policy_id])
        except Exception as e:
            logger.error(f"Metadata update failed for new policy {policy_id}: {e}")
            tombstone = {**record, "rowId": new_id(), "isDeleted": True, "createdAt": utc_now_iso()}
            self._spawn(self._insert_tombstone(project_id, tombstone))
            return PolicyResult.fail(500, str(e))

        # Return the record as written instead of re-reading it from the view
        return PolicyResult.ok(record)

    async def update_policy(
        self,
        project_id: str,
        policy_id: str,
        data: Optional[Mapping[str, Any]],
    ) -> PolicyResult:
        """Write a new version of an existing policy."""
        record = self._new_version(
            data, policy_id, is_deleted=self.policies_config.update_marks_deleted
        )

        failure = await self._write(project_id, record, "update")
        if failure is not None:
            return failure

        try:
            await self.metadata_manager.perform_metadata_update(project_id, [policy_id])
        except Exception as e:
            logger.error(f"Metadata update failed for policy {policy_id}: {e}")
            return PolicyResult.fail(500, str(e))

        return PolicyResult.ok(record)

    async def delete_policy(
        self,
        project_id: str,
        policy_id: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> PolicyResult:
        """Soft-delete a policy by writing a tombstone version."""
        record = self._new_version(data, policy_id, is_deleted=True)

        failure = await self._write(project_id, record, "delete")
        if failure is not None:
            return failure

        try:
            await self.metadata_manager.perform_metadata_update(project_id, [policy_id])
        except Exception as e:
            logger.error(f"Metadata update failed for deleted policy {policy_id}: {e}")
            return PolicyResult.fail(500, str(e))

        return PolicyResult.ok({})

    # ============== Background tasks ==============

    async def drain(self):
        """Wait for outstanding background writes to finish."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    @property
    def pending_tasks(self) -> int:
        return len(self._background_tasks)

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _insert_tombstone(self, project_id: str, record: dict[str, Any]):
        policy_id = record["policyId"]
        try:
            rows = await self._insert(project_id, record)
        except Exception as e:
            logger.error(f"Compensating tombstone for policy {policy_id} failed: {e}")
            return

        if rows:
            logger.error(f"Compensating tombstone for policy {policy_id} was not written")
        else:
            logger.info(f"Wrote compensating tombstone for policy {policy_id}")

    # ============== Helpers ==============

    def _new_version(
        self,
        data: Optional[Mapping[str, Any]],
        policy_id: str,
        is_deleted: bool,
    ) -> dict[str, Any]:
        """Merge caller data with the generated version fields, which win."""
        return {
            **(data or {}),
            "rowId": new_id(),
            "policyId": policy_id,
            "isDeleted": is_deleted,
            "createdAt": utc_now_iso(),
        }

    async def _insert(self, project_id: str, record: dict[str, Any]) -> list[dict[str, Any]]:
        query = build_insert(
            self.policy_table(project_id), self.config.policy_table_fields, record
        )
        logger.debug(f"Inserting policy row: {record}")
        return await self.client.execute(query)

    async def _write(self, project_id: str, record: dict[str, Any], action: str) -> Optional[PolicyResult]:
        """Insert a version row; returns a failure result, or None when written."""
        try:
            rows = await self._insert(project_id, record)
        except ValueError as e:
            return PolicyResult.fail(400, str(e))
        except WarehouseError as e:
            return PolicyResult.fail(500, str(e))

        # The client returns no rows for a successful INSERT
        if rows:
            return PolicyResult.fail(
                500, f"Policy did not {action} with data values: '{record}'"
            )
        return None
