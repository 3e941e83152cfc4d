"""
Catalogue import reconciliation for schemacat.

Merges parsed import rows into the catalogue store. Rows are grouped by their
owning table; each group is planned against the store's current state and,
unless the run is a dry run, applied inside one store transaction.
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..catalogue.models import Column, ColumnIntent, Database, NewColumn, Server, Table
from ..catalogue.store import CatalogueStore
from ..exceptions import StoreError
from .rows import ImportRow, TablePath


logger = logging.getLogger(__name__)


SORT_ORDER_STEP = 10


class ConflictPolicy(str, Enum):
    """How incoming rows treat columns that already exist."""

    SKIP_EXISTING = "skip_existing"  # only add new columns
    ADD_NEW_ONLY = "add_new_only"    # add new columns, update intent on existing
    FULL_SYNC = "full_sync"          # add, update and remove absent columns


@dataclass
class ImportResult:
    """Tally of an import, identical for dry runs and committed runs."""

    tables_added: int = 0
    columns_added: int = 0
    columns_updated: int = 0
    columns_removed: int = 0
    columns_skipped: int = 0
    rows_rejected: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class UnitPlan:
    """Changes one reconciliation unit would make."""

    path: TablePath
    server: Optional[Server] = None
    database: Optional[Database] = None
    table: Optional[Table] = None
    estimated_row_count: Optional[int] = None
    additions: List[NewColumn] = field(default_factory=list)
    updates: List[Tuple[Column, ColumnIntent]] = field(default_factory=list)
    skipped: List[Column] = field(default_factory=list)
    removals: List[Column] = field(default_factory=list)

    @property
    def is_new_table(self) -> bool:
        return self.table is None

    def merge_into(self, result: ImportResult) -> None:
        result.tables_added += int(self.is_new_table)
        result.columns_added += len(self.additions)
        result.columns_updated += len(self.updates)
        result.columns_skipped += len(self.skipped)
        result.columns_removed += len(self.removals)


def group_rows(rows: Iterable[ImportRow]) -> Tuple[Dict[TablePath, List[ImportRow]], int]:
    """
    Group importable rows by owning table.

    Returns:
        Rows per table path in first-seen order, and the number of rows
        rejected for carrying a warning or lacking a column name
    """
    units: Dict[TablePath, List[ImportRow]] = {}
    rejected = 0
    for row in rows:
        if not row.is_importable:
            rejected += 1
            continue
        units.setdefault(row.table_path, []).append(row)
    return units, rejected


class CatalogueReconciler:
    """
    Reconciles import rows against a catalogue store.

    Dry runs and committed runs share every step up to the writes, so a dry
    run reports exactly what the matching committed run would do.
    """

    def __init__(self, store: CatalogueStore):
        self.store = store

    async def import_rows(
        self,
        rows: Iterable[ImportRow],
        policy: ConflictPolicy = ConflictPolicy.ADD_NEW_ONLY,
        dry_run: bool = True,
    ) -> ImportResult:
        """
        Import rows into the catalogue.

        Args:
            rows: Parsed import rows, warnings included
            policy: Conflict resolution policy for existing columns
            dry_run: Compute the tally without writing anything

        Returns:
            ImportResult with the counts of the (would-be) changes
        """
        policy = ConflictPolicy(policy)
        result = ImportResult()
        units, result.rows_rejected = group_rows(rows)

        logger.info(
            f"Importing {len(units)} tables with policy {policy.value}"
            f"{' (dry run)' if dry_run else ''}; {result.rows_rejected} rows rejected"
        )

        for path, unit_rows in units.items():
            try:
                async with self.store.transaction():
                    plan = await self.plan_unit(path, unit_rows, policy)
                    if not dry_run:
                        await self._apply_plan(plan)
            except StoreError as e:
                logger.error(f"Import of {path} failed: {e}")
                result.errors.append(f"{path}: {e}")
                continue

            plan.merge_into(result)
            logger.debug(
                f"{path}: +{len(plan.additions)} ~{len(plan.updates)} "
                f"-{len(plan.removals)} ={len(plan.skipped)}"
            )

        logger.info(
            f"Import finished: {result.tables_added} tables added, "
            f"{result.columns_added} columns added, {result.columns_updated} updated, "
            f"{result.columns_removed} removed, {result.columns_skipped} skipped, "
            f"{len(result.errors)} errors"
        )
        return result

    async def plan_unit(
        self,
        path: TablePath,
        rows: List[ImportRow],
        policy: ConflictPolicy,
    ) -> UnitPlan:
        """Work out the changes for one table without writing anything."""
        plan = UnitPlan(path=path)

        plan.server = await self.store.find_server(path.server_name)
        if plan.server is not None:
            plan.database = await self.store.find_database(
                plan.server.id, path.database_name
            )
        if plan.database is not None:
            plan.table = await self.store.find_table(
                plan.database.id, path.schema_name, path.table_name
            )

        existing: List[Column] = []
        if plan.table is not None:
            existing = await self.store.list_columns(plan.table.id)

        plan.estimated_row_count = next(
            (row.estimated_row_count for row in rows if row.estimated_row_count is not None),
            None,
        )

        by_name = {column.column_name.casefold(): column for column in existing}
        next_sort_order = (
            max(column.sort_order for column in existing) + SORT_ORDER_STEP
            if existing
            else SORT_ORDER_STEP
        )

        incoming = set()
        for row in rows:
            key = row.column_name.casefold()
            if key in incoming:
                continue
            incoming.add(key)

            current = by_name.get(key)
            if current is None:
                plan.additions.append(
                    NewColumn(
                        column_name=row.column_name,
                        sort_order=next_sort_order,
                        intent=row.intent,
                    )
                )
                next_sort_order += SORT_ORDER_STEP
            elif policy is ConflictPolicy.SKIP_EXISTING:
                plan.skipped.append(current)
            else:
                plan.updates.append((current, row.intent))

        if policy is ConflictPolicy.FULL_SYNC:
            plan.removals = [
                column for column in existing if column.column_name.casefold() not in incoming
            ]

        return plan

    async def _apply_plan(self, plan: UnitPlan) -> None:
        """Write a plan; removals go last."""
        path = plan.path

        server = plan.server
        if server is None:
            server = await self.store.create_server(path.server_name)

        database = plan.database
        if database is None:
            database = await self.store.create_database(server.id, path.database_name)

        table = plan.table
        if table is None:
            table = await self.store.create_table(
                database.id,
                path.schema_name,
                path.table_name,
                estimated_row_count=plan.estimated_row_count,
            )
        elif plan.estimated_row_count is not None:
            await self.store.set_estimated_row_count(table.id, plan.estimated_row_count)

        for column in plan.additions:
            await self.store.add_column(table.id, column)

        for column, intent in plan.updates:
            await self.store.update_column_intent(column.id, intent)

        for column in plan.removals:
            await self.store.delete_column(column.id)
