"""
Batch Commit Orchestrator - applies reviewed import rows to the record store.

Included rows are processed one at a time in file order:

1. Resolve the organization: reuse the matched one (renaming it when a tax-ID
   match carries a newer name), reuse one created earlier in this run, or
   create it.
2. Settle the grant: mark the matched pending grant paid, or create a new
   paid grant. A pending grant is settled once per run; later rows matched
   to it create their own paid grant.
3. Record audit entries and advance the progress counter.

A failing row is logged and counted; the batch never stops early and nothing
is rolled back. Commit must stay sequential: the per-run maps of created
organizations only see rows already processed.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from ..constants import (
    ACTION_GRANT_CREATED,
    ACTION_GRANT_STATUS_CHANGED,
    ACTION_ORGANIZATION_CREATED,
    ACTION_ORGANIZATION_RENAMED,
    DEFAULT_ROW_TIMEOUT_SECONDS,
    GRANT_STATUS_APPROVED,
    GRANT_STATUS_PAID,
    IMPORT_SOURCE,
)
from ..db.store import ActivityEntry, NewGrant, NewOrganization, RecordStore
from ..matching.name_similarity import names_differ
from ..models import CommitSummary, GrantMatchType, ImportRow, OrgMatchType
from ..parsers.ein_lookup import normalize_for_lookup
from ..utils.ein_utils import ein_match_key
from ..utils.logger import format_fields

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class RowTimeoutError(Exception):
    """A row's store operations ran past its deadline."""


@dataclass
class CommitState:
    """Mutable state of one commit run."""

    organization_names: dict[str, str] = field(default_factory=dict)  # org id -> name as of this run
    created_orgs_by_ein: dict[str, str] = field(default_factory=dict)  # EIN match key -> org id
    created_orgs_by_name: dict[str, str] = field(default_factory=dict)  # normalized name -> org id
    transitioned_grant_ids: set[str] = field(default_factory=set)  # pending grants marked paid this run


class RowDeadline:
    """Deadline for the store calls of a single row."""

    def __init__(self, clock: Callable[[], float], seconds: float, row_index: int):
        self.clock = clock
        self.row_index = row_index
        self.seconds = seconds
        self.expires_at = clock() + seconds

    def check(self, operation: str) -> None:
        if self.clock() > self.expires_at:
            raise RowTimeoutError(f"Row {self.row_index}: exceeded {self.seconds}s before {operation}")


class CommitOrchestrator:
    """
    Applies included ImportRows to a RecordStore.

    Args:
        store: Record store to mutate
        foundation_id: Foundation that owns the new records
        user_id: Default creator/proposer and audit-log user
        user_map: Provider "Submitted By" value -> user id, used as proposer
            and creator for that submitter's rows
        row_timeout_seconds: Deadline for the store calls of one row
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        store: RecordStore,
        foundation_id: str,
        user_id: str,
        user_map: Optional[dict[str, str]] = None,
        row_timeout_seconds: float = DEFAULT_ROW_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.foundation_id = foundation_id
        self.user_id = user_id
        self.user_map = user_map or {}
        self.row_timeout_seconds = row_timeout_seconds
        self.clock = clock

    def commit(
        self,
        rows: Iterable[ImportRow],
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CommitSummary:
        """
        Commit the included rows.

        Args:
            rows: Reviewed rows; excluded rows are ignored
            on_progress: Called with (processed, total) after every row
            cancel_event: Checked before each row; once set, no further rows start

        Returns:
            CommitSummary with per-outcome counts
        """
        to_process = sorted((row for row in rows if row.included), key=lambda r: r.index)
        summary = CommitSummary(total=len(to_process))
        state = CommitState()

        for row in to_process:
            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                logger.warning(f"Commit cancelled after {summary.processed}/{summary.total} rows")
                break

            deadline = RowDeadline(self.clock, self.row_timeout_seconds, row.index)
            try:
                self._commit_row(row, state, summary, deadline)
            except RowTimeoutError as e:
                summary.timed_out += 1
                logger.error(format_fields(str(e), org=row.csv.org_name))

            summary.processed += 1
            if on_progress is not None:
                on_progress(summary.processed, summary.total)

        logger.info(summary.message())
        return summary

    # ------------------------------------------------------------------
    # Per-row steps
    # ------------------------------------------------------------------

    def _commit_row(self, row: ImportRow, state: CommitState, summary: CommitSummary, deadline: RowDeadline) -> None:
        try:
            org_id = self._resolve_organization(row, state, summary, deadline)
        except RowTimeoutError:
            raise
        except Exception:
            summary.organization_failures += 1
            logger.error(
                format_fields("Failed to create organization", row=row.index, org=row.csv.org_name),
                exc_info=True,
            )
            return

        transition = self._grant_to_transition(row, state)
        try:
            if transition is not None:
                self._transition_grant(transition, deadline)
                state.transitioned_grant_ids.add(transition)
                summary.grants_transitioned += 1
            else:
                self._create_grant(row, org_id, deadline)
                summary.grants_created += 1
        except RowTimeoutError:
            raise
        except Exception:
            summary.grant_failures += 1
            logger.error(
                format_fields(
                    f"Failed to {'transition' if transition is not None else 'create'} grant",
                    row=row.index,
                    org=row.csv.org_name,
                ),
                exc_info=True,
            )

    def _grant_to_transition(self, row: ImportRow, state: CommitState) -> Optional[str]:
        """Pending grant id this row settles, or None when it needs a new paid grant."""
        grant_match = row.grant_match
        if grant_match.type == GrantMatchType.ALREADY_PAID.value:
            logger.info(
                format_fields(
                    "Recording a row already matched to a paid grant as a new grant",
                    row=row.index,
                    grant=grant_match.grant.id,
                )
            )
            return None
        if grant_match.type != GrantMatchType.TRANSITION.value:
            return None
        if grant_match.grant.id in state.transitioned_grant_ids:
            logger.info(
                format_fields(
                    "Pending grant already settled in this run; creating a new grant",
                    row=row.index,
                    grant=grant_match.grant.id,
                )
            )
            return None
        return grant_match.grant.id

    def _resolve_organization(
        self, row: ImportRow, state: CommitState, summary: CommitSummary, deadline: RowDeadline
    ) -> str:
        organization = row.org_match.matched_organization
        if organization is not None:
            state.organization_names.setdefault(organization.id, organization.name)
            if row.org_match.type == OrgMatchType.EXACT_EIN.value and row.org_match.name_changed:
                self._rename_if_changed(row, organization.id, state, summary, deadline)
            return organization.id

        csv = row.csv
        ein_key = ein_match_key(csv.ein)
        name_key = normalize_for_lookup(csv.org_name)

        org_id = state.created_orgs_by_ein.get(ein_key) if ein_key else None
        if org_id is None:
            org_id = state.created_orgs_by_name.get(name_key)

        if org_id is not None:
            summary.organizations_reused += 1
            logger.debug(format_fields("Reusing organization created earlier in this run", row=row.index, id=org_id))
        else:
            deadline.check("insert organization")
            org_id = self.store.insert_organization(
                NewOrganization(
                    foundation_id=self.foundation_id,
                    name=csv.org_name,
                    ein=csv.ein,
                    address=csv.full_address(),
                    created_by=self._user_for(row),
                )
            )
            summary.organizations_created += 1
            self._audit(
                ACTION_ORGANIZATION_CREATED,
                "organization",
                org_id,
                {"name": csv.org_name, "source": IMPORT_SOURCE},
                deadline,
            )

        if ein_key:
            state.created_orgs_by_ein.setdefault(ein_key, org_id)
        if name_key:
            state.created_orgs_by_name.setdefault(name_key, org_id)
        return org_id

    def _rename_if_changed(
        self, row: ImportRow, org_id: str, state: CommitState, summary: CommitSummary, deadline: RowDeadline
    ) -> None:
        """Adopt the CSV name for a tax-ID match, once per distinct name."""
        current = state.organization_names[org_id]
        if not names_differ(current, row.csv.org_name):
            return

        deadline.check("rename organization")
        try:
            self.store.update_organization_name(org_id, row.csv.org_name)
        except RowTimeoutError:
            raise
        except Exception:
            # Grant still proceeds against the organization under its old name
            logger.warning(
                format_fields("Failed to rename organization", row=row.index, id=org_id, name=row.csv.org_name),
                exc_info=True,
            )
            return

        state.organization_names[org_id] = row.csv.org_name
        summary.organizations_renamed += 1
        self._audit(
            ACTION_ORGANIZATION_RENAMED,
            "organization",
            org_id,
            {"from": current, "to": row.csv.org_name, "source": IMPORT_SOURCE},
            deadline,
        )

    def _transition_grant(self, grant_id: str, deadline: RowDeadline) -> None:
        deadline.check("update grant status")
        self.store.update_grant_status(grant_id, GRANT_STATUS_PAID, datetime.now(timezone.utc))
        self._audit(
            ACTION_GRANT_STATUS_CHANGED,
            "grant",
            grant_id,
            {"from": GRANT_STATUS_APPROVED, "to": GRANT_STATUS_PAID, "source": IMPORT_SOURCE},
            deadline,
        )

    def _create_grant(self, row: ImportRow, org_id: str, deadline: RowDeadline) -> None:
        csv = row.csv
        deadline.check("insert grant")
        grant_id = self.store.insert_grant(
            NewGrant(
                foundation_id=self.foundation_id,
                organization_id=org_id,
                amount=csv.amount,
                purpose=csv.purpose,
                proposed_by=self._user_for(row),
                start_date=csv.date_paid,
            )
        )
        self._audit(
            ACTION_GRANT_CREATED,
            "grant",
            grant_id,
            {"amount": float(csv.amount), "organization": csv.org_name, "source": IMPORT_SOURCE},
            deadline,
        )

    def _audit(self, action: str, entity_type: str, entity_id: str, details: dict, deadline: RowDeadline) -> None:
        """Write an activity entry. Failures are logged and never fail the row."""
        try:
            deadline.check(f"log {action}")
            self.store.insert_activity(
                ActivityEntry(
                    foundation_id=self.foundation_id,
                    user_id=self.user_id,
                    action=action,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    details=details,
                )
            )
        except Exception:
            logger.warning(format_fields("Failed to write activity entry", action=action, id=entity_id), exc_info=True)

    def _user_for(self, row: ImportRow) -> str:
        submitter = row.csv.submitted_by
        if submitter and submitter in self.user_map:
            return self.user_map[submitter]
        return self.user_id
