"""Watchdog coordinator: registration and ad event evaluation.

The coordinator owns the flow between the user directory, the criteria
store, the matcher, the ledger and the dispatcher:

    ad event -> candidate criteria -> privilege filter -> matcher
             -> ledger filter -> one dispatch per owner -> ledger record

Each step runs in its own short session so that a slow mail transport never
holds a database transaction open.
"""

import logging
import time
from collections import defaultdict
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from adwatch.config.models import WatchdogConfig
from adwatch.domain.models import AdEvent, AdSnapshot, CriteriaProposal, WatchCriteria
from adwatch.logging import get_logger
from adwatch.logging.context import log_context
from adwatch.matching.engine import CriteriaMatcher
from adwatch.matching.models import CriteriaMatch
from adwatch.notifications.dispatcher import NotificationDispatcher
from adwatch.notifications.models import DispatchError
from adwatch.persistence import (
    CriteriaRepository,
    DataIntegrityError,
    NotificationLedger,
    PersistenceError,
    RecordNotFoundError,
    get_session,
)
from adwatch.users import UserDirectory, UserDirectoryError

from .exceptions import (
    CriteriaNotFoundError,
    CriteriaValidationError,
    DuplicateCriteriaError,
    NotAuthorizedError,
)
from .models import AdEventResult

logger = get_logger(__name__, component="coordinator")

SessionFactory = Callable[[], ContextManager[Session]]


class WatchdogCoordinator:
    """Registers watchdogs and turns ad events into owner alerts.

    Thread-safe: holds no per-event state, so one instance may serve every
    worker of an EventWorkerPool.
    """

    def __init__(
        self,
        user_directory: UserDirectory,
        dispatcher: NotificationDispatcher,
        matcher: Optional[CriteriaMatcher] = None,
        config: Optional[WatchdogConfig] = None,
        session_factory: SessionFactory = get_session,
    ):
        """
        Args:
            user_directory: Source of truth for users and their roles
            dispatcher: Sends one alert per owner per event
            matcher: Criteria matcher (creates default if None)
            config: Registration policy (defaults if None)
            session_factory: Context manager factory yielding a committed-on-exit session
        """
        self.user_directory = user_directory
        self.dispatcher = dispatcher
        self.matcher = matcher or CriteriaMatcher()
        self.config = config or WatchdogConfig()
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Registration and management
    # ------------------------------------------------------------------

    def register_criteria(
        self, owner_id: str, proposal: Union[CriteriaProposal, Mapping[str, Any]]
    ) -> WatchCriteria:
        """Create an active watchdog for ``owner_id``.

        Privilege is looked up fresh on every call.

        Args:
            owner_id: Requesting user
            proposal: Validated proposal, or raw filter fields to validate

        Returns:
            The stored, active criterion

        Raises:
            NotAuthorizedError: Owner unknown or not holding the elevated role
            CriteriaValidationError: Malformed filters
            DuplicateCriteriaError: Identical active watchdog already exists
            UserDirectoryError: The user directory could not be consulted
            PersistenceError: The store failed
        """
        self._require_privilege(owner_id)
        proposal = self._validate_proposal(proposal)

        criteria = WatchCriteria.from_proposal(owner_id, proposal)

        with self.session_factory() as session:
            repo = CriteriaRepository(session)

            for existing in repo.find_active_by_owner(owner_id):
                if existing.filter_key == criteria.filter_key:
                    logger.info(
                        f"Rejected duplicate watchdog for owner {owner_id}",
                        extra={
                            "event": "watchdog.register.duplicate",
                            "owner_id": owner_id,
                            "existing_id": existing.id,
                        },
                    )
                    raise DuplicateCriteriaError(owner_id, existing_id=existing.id)

            try:
                saved = repo.save(criteria)
            except DataIntegrityError as e:
                # Lost a race with a concurrent identical registration
                logger.info(
                    f"Duplicate watchdog for owner {owner_id} caught by unique index",
                    extra={"event": "watchdog.register.duplicate", "owner_id": owner_id},
                )
                raise DuplicateCriteriaError(owner_id) from e

        logger.info(
            f"Registered watchdog {saved.id} for owner {owner_id}: {saved.describe()}",
            extra={
                "event": "watchdog.register.success",
                "owner_id": owner_id,
                "criteria_id": saved.id,
            },
        )
        return saved

    def list_criteria(self, owner_id: str, include_inactive: bool = False) -> List[WatchCriteria]:
        """Watchdogs of ``owner_id``, oldest first."""
        with self.session_factory() as session:
            return CriteriaRepository(session).find_by_owner(
                owner_id, include_inactive=include_inactive
            )

    def delete_criteria(self, owner_id: str, criteria_id: str) -> None:
        """Delete one of the owner's watchdogs together with its ledger records.

        Raises:
            CriteriaNotFoundError: No such criterion, or it belongs to someone else
        """
        with self.session_factory() as session:
            repo = CriteriaRepository(session)
            criteria = repo.get(criteria_id)
            if criteria is None or criteria.owner_id != owner_id:
                raise CriteriaNotFoundError(criteria_id)
            repo.delete(criteria_id)

        logger.info(
            f"Deleted watchdog {criteria_id} of owner {owner_id}",
            extra={
                "event": "watchdog.delete.success",
                "owner_id": owner_id,
                "criteria_id": criteria_id,
            },
        )

    def delete_owner(self, owner_id: str) -> int:
        """Remove every watchdog of a deleted account.

        Returns:
            Number of criteria removed
        """
        with self.session_factory() as session:
            deleted = CriteriaRepository(session).delete_by_owner(owner_id)

        logger.info(
            f"Removed {deleted} watchdog(s) of deleted account {owner_id}",
            extra={"event": "watchdog.owner.deleted", "owner_id": owner_id, "deleted": deleted},
        )
        return deleted

    def _require_privilege(self, owner_id: str) -> None:
        profile = self.user_directory.get_user(owner_id)
        if profile is None:
            logger.info(
                f"Watchdog registration refused for unknown user {owner_id}",
                extra={"event": "watchdog.register.unauthorized", "owner_id": owner_id},
            )
            raise NotAuthorizedError(owner_id, known_user=False)

        if not profile.has_role(self.user_directory.elevated_role):
            logger.info(
                f"Watchdog registration refused for user {owner_id} without {self.user_directory.elevated_role}",
                extra={"event": "watchdog.register.unauthorized", "owner_id": owner_id},
            )
            raise NotAuthorizedError(owner_id, known_user=True)

    def _validate_proposal(
        self, proposal: Union[CriteriaProposal, Mapping[str, Any]]
    ) -> CriteriaProposal:
        if not isinstance(proposal, CriteriaProposal):
            try:
                proposal = CriteriaProposal.model_validate(dict(proposal))
            except ValidationError as e:
                raise CriteriaValidationError.from_pydantic(e) from e

        if proposal.is_unfiltered and not self.config.allow_unfiltered_criteria:
            raise CriteriaValidationError(
                "Invalid watchdog criteria.",
                errors=["At least one of keyword, category_id, price_min, price_max is required"],
            )

        return proposal

    # ------------------------------------------------------------------
    # Event evaluation
    # ------------------------------------------------------------------

    def on_ad_event(self, event: AdEvent) -> AdEventResult:
        """Evaluate a created or updated ad and alert the matching owners.

        Created and updated events are handled identically; pairs already in
        the ledger are never alerted again.

        Returns:
            AdEventResult summarising the event

        Raises:
            PersistenceError: If the candidate criteria could not be loaded
        """
        ad = event.ad
        kind = event.kind.value
        start = time.monotonic()
        result = AdEventResult(event_id=event.event_id, ad_id=ad.id, kind=kind)

        with log_context(event_id=event.event_id, ad_id=ad.id, event_kind=kind):
            logger.debug(
                f"Evaluating ad {ad.id} ({kind})",
                extra={"event": "watchdog.event.started"},
            )

            with self.session_factory() as session:
                candidates = CriteriaRepository(session).find_active_by_category_or_unfiltered(
                    ad.category_id
                )
            result.candidates = len(candidates)

            eligible = self._filter_privileged(candidates, result)

            matched = self.matcher.evaluate(ad, eligible)
            result.matched = len(matched)

            if logger.isEnabledFor(logging.DEBUG):
                for criterion in sorted(matched, key=lambda c: c.id):
                    explanation = self.matcher.explain(ad, criterion)
                    logger.debug(
                        f"Watchdog {criterion.id} of {criterion.owner_id}: {explanation.reason}",
                        extra={
                            "event": "watchdog.criteria.matched",
                            "criteria_id": criterion.id,
                            "matched_filters": explanation.matched_filters,
                        },
                    )

            pending = self._drop_already_notified(ad, matched, result)

            by_owner: Dict[str, List[CriteriaMatch]] = defaultdict(list)
            for match in pending:
                by_owner[match.owner_id].append(match)

            for owner_id in sorted(by_owner):
                self._notify_owner(owner_id, by_owner[owner_id], result)

            result.duration_seconds = time.monotonic() - start

            logger.info(
                f"Ad {ad.id} ({kind}) evaluated: {result.candidates} candidates, "
                f"{result.matched} matched, {result.duplicates_suppressed} already notified, "
                f"{len(result.notified_owners)} owner(s) alerted, "
                f"{len(result.failed_owners)} failed",
                extra={
                    "event": "watchdog.event.completed",
                    "candidates": result.candidates,
                    "matched": result.matched,
                    "deactivated": result.deactivated,
                    "duplicates_suppressed": result.duplicates_suppressed,
                    "notified_owners": len(result.notified_owners),
                    "failed_owners": len(result.failed_owners),
                    "had_errors": result.had_errors,
                    "duration_seconds": round(result.duration_seconds, 3),
                },
            )

        return result

    def _filter_privileged(
        self, candidates: Iterable[WatchCriteria], result: AdEventResult
    ) -> List[WatchCriteria]:
        """Keep criteria whose owner currently holds the elevated role.

        Each owner is looked up once per event. Criteria of owners who lost
        the role are deactivated; criteria of owners whose lookup failed are
        skipped for this event only.
        """
        by_owner: Dict[str, List[WatchCriteria]] = defaultdict(list)
        for criterion in candidates:
            by_owner[criterion.owner_id].append(criterion)

        eligible: List[WatchCriteria] = []
        revoked: List[WatchCriteria] = []

        for owner_id, owned in by_owner.items():
            try:
                privileged = self.user_directory.has_elevated_privilege(owner_id)
            except UserDirectoryError as e:
                logger.warning(
                    f"Privilege lookup failed for owner {owner_id}; skipping their watchdogs: {e}",
                    extra={"event": "watchdog.privilege.unavailable", "owner_id": owner_id},
                )
                result.directory_unavailable += len(owned)
                continue

            if privileged:
                eligible.extend(owned)
            else:
                revoked.extend(owned)

        if revoked:
            result.skipped_inactive = len(revoked)
            result.deactivated = self._deactivate(revoked)

        return eligible

    def _deactivate(self, revoked: List[WatchCriteria]) -> int:
        deactivated = 0
        try:
            with self.session_factory() as session:
                repo = CriteriaRepository(session)
                for criterion in revoked:
                    try:
                        repo.deactivate(criterion.id)
                        deactivated += 1
                    except RecordNotFoundError:
                        # Deleted since it was loaded
                        continue
        except PersistenceError as e:
            logger.error(
                f"Failed to deactivate {len(revoked)} watchdog(s) of non-privileged owners: {e}",
                extra={"event": "watchdog.deactivate.failure"},
            )
            return 0

        for criterion in revoked:
            logger.info(
                f"Deactivated watchdog {criterion.id}: owner {criterion.owner_id} "
                f"no longer holds {self.user_directory.elevated_role}",
                extra={
                    "event": "watchdog.criteria.deactivated",
                    "owner_id": criterion.owner_id,
                    "criteria_id": criterion.id,
                },
            )
        return deactivated

    def _drop_already_notified(
        self, ad: AdSnapshot, matched: Iterable[WatchCriteria], result: AdEventResult
    ) -> List[CriteriaMatch]:
        """Drop pairs present in the ledger and pairs the ledger cannot vouch for."""
        ordered = sorted(matched, key=lambda c: (c.owner_id, c.created_at, c.id))
        if not ordered:
            return []

        pending: List[CriteriaMatch] = []
        checked = 0
        try:
            with self.session_factory() as session:
                ledger = NotificationLedger(session)
                for criterion in ordered:
                    checked += 1
                    try:
                        if ledger.exists(criterion.id, ad.id):
                            result.duplicates_suppressed += 1
                            continue
                    except PersistenceError as e:
                        logger.warning(
                            f"Ledger lookup failed for criteria {criterion.id}; skipping: {e}",
                            extra={
                                "event": "watchdog.ledger.unavailable",
                                "criteria_id": criterion.id,
                            },
                        )
                        result.ledger_unavailable += 1
                        continue
                    pending.append(CriteriaMatch(criteria=criterion, ad=ad))
        except PersistenceError as e:
            logger.error(
                f"Ledger unavailable for ad {ad.id}; skipping all matches: {e}",
                extra={"event": "watchdog.ledger.unavailable"},
            )
            result.ledger_unavailable += len(pending) + (len(ordered) - checked)
            return []

        return pending

    def _notify_owner(
        self, owner_id: str, matches: List[CriteriaMatch], result: AdEventResult
    ) -> None:
        try:
            dispatch_result = self.dispatcher.dispatch(owner_id, matches)
        except DispatchError as e:
            logger.error(
                f"Alert for owner {owner_id} not delivered; pairs stay eligible: {e}",
                extra={
                    "event": "watchdog.dispatch.failure",
                    "owner_id": owner_id,
                    "match_count": len(matches),
                    "attempts": e.attempts,
                },
            )
            result.failed_owners.append(owner_id)
            return

        unrecorded = 0
        for criteria_id, ad_id in dispatch_result.pairs:
            if not self._record_pair(owner_id, criteria_id, ad_id):
                unrecorded += 1

        if unrecorded:
            result.unrecorded_pairs += unrecorded
            return

        result.notified_owners.append(owner_id)

    def _record_pair(self, owner_id: str, criteria_id: str, ad_id: int) -> bool:
        """Write one delivered pair to the ledger in its own transaction.

        Returns:
            False only if the pair was delivered but could not be recorded. A
            criterion deleted since it was loaded has nothing left to record.
        """
        try:
            with self.session_factory() as session:
                NotificationLedger(session).record(criteria_id, ad_id)
        except DataIntegrityError as e:
            logger.info(
                f"Watchdog {criteria_id} was deleted before its alert was recorded",
                extra={
                    "event": "watchdog.ledger.criteria_gone",
                    "owner_id": owner_id,
                    "criteria_id": criteria_id,
                    "error": str(e),
                },
            )
            return True
        except PersistenceError as e:
            logger.error(
                f"Alert for owner {owner_id} sent but pair ({criteria_id}, {ad_id}) "
                f"not recorded in the ledger: {e}",
                extra={
                    "event": "watchdog.ledger.record_failure",
                    "owner_id": owner_id,
                    "criteria_id": criteria_id,
                },
            )
            return False
        return True
