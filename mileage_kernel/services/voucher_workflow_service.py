"""
mileage_kernel.services.voucher_workflow_service -- Voucher lifecycle.

Responsibility:
    Owns every state change of a mileage voucher: idempotent monthly
    get-or-create, employee submission, and the three-stage
    supervisor -> vp -> coo approval chain with its rejection path.
    Writes the approval history in the same transaction as each
    approve/reject, then dispatches notifications after commit.  When the
    caller owns the transaction the planned notifications ride back on the
    result until the caller commits and calls ``dispatch_pending``.

Architecture position:
    Kernel > Services.  May import from domain/, models/, selectors/, db/.

Invariants enforced:
    - Legal moves come only from ``VOUCHER_TRANSITIONS``.
    - Every transition is a conditional UPDATE
      (``WHERE id = ? AND status = ?``); zero rows affected means another
      writer got there first and raises ConflictError.  Never retried here.
    - Approvers act only on their own stage.  Holding a later-stage role
      does not grant an earlier one.
    - History row and status change commit together or not at all.
    - Notification failure never undoes a committed transition; it becomes
      a warning on the result.
    - Nothing is sent for a transition that has only been flushed.
    - All input validation happens before any write.

Failure modes:
    - ValidationError: malformed e-mail, blank reason, negative miles,
      missing next-stage recipient.
    - VoucherNotFoundError: unknown voucher id.
    - NotOwnerError / ForbiddenError: caller may not act on the voucher.
    - VoucherInFlightError: submit while pending or approved.
    - ConflictError: status moved underneath the caller.
    - RoleRegistryUnavailableError: role lookup failed (fail closed).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mileage_kernel.domain.authorization import (
    RoleRegistry,
    authorize,
    authorize_owner,
    lookup_roles,
)
from mileage_kernel.domain.clock import Clock, SystemClock
from mileage_kernel.domain.notification import (
    NotificationOutcome,
    NotificationRequest,
    plan_notifications,
)
from mileage_kernel.domain.validation import (
    validate_email,
    validate_optional_email,
    validate_optional_name,
    validate_reason,
    validate_total_miles,
)
from mileage_kernel.domain.voucher import (
    PENDING_STATUSES,
    SUBMITTABLE_STATUSES,
    ApprovalAction,
    Principal,
    VoucherAction,
    VoucherRecord,
    VoucherStatus,
    VoucherTransition,
    find_transition,
    month_start,
)
from mileage_kernel.exceptions import (
    ConflictError,
    ForbiddenError,
    NotOwnerError,
    ValidationError,
    VoucherInFlightError,
    VoucherNotFoundError,
)
from mileage_kernel.logging_config import LogContext, get_logger
from mileage_kernel.models.approval_history import ApprovalHistoryModel
from mileage_kernel.models.voucher import MileageVoucherModel
from mileage_kernel.selectors.approval_queue_selector import (
    ApprovalQueue,
    ApprovalQueueSelector,
)
from mileage_kernel.selectors.trip_selector import (
    MileageTotalProvider,
    TripSelector,
)
from mileage_kernel.services.base import BaseService
from mileage_kernel.services.notification_dispatcher import NotificationDispatcher

logger = get_logger("services.voucher_workflow")


@dataclass(frozen=True)
class VoucherActionResult:
    """Voucher state after a transition plus what happened to its notifications.

    ``pending_notifications`` is only filled when the caller owns the
    transaction: those requests have not been sent yet.
    """

    voucher: VoucherRecord
    transition: VoucherTransition
    notifications: tuple[NotificationOutcome, ...] = field(default_factory=tuple)
    pending_notifications: tuple[NotificationRequest, ...] = field(default_factory=tuple)

    @property
    def status(self) -> VoucherStatus:
        return self.voucher.status

    @property
    def warnings(self) -> tuple[str, ...]:
        return tuple(
            f"{o.request.action.value} notification to {o.request.recipient} "
            f"{o.status.value}: {o.error}"
            for o in self.notifications
            if not o.delivered
        )


class VoucherWorkflowService(BaseService[MileageVoucherModel]):
    """
    Voucher state machine over the relational store.

    Contract:
        Each public operation is one unit of work.  With ``auto_commit``
        (default) the service commits on success and rolls back on any
        exception; otherwise it flushes and the caller commits.
        Notifications go out only after a successful commit: without
        ``auto_commit`` the caller sends them with ``dispatch_pending``
        once its own commit has succeeded.
    """

    def __init__(
        self,
        session: Session,
        role_registry: RoleRegistry,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        total_provider: MileageTotalProvider | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self._roles = role_registry
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()
        self._totals = total_provider or TripSelector(session)

    # -----------------------------------------------------------------
    # Get-or-create
    # -----------------------------------------------------------------

    def get_or_create_voucher(
        self,
        employee_id: UUID,
        month: date,
        total_miles: Decimal | int | str | None = None,
    ) -> VoucherRecord:
        """Return the employee's voucher for ``month``, creating a draft if needed.

        ``total_miles`` is refreshed to the live figure on every call,
        whatever the voucher's status.  Status is never changed here.
        """
        month = month_start(month)
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(employee_id),
            operation="get_or_create_voucher",
        ):
            try:
                if total_miles is None:
                    total_miles = self._totals.total_miles(employee_id, month)
                miles = validate_total_miles(total_miles)

                model = self._find_for_month(employee_id, month)
                if model is None:
                    model = self._insert_draft(employee_id, month, miles)
                if model.total_miles != miles:
                    logger.info(
                        "voucher_total_refreshed",
                        extra={
                            "voucher_id": str(model.id),
                            "old_total": model.total_miles,
                            "new_total": miles,
                        },
                    )
                    model.total_miles = miles
                    self.session.flush()
                self._commit()
            except Exception:
                self._rollback()
                raise
            return model.to_dto()

    def _find_for_month(
        self,
        employee_id: UUID,
        month: date,
    ) -> MileageVoucherModel | None:
        return self.session.execute(
            select(MileageVoucherModel).where(
                MileageVoucherModel.employee_id == employee_id,
                MileageVoucherModel.month == month,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _insert_draft(
        self,
        employee_id: UUID,
        month: date,
        miles: Decimal,
    ) -> MileageVoucherModel:
        model = MileageVoucherModel(
            id=uuid4(),
            employee_id=employee_id,
            month=month,
            total_miles=miles,
            status=VoucherStatus.DRAFT.value,
            rejection_reason="",
        )
        try:
            if self._auto_commit:
                self.session.add(model)
                self.session.flush()
            else:
                # Caller's transaction: only the savepoint is undone on conflict.
                with self.session.begin_nested():
                    self.session.add(model)
        except IntegrityError:
            # Concurrent get-or-create for the same month: the other insert won.
            if self._auto_commit:
                self.session.rollback()
            logger.warning(
                "concurrent_voucher_insert_conflict",
                extra={"employee_id": str(employee_id), "month": month},
            )
            existing = self._find_for_month(employee_id, month)
            if existing is None:
                raise
            return existing

        logger.info(
            "voucher_created",
            extra={
                "voucher_id": str(model.id),
                "employee_id": str(employee_id),
                "month": month,
                "total_miles": miles,
            },
        )
        return model

    # -----------------------------------------------------------------
    # Submit
    # -----------------------------------------------------------------

    def submit_voucher(
        self,
        voucher_id: UUID,
        actor: Principal,
        supervisor_email: str,
    ) -> VoucherActionResult:
        """Owner submits a draft or rejected voucher to their supervisor."""
        supervisor_email = validate_email(supervisor_email, "supervisor_email")
        employee_email = validate_email(actor.email, "actor.email")
        submitter = {"employee_email": employee_email}
        employee_name = validate_optional_name(actor.name)
        if employee_name is not None:
            submitter["employee_name"] = employee_name

        with LogContext.bind(
            correlation_id=str(uuid4()),
            voucher_id=str(voucher_id),
            actor_id=str(actor.principal_id),
            operation="submit_voucher",
        ):
            try:
                model = self._load(voucher_id)
                auth = authorize_owner(model.employee_id, actor.principal_id)
                if not auth.granted:
                    logger.warning(
                        "voucher_authorization_denied",
                        extra={"reason": auth.reason},
                    )
                    raise NotOwnerError(str(voucher_id), str(actor.principal_id))

                current = VoucherStatus(model.status)
                if current not in SUBMITTABLE_STATUSES:
                    raise VoucherInFlightError(str(voucher_id), current.value)

                transition = find_transition(current, VoucherAction.SUBMIT)
                now = self._clock.now()
                self._apply_transition(
                    model,
                    transition,
                    submitted_at=now,
                    updated_at=now,
                    rejection_reason="",
                    **submitter,
                )
                self._commit()
            except Exception:
                self._rollback()
                raise

            logger.info(
                "voucher_submitted",
                extra={"from_status": current.value, "supervisor_email": supervisor_email},
            )
            return self._finish(
                model, transition, supervisor_email=supervisor_email,
            )

    # -----------------------------------------------------------------
    # Approve / reject
    # -----------------------------------------------------------------

    def approve_voucher(
        self,
        voucher_id: UUID,
        actor_id: UUID,
        next_recipient_email: str | None = None,
        accountant_email: str | None = None,
    ) -> VoucherActionResult:
        """Approve the voucher at its current stage.

        Mid-chain approvals must name the next approver's e-mail; the final
        (COO) approval may name an accountant to notify.
        """
        next_recipient_email = validate_optional_email(
            next_recipient_email, "next_recipient_email",
        )
        accountant_email = validate_optional_email(accountant_email, "accountant_email")

        with LogContext.bind(
            correlation_id=str(uuid4()),
            voucher_id=str(voucher_id),
            actor_id=str(actor_id),
            operation="approve_voucher",
        ):
            try:
                model, transition = self._authorize_stage_action(
                    voucher_id, actor_id, VoucherAction.APPROVE,
                )
                if not transition.is_final_approval and next_recipient_email is None:
                    raise ValidationError(
                        "next_recipient_email",
                        "required to notify the next approver",
                    )

                now = self._clock.now()
                self._apply_transition(model, transition, updated_at=now)
                self._append_history(
                    model, actor_id, transition, ApprovalAction.APPROVE, now,
                )
                self._commit()
            except Exception:
                self._rollback()
                raise

            logger.info(
                "voucher_approved",
                extra={
                    "approver_role": transition.required_role.value,
                    "to_status": transition.to_status.value,
                },
            )
            return self._finish(
                model,
                transition,
                next_recipient_email=next_recipient_email,
                accountant_email=accountant_email,
            )

    def reject_voucher(
        self,
        voucher_id: UUID,
        actor_id: UUID,
        reason: str,
    ) -> VoucherActionResult:
        """Return the voucher to the employee with a reason."""
        reason = validate_reason(reason)

        with LogContext.bind(
            correlation_id=str(uuid4()),
            voucher_id=str(voucher_id),
            actor_id=str(actor_id),
            operation="reject_voucher",
        ):
            try:
                model, transition = self._authorize_stage_action(
                    voucher_id, actor_id, VoucherAction.REJECT,
                )
                now = self._clock.now()
                self._apply_transition(
                    model, transition, rejection_reason=reason, updated_at=now,
                )
                self._append_history(
                    model, actor_id, transition, ApprovalAction.REJECT, now,
                    comments=reason,
                )
                self._commit()
            except Exception:
                self._rollback()
                raise

            logger.info(
                "voucher_rejected",
                extra={"approver_role": transition.required_role.value},
            )
            return self._finish(model, transition)

    # -----------------------------------------------------------------
    # Queue
    # -----------------------------------------------------------------

    def list_pending_for(self, actor_id: UUID) -> ApprovalQueue:
        """The caller's approval queue (see ``ApprovalQueueSelector``)."""
        return ApprovalQueueSelector(self.session, self._roles).list_pending_for(actor_id)

    # -----------------------------------------------------------------
    # Deferred notifications
    # -----------------------------------------------------------------

    def dispatch_pending(self, result: VoucherActionResult) -> VoucherActionResult:
        """Send the notifications held back on ``result``.

        For callers that construct the service with ``auto_commit=False``:
        call this only after the transaction holding the transition has
        committed.  Never raises for delivery problems.
        """
        if not result.pending_notifications:
            return result
        outcomes = self._dispatcher.dispatch(result.pending_notifications)
        return replace(
            result,
            notifications=result.notifications + outcomes,
            pending_notifications=(),
        )

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _load(self, voucher_id: UUID) -> MileageVoucherModel:
        model = self.session.get(
            MileageVoucherModel, voucher_id, populate_existing=True,
        )
        if model is None:
            raise VoucherNotFoundError(str(voucher_id))
        return model

    def _authorize_stage_action(
        self,
        voucher_id: UUID,
        actor_id: UUID,
        action: VoucherAction,
    ) -> tuple[MileageVoucherModel, VoucherTransition]:
        """Load the voucher, resolve its stage and check the actor holds it."""
        model = self._load(voucher_id)
        current = VoucherStatus(model.status)
        transition = find_transition(current, action)
        if current not in PENDING_STATUSES or transition is None:
            raise ConflictError(
                str(voucher_id),
                current.value,
                f"Voucher {voucher_id} is not awaiting approval (status '{current.value}')",
            )

        roles = lookup_roles(self._roles, actor_id)
        auth = authorize(transition.required_role, roles)
        if not auth.granted:
            logger.warning(
                "voucher_authorization_denied",
                extra={
                    "required_role": transition.required_role.value,
                    "reason": auth.reason,
                },
            )
            raise ForbiddenError(
                str(actor_id), transition.required_role.value, auth.reason,
            )
        return model, transition

    def _apply_transition(
        self,
        model: MileageVoucherModel,
        transition: VoucherTransition,
        **values: Any,
    ) -> None:
        """Conditional UPDATE guarded by the status the caller observed."""
        result = self.session.execute(
            update(MileageVoucherModel)
            .where(
                MileageVoucherModel.id == model.id,
                MileageVoucherModel.status == transition.from_status.value,
            )
            .values(
                status=transition.to_status.value,
                current_approver_id=None,
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "voucher_transition_conflict",
                extra={
                    "expected_status": transition.from_status.value,
                    "action": transition.action.value,
                },
            )
            raise ConflictError(str(model.id), transition.from_status.value)
        self.session.refresh(model)

    def _append_history(
        self,
        model: MileageVoucherModel,
        actor_id: UUID,
        transition: VoucherTransition,
        action: ApprovalAction,
        acted_at,
        comments: str | None = None,
    ) -> None:
        self.session.add(ApprovalHistoryModel(
            id=uuid4(),
            voucher_id=model.id,
            approver_id=actor_id,
            approver_role=transition.required_role.value,
            action=action.value,
            comments=comments,
            acted_at=acted_at,
        ))
        self.session.flush()

    def _finish(
        self,
        model: MileageVoucherModel,
        transition: VoucherTransition,
        **recipients: str | None,
    ) -> VoucherActionResult:
        """Build the result; notify now if committed, else hand the requests back."""
        voucher = model.to_dto()
        result = VoucherActionResult(voucher=voucher, transition=transition)
        if self._dispatcher is None:
            return result

        requests = plan_notifications(transition, voucher, **recipients)
        if not self._auto_commit:
            if requests:
                logger.info(
                    "notifications_deferred",
                    extra={"count": len(requests)},
                )
            return replace(result, pending_notifications=requests)
        return replace(result, notifications=self._dispatcher.dispatch(requests))
