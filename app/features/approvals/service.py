"""Service layer for change approvals.

Every target entity is resolved through ``TARGET_HANDLERS``: the ORM model,
the update schema payloads are validated against, whether the entity can be
soft-deleted, how its tenant is found and which roles may approve changes.
Anything not in the table cannot be targeted.

CRITICAL: All decisions are logged for auditability.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import pydantic
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import Base
from app.core.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from app.core.identity import Principal, Role
from app.core.logging import get_logger
from app.features.approvals.models import (
    VALID_APPROVAL_TRANSITIONS,
    Approval,
    ApprovalAction,
    ApprovalStatus,
    ApprovalTarget,
)
from app.features.approvals.schemas import (
    ApprovalCreate,
    ApprovalDecide,
    ApprovalDecision,
    ApprovalListResponse,
    ApprovalResponse,
    FabricCuttingUpdate,
    RateUpdate,
    ShipmentUpdate,
    StyleUpdate,
    TailorJobUpdate,
    TailorUpdate,
    VendorUpdate,
)
from app.features.data_platform.models import (
    FabricCutting,
    Rate,
    Shipment,
    Style,
    Tailor,
    TailorJob,
    Vendor,
)

logger = get_logger(__name__)

STAFF = frozenset({Role.ADMIN, Role.MANAGER})
ADMIN_ONLY = frozenset({Role.ADMIN})


@dataclass(frozen=True)
class TargetHandler:
    """How one target entity is validated, located and changed.

    Attributes:
        model: ORM model of the target table.
        update_schema: Schema an update payload must satisfy.
        approver_roles: Roles allowed to decide requests for this target.
        soft_delete: Whether the model carries ``is_active``.
        tenant_via_style: Tenant is read from the row's style rather than
            a ``tenant_id`` column.
    """

    model: type[Base]
    update_schema: type[pydantic.BaseModel]
    approver_roles: frozenset[Role]
    soft_delete: bool = False
    tenant_via_style: bool = False

    def target_query(self, target_id: int, tenant_id: str) -> Any:
        """Select the target row only if it belongs to ``tenant_id``."""
        model: Any = self.model
        stmt = select(model).where(model.id == target_id)
        if self.tenant_via_style:
            return stmt.join(Style, model.style_id == Style.id).where(
                Style.tenant_id == tenant_id
            )
        return stmt.where(model.tenant_id == tenant_id)


TARGET_HANDLERS: dict[ApprovalTarget, TargetHandler] = {
    ApprovalTarget.VENDOR: TargetHandler(Vendor, VendorUpdate, ADMIN_ONLY, soft_delete=True),
    ApprovalTarget.STYLE: TargetHandler(Style, StyleUpdate, STAFF, soft_delete=True),
    ApprovalTarget.TAILOR: TargetHandler(Tailor, TailorUpdate, STAFF, soft_delete=True),
    ApprovalTarget.RATE: TargetHandler(Rate, RateUpdate, ADMIN_ONLY, tenant_via_style=True),
    ApprovalTarget.SHIPMENT: TargetHandler(
        Shipment, ShipmentUpdate, STAFF, tenant_via_style=True
    ),
    ApprovalTarget.FABRIC_CUTTING: TargetHandler(FabricCutting, FabricCuttingUpdate, STAFF),
    ApprovalTarget.TAILOR_JOB: TargetHandler(
        TailorJob, TailorJobUpdate, STAFF, tenant_via_style=True
    ),
}


def validate_payload(
    target: ApprovalTarget, action: ApprovalAction, payload: dict[str, Any]
) -> dict[str, Any]:
    """Check a request payload against the target's rules.

    Args:
        target: Entity type.
        action: Requested action.
        payload: Raw field values from the request.

    Returns:
        JSON-safe payload containing only the fields that were set.

    Raises:
        BadRequestError: If the target cannot take the action.
        ValidationError: If the payload does not fit the target's schema.
    """
    handler = TARGET_HANDLERS[target]

    if action == ApprovalAction.SOFT_DELETE:
        if not handler.soft_delete:
            raise BadRequestError(
                message=f"'{target.value}' records cannot be soft-deleted",
                details={"target": target.value},
            )
        if payload:
            raise ValidationError(
                message="soft_delete requests take no payload",
                details={"fields": sorted(payload)},
            )
        return {}

    try:
        parsed = handler.update_schema.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(
            message=f"Invalid update for '{target.value}'",
            details={
                "errors": [
                    {
                        "field": ".".join(str(part) for part in err["loc"]),
                        "message": err["msg"],
                        "type": err["type"],
                    }
                    for err in e.errors()
                ]
            },
        ) from e

    changes = parsed.model_dump(mode="json", exclude_unset=True)
    if not changes:
        raise ValidationError(message="Update request has no fields to change")

    columns = handler.model.__table__.columns
    nulled = sorted(
        name for name, value in changes.items() if value is None and not columns[name].nullable
    )
    if nulled:
        raise ValidationError(
            message="Required fields cannot be cleared",
            details={"fields": nulled},
        )
    return changes


def apply_change(
    handler: TargetHandler, action: ApprovalAction, entity: Any, payload: dict[str, Any]
) -> None:
    """Apply an approved change to a loaded target row."""
    if action == ApprovalAction.SOFT_DELETE:
        entity.is_active = False
        return
    values = handler.update_schema.model_validate(payload).model_dump(exclude_unset=True)
    for field, value in values.items():
        setattr(entity, field, value)


class ApprovalService:
    """Create, list and decide change requests for the caller's tenant."""

    def __init__(self, principal: Principal) -> None:
        self.principal = principal
        self.tenant_id = principal.require_tenant()

    def _to_response(self, approval: Approval) -> ApprovalResponse:
        return ApprovalResponse.model_validate(approval)

    async def list_approvals(
        self,
        db: AsyncSession,
        status: ApprovalStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> ApprovalListResponse:
        """List requests, newest first.

        Vendors only see requests they raised themselves.

        Args:
            db: Database session.
            status: Filter by status (optional).
            page: Page number (1-indexed).
            page_size: Requests per page.

        Returns:
            Paginated list of requests.
        """
        stmt = select(Approval).where(Approval.tenant_id == self.tenant_id)
        if status is not None:
            stmt = stmt.where(Approval.status == status.value)
        if not self.principal.is_staff:
            stmt = stmt.where(Approval.requested_by == self.principal.user_id)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await db.execute(count_stmt)).scalar_one()

        offset = (page - 1) * page_size
        stmt = stmt.order_by(Approval.created_at.desc(), Approval.id.desc())
        result = await db.execute(stmt.offset(offset).limit(page_size))
        approvals = result.scalars().all()

        return ApprovalListResponse(
            approvals=[self._to_response(a) for a in approvals],
            total=total,
            page=page,
            page_size=page_size,
        )

    async def _load_target(
        self, db: AsyncSession, handler: TargetHandler, target_id: int, *, for_update: bool = False
    ) -> Any:
        stmt = handler.target_query(target_id, self.tenant_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    def _check_vendor_owns(self, target: ApprovalTarget, entity: Any) -> None:
        """Vendors may only request changes to rows linked to their own vendor id."""
        if self.principal.role != Role.VENDOR:
            return
        owner = entity.id if target == ApprovalTarget.VENDOR else getattr(entity, "vendor_id", None)
        if owner is None or owner != self.principal.vendor_id:
            raise ForbiddenError(f"Vendors cannot request changes to this {target.value}")

    async def create_request(self, db: AsyncSession, request: ApprovalCreate) -> ApprovalResponse:
        """Record a change request after validating it against its target.

        Args:
            db: Database session.
            request: Target, action and payload.

        Returns:
            The pending request.

        Raises:
            NotFoundError: If the target does not exist in the caller's tenant.
            ForbiddenError: If a vendor targets a row it does not own.
        """
        payload = validate_payload(request.target, request.action, request.payload)
        handler = TARGET_HANDLERS[request.target]

        entity = await self._load_target(db, handler, request.target_id)
        if entity is None:
            raise NotFoundError(
                message=f"{request.target.value} {request.target_id} not found",
                details={"target": request.target.value, "target_id": request.target_id},
            )
        self._check_vendor_owns(request.target, entity)

        approval = Approval(
            tenant_id=self.tenant_id,
            target=request.target.value,
            target_id=request.target_id,
            action=request.action.value,
            payload=payload,
            status=ApprovalStatus.PENDING.value,
            requested_by=self.principal.user_id,
            requested_role=self.principal.role.value,
        )
        db.add(approval)
        await db.commit()
        await db.refresh(approval)

        logger.info(
            "approvals.request_created",
            approval_id=approval.id,
            tenant_id=self.tenant_id,
            target=request.target.value,
            target_id=request.target_id,
            action=request.action.value,
            requested_by=self.principal.user_id,
        )
        return self._to_response(approval)

    async def decide(
        self, db: AsyncSession, approval_id: int, decision: ApprovalDecide
    ) -> ApprovalResponse:
        """Approve or reject a pending request.

        Approving applies the change and flips the status in the same
        transaction; rejecting only flips the status.

        Args:
            db: Database session.
            approval_id: Request to decide.
            decision: approve or reject, with optional remarks.

        Returns:
            The decided request.

        Raises:
            NotFoundError: If the request or its target is missing.
            ConflictError: If the request was already decided.
            ForbiddenError: If the caller may not approve this target.
        """
        stmt = (
            select(Approval)
            .where(Approval.id == approval_id, Approval.tenant_id == self.tenant_id)
            .with_for_update()
        )
        approval = (await db.execute(stmt)).scalar_one_or_none()
        if approval is None:
            raise NotFoundError(message=f"Approval {approval_id} not found")

        new_status = (
            ApprovalStatus.APPROVED
            if decision.decision == ApprovalDecision.APPROVE
            else ApprovalStatus.REJECTED
        )
        current = ApprovalStatus(approval.status)
        if new_status not in VALID_APPROVAL_TRANSITIONS[current]:
            raise ConflictError(
                message=f"Approval {approval_id} is already {current.value}",
                details={"status": current.value},
            )

        target = ApprovalTarget(approval.target)
        handler = TARGET_HANDLERS[target]
        if self.principal.role not in handler.approver_roles:
            logger.warning(
                "approvals.decision_rejected",
                approval_id=approval_id,
                target=target.value,
                role=self.principal.role.value,
            )
            raise ForbiddenError(
                f"Role '{self.principal.role.value}' may not decide {target.value} changes"
            )

        if new_status == ApprovalStatus.APPROVED:
            entity = await self._load_target(db, handler, approval.target_id, for_update=True)
            if entity is None:
                raise NotFoundError(
                    message=f"{target.value} {approval.target_id} no longer exists",
                    details={"target": target.value, "target_id": approval.target_id},
                )
            apply_change(handler, ApprovalAction(approval.action), entity, approval.payload)

        approval.status = new_status.value
        approval.decided_by = self.principal.user_id
        approval.remarks = decision.remarks
        approval.decided_at = datetime.now(UTC)

        await db.commit()
        await db.refresh(approval)

        logger.info(
            "approvals.request_decided",
            approval_id=approval_id,
            tenant_id=self.tenant_id,
            target=target.value,
            target_id=approval.target_id,
            status=new_status.value,
            decided_by=self.principal.user_id,
        )
        return self._to_response(approval)
