from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from agency.core.db import get_db
from agency.crud.audit import AuditAction, AuditRecorder, EntityType
from agency.crud.memberships import (
    LastOwnerError,
    accept_invitation,
    change_member_role,
    invite_member,
    list_memberships,
    remove_member,
)
from agency.models.users import User
from agency.schemas.memberships import MemberInvite, MemberRoleUpdate, MembershipRead
from agency.tenancy.context import TenantContext
from agency.tenancy.dependencies import get_audit_recorder, get_current_user, get_tenant_context

router = APIRouter(prefix="/members", tags=["members"])


@router.get("", response_model=List[MembershipRead])
def read_members(db=Depends(get_db), ctx: TenantContext = Depends(get_tenant_context)):
    return list_memberships(db, ctx)


@router.post("", response_model=MembershipRead, status_code=status.HTTP_201_CREATED)
def invite(
    payload: MemberInvite,
    request: Request,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    try:
        membership = invite_member(db, ctx, payload.user_id, payload.role)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.record(
        ctx,
        AuditAction.MEMBER_INVITED,
        EntityType.MEMBER,
        membership.id,
        new_values={"user_id": payload.user_id, "role": payload.role.value},
        request=request,
    )
    return membership


@router.post("/accept/{tenant_id}", response_model=MembershipRead)
def accept(
    tenant_id: int,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    membership = accept_invitation(db, tenant_id, current_user.id)
    audit.record_system(
        tenant_id,
        AuditAction.MEMBER_ACCEPTED,
        EntityType.MEMBER,
        membership.id,
        metadata={"user_id": current_user.id},
    )
    return membership


@router.patch("/{membership_id}", response_model=MembershipRead)
def update_role(
    membership_id: int,
    payload: MemberRoleUpdate,
    request: Request,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    try:
        membership, previous_role = change_member_role(db, ctx, membership_id, payload.role)
    except LastOwnerError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.record(
        ctx,
        AuditAction.MEMBER_ROLE_CHANGED,
        EntityType.MEMBER,
        membership.id,
        old_values={"role": previous_role.value},
        new_values={"role": payload.role.value},
        request=request,
    )
    return membership


@router.delete("/{membership_id}", response_model=MembershipRead)
def remove(
    membership_id: int,
    request: Request,
    db=Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    try:
        membership = remove_member(db, ctx, membership_id)
    except LastOwnerError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.record(
        ctx,
        AuditAction.MEMBER_REMOVED,
        EntityType.MEMBER,
        membership.id,
        old_values={"user_id": membership.user_id},
        request=request,
    )
    return membership
