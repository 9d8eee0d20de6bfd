# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for role and ownership checks.

This module contains pure functions deciding whether a principal may perform
a workflow operation. Identity itself is resolved upstream; these checks only
look at the principal's role and at ownership fields on the target entity.
"""

from typing import List, Optional
from dataclasses import dataclass
from models.entities import UserContext, Report, Animal, Adoption, MedicalRecord
from models.enums import UserRole


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None
    missing_roles: List[str] = None

    def __post_init__(self):
        if self.missing_roles is None:
            self.missing_roles = []


ALLOWED = AuthorizationResult(allowed=True)


def check_role(user_context: UserContext, *roles: UserRole) -> AuthorizationResult:
    """
    Check if the principal holds one of the given roles.

    Args:
        user_context: Principal context
        roles: Accepted roles

    Returns:
        AuthorizationResult indicating if the role is accepted
    """
    if user_context.has_role(*roles):
        return AuthorizationResult(allowed=True)

    names = [role.value for role in roles]
    return AuthorizationResult(
        allowed=False,
        reason=f"Requires role: {', '.join(names)}",
        missing_roles=names
    )


def check_ownership(user_context: UserContext, owner_id: Optional[str], resource: str) -> AuthorizationResult:
    """
    Check if the principal owns a resource or is an administrator.

    Args:
        user_context: Principal context
        owner_id: Owner identity stored on the resource
        resource: Resource label used in the denial reason

    Returns:
        AuthorizationResult indicating if access is granted
    """
    if user_context.is_admin() or (owner_id is not None and user_context.user_id == owner_id):
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason=f"Not authorized to modify this {resource}"
    )


def can_transition_report(user_context: UserContext, report: Report) -> AuthorizationResult:
    """
    Administrators may move any report; organizations may move unassigned
    reports and the ones assigned to them.
    """
    if user_context.is_admin():
        return ALLOWED

    role_check = check_role(user_context, UserRole.ORGANIZATION, UserRole.ADMIN)
    if not role_check.allowed:
        return role_check

    if report.organization_id is None or report.organization_id == user_context.user_id:
        return ALLOWED

    return AuthorizationResult(
        allowed=False,
        reason="Report is assigned to another organization"
    )


def can_create_animal(user_context: UserContext) -> AuthorizationResult:
    return check_role(user_context, UserRole.ORGANIZATION, UserRole.ADMIN)


def can_modify_animal(user_context: UserContext, animal: Animal) -> AuthorizationResult:
    return check_ownership(user_context, animal.organization_id, "animal")


def can_submit_adoption(user_context: UserContext) -> AuthorizationResult:
    return check_role(user_context, UserRole.USER)


def can_review_adoption(user_context: UserContext, adoption: Adoption) -> AuthorizationResult:
    return check_ownership(user_context, adoption.organization_id, "adoption")


def can_cancel_adoption(user_context: UserContext, adoption: Adoption) -> AuthorizationResult:
    """Only the adopter may withdraw their own application."""
    if user_context.user_id == adoption.adopter_id:
        return ALLOWED

    return AuthorizationResult(
        allowed=False,
        reason="Only the adopter can cancel this application"
    )


def can_create_medical_record(user_context: UserContext) -> AuthorizationResult:
    return check_role(user_context, UserRole.VETERINARY)


def can_update_medical_record(user_context: UserContext, record: MedicalRecord) -> AuthorizationResult:
    return check_ownership(user_context, record.veterinary_id, "medical record")


def can_access_notification(user_context: UserContext, owner_id: str) -> AuthorizationResult:
    """Mailboxes are private; administrators get no exception here."""
    if user_context.user_id == owner_id:
        return ALLOWED

    return AuthorizationResult(
        allowed=False,
        reason="Not authorized to access this notification"
    )


def can_view_capacity(user_context: UserContext, organization_id: str) -> AuthorizationResult:
    """Organizations see their own counters; administrators see all."""
    if user_context.is_admin() or user_context.user_id == organization_id:
        return ALLOWED

    return AuthorizationResult(
        allowed=False,
        reason="Not authorized to view this organization's capacity"
    )
