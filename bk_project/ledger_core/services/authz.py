"""
Authorization for ledger documents.

Every role check goes through one capability table keyed by
``(role, action)``; the value is the set of statuses the action may start
from. ``authorize`` is the single entry point the workflow calls.
"""
from collections import deque
from dataclasses import dataclass
from typing import FrozenSet

from ..exceptions import ForbiddenError, NotFoundError
from ..models import EntityMembership, EntryStatus

OWNER = EntityMembership.OWNER
ADMIN = EntityMembership.ADMIN
MANAGER = EntityMembership.MANAGER
ACCOUNTANT = EntityMembership.ACCOUNTANT
USER = EntityMembership.USER

SUBMIT = "submit"
VERIFY = "verify"
REJECT = "reject"
RETRIEVE = "retrieve"
APPROVE = "approve"
EDIT = "edit"
DELETE = "delete"

# action -> resulting status (edit/delete do not move the status)
TRANSITIONS = {
    SUBMIT: EntryStatus.PENDING_VERIFICATION,
    VERIFY: EntryStatus.VERIFIED,
    REJECT: EntryStatus.REJECTED,
    RETRIEVE: EntryStatus.DRAFT,
    APPROVE: EntryStatus.APPROVED,
}

_OPEN = frozenset({EntryStatus.DRAFT, EntryStatus.REJECTED})
_IN_REVIEW = frozenset({
    EntryStatus.PENDING_VERIFICATION,
    EntryStatus.VERIFIED,
    EntryStatus.PENDING_APPROVAL,
})
_APPROVABLE = frozenset({EntryStatus.VERIFIED, EntryStatus.PENDING_APPROVAL})
_NOT_APPROVED = frozenset(
    s for s in EntryStatus.values if s != EntryStatus.APPROVED
)

# (role, action) -> statuses the action is allowed from
CAPABILITIES = {
    (ACCOUNTANT, SUBMIT): _OPEN,
    (OWNER, SUBMIT): _OPEN,
    (ADMIN, SUBMIT): _OPEN,

    (MANAGER, VERIFY): frozenset({EntryStatus.PENDING_VERIFICATION}),
    (OWNER, VERIFY): frozenset({EntryStatus.PENDING_VERIFICATION}),
    (ADMIN, VERIFY): frozenset({EntryStatus.PENDING_VERIFICATION}),

    (MANAGER, REJECT): _IN_REVIEW,
    (OWNER, REJECT): _IN_REVIEW,
    (ADMIN, REJECT): _IN_REVIEW,

    (ACCOUNTANT, RETRIEVE): frozenset({EntryStatus.REJECTED}),
    (OWNER, RETRIEVE): frozenset({EntryStatus.REJECTED}),

    (OWNER, APPROVE): _APPROVABLE,
    (ADMIN, APPROVE): _APPROVABLE,

    (OWNER, EDIT): _NOT_APPROVED,
    (ACCOUNTANT, EDIT): _OPEN,

    (OWNER, DELETE): _OPEN,
    (ACCOUNTANT, DELETE): _OPEN,
}

# Creators with these roles skip DRAFT
DIRECT_SUBMIT_ROLES = frozenset({ACCOUNTANT, OWNER, ADMIN})
# Roles allowed to date documents in the future and to override overdraft
PRIVILEGED_ROLES = frozenset({OWNER, ADMIN})


@dataclass(frozen=True)
class ActorContext:
    """
    Identity handed to the ledger by the outer auth layer.
    The core never authenticates; it only checks roles.
    """
    user: object
    company: object
    roles: FrozenSet[str]

    @property
    def user_id(self):
        return getattr(self.user, "pk", None)

    def has_any(self, roles) -> bool:
        return bool(self.roles & frozenset(roles))

    @property
    def is_privileged(self) -> bool:
        return self.has_any(PRIVILEGED_ROLES)


def resolve_actor(user, company) -> ActorContext:
    """Build the actor context from the user's active membership."""
    membership = (
        EntityMembership.objects.filter(
            user=user, company=company, is_active=True
        ).first()
    )
    if membership is None:
        raise ForbiddenError(f"User {user} is not a member of {company}.")
    return ActorContext(
        user=user, company=company, roles=frozenset({membership.role})
    )


def can(actor: ActorContext, action: str, status: str) -> bool:
    # A caller holding several roles passes if any of them grants the action
    return any(
        status in CAPABILITIES.get((role, action), ())
        for role in actor.roles
    )


def authorize(actor: ActorContext, action: str, status: str) -> None:
    """Raise ForbiddenError unless the actor may perform ``action`` now."""
    if not can(actor, action, status):
        roles = ", ".join(sorted(actor.roles)) or "no role"
        raise ForbiddenError(
            f"{roles} cannot {action} a document in status {status}."
        )


def ensure_same_company(actor: ActorContext, company_id) -> None:
    # Foreign tenants get a 404, not a 403, so ids do not leak
    if actor.company is None or actor.company.pk != company_id:
        raise NotFoundError("Document not found in this company.")


def subordinate_user_ids(membership) -> set:
    """
    User ids of everyone reporting to ``membership``, directly or not.
    Walks the manager hierarchy breadth-first; the seen set makes an
    accidental cycle terminate.
    """
    seen = {membership.pk}
    result = set()
    queue = deque([membership.pk])
    while queue:
        manager_id = queue.popleft()
        reports = EntityMembership.objects.filter(
            company_id=membership.company_id, manager_id=manager_id
        ).values_list("pk", "user_id")
        for pk, user_id in reports:
            if pk in seen:
                continue
            seen.add(pk)
            result.add(user_id)
            queue.append(pk)
    return result
