"""
Authorization policies evaluated against a decoded claim set.

Two kinds of policy:

  - AccountStatusPolicy(claim_type, expected_value): the claim must be
    present and equal expected_value, ignoring case. Used for the
    verified/active/logged-in flags.
  - RolePolicy(allowed_roles): at least one role claim must match an allowed
    role, ignoring case.

A missing claim is a failed evaluation, not an error. evaluate() never raises;
it answers True or False and the request layer decides what a "no" means
(see userauth.dependencies.require_policy).
"""

from dataclasses import dataclass

from userauth import claims
from userauth.claims import ClaimSet
from userauth.models.role import CoreRole


# Policy names
REQUIRE_VERIFIED_USER = "RequireVerifiedUser"
REQUIRE_ACTIVE_USER = "RequireActiveUser"
REQUIRE_LOGGED_IN_USER = "RequireLoggedInUser"
REQUIRE_ADMIN_ONLY = "RequireAdminOnly"
REQUIRE_SUPER_ADMIN_ONLY = "RequireSuperAdminOnly"


@dataclass(frozen=True)
class AccountStatusPolicy:
    claim_type: str
    expected_value: str

    def evaluate(self, claim_set: ClaimSet) -> bool:
        value = claim_set.find(self.claim_type)
        if not value:
            return False
        return value.casefold() == self.expected_value.casefold()


@dataclass(frozen=True)
class RolePolicy:
    allowed_roles: frozenset[str]

    def evaluate(self, claim_set: ClaimSet) -> bool:
        allowed = {role.casefold() for role in self.allowed_roles}
        return any(role and role.casefold() in allowed for role in claim_set.roles)


Policy = AccountStatusPolicy | RolePolicy


POLICIES: dict[str, Policy] = {
    REQUIRE_VERIFIED_USER: AccountStatusPolicy(claims.IS_VERIFIED, "true"),
    REQUIRE_ACTIVE_USER: AccountStatusPolicy(claims.IS_ACTIVE, "true"),
    REQUIRE_LOGGED_IN_USER: AccountStatusPolicy(claims.IS_LOGGED_IN, "true"),
    REQUIRE_ADMIN_ONLY: RolePolicy(frozenset({CoreRole.ADMIN.value, CoreRole.SUPER_ADMIN.value})),
    REQUIRE_SUPER_ADMIN_ONLY: RolePolicy(frozenset({CoreRole.SUPER_ADMIN.value})),
}


def evaluate(policy_name: str, claim_set: ClaimSet) -> bool:
    """Evaluate a named policy. Unknown names deny."""
    policy = POLICIES.get(policy_name)
    if policy is None:
        return False
    return policy.evaluate(claim_set)
