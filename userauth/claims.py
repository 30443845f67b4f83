"""
Typed claim set carried by access tokens.

Token payload layout:

    {
      "sub": "<user id>",  "username": "...",  "email": "...",
      "jti": "<uuid>",     "iat": 1700000000,  "exp": 1700086400,
      "iss": "...",        "aud": "...",
      "auth_provider": "Local",
      "role": ["Visitor"],                          # one entry per role name
      "permissions": "[\"articles:read\", ...]",    # JSON array inside one string
      "is_verified": true, "is_active": true, "is_logged_in": false
    }

Permissions are packed into a single string claim so a role with many
permissions does not multiply the number of claims in the token.

ClaimSet is what the policy evaluator sees. It is a snapshot taken when the
token was issued; role changes show up only after a new token is issued.
"""

import json
from dataclasses import dataclass, field


# Claim names
SUBJECT = "sub"
USERNAME = "username"
EMAIL = "email"
TOKEN_ID = "jti"
ISSUED_AT = "iat"
EXPIRES_AT = "exp"
AUTH_PROVIDER = "auth_provider"
ROLE = "role"
PERMISSIONS = "permissions"
IS_VERIFIED = "is_verified"
IS_ACTIVE = "is_active"
IS_LOGGED_IN = "is_logged_in"

STATUS_CLAIMS = (IS_VERIFIED, IS_ACTIVE, IS_LOGGED_IN)


def _as_bool(value) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return None


def _as_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"role claim must be a string or a list, got {type(value).__name__}")
    return [str(item) for item in value]


def _parse_permissions(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item) for item in value]
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError):
        return []
    if not isinstance(decoded, list):
        return []
    return [str(item) for item in decoded]


@dataclass(frozen=True)
class ClaimSet:
    subject: str
    username: str | None = None
    email: str | None = None
    token_id: str | None = None
    issued_at: int | None = None
    expires_at: int | None = None
    auth_provider: str | None = None
    roles: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)
    status: dict[str, bool] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "ClaimSet":
        status = {}
        for name in STATUS_CLAIMS:
            flag = _as_bool(payload.get(name))
            if flag is not None:
                status[name] = flag

        return cls(
            subject=str(payload[SUBJECT]),
            username=payload.get(USERNAME),
            email=payload.get(EMAIL),
            token_id=payload.get(TOKEN_ID),
            issued_at=payload.get(ISSUED_AT),
            expires_at=payload.get(EXPIRES_AT),
            auth_provider=payload.get(AUTH_PROVIDER),
            roles=_as_list(payload.get(ROLE)),
            permissions=_parse_permissions(payload.get(PERMISSIONS)),
            status=status,
        )

    def find(self, claim_type: str) -> str | None:
        """
        String value of the first claim of this type, or None when absent.

        Booleans render as "true"/"false", matching how they compare against
        account-status policy values.
        """
        if claim_type in STATUS_CLAIMS:
            if claim_type not in self.status:
                return None
            return "true" if self.status[claim_type] else "false"
        if claim_type == ROLE:
            return self.roles[0] if self.roles else None
        scalar = {
            SUBJECT: self.subject,
            USERNAME: self.username,
            EMAIL: self.email,
            TOKEN_ID: self.token_id,
            AUTH_PROVIDER: self.auth_provider,
        }.get(claim_type)
        return str(scalar) if scalar is not None else None

    def has_permission(self, resource: str, action: str) -> bool:
        return f"{resource}:{action}" in self.permissions
