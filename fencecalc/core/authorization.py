from enum import Enum

from fastapi import Depends, HTTPException, Request

from fencecalc.deps.auth import require_auth


class Role(Enum):
    VIEWER = "VIEWER"
    ESTIMATOR = "ESTIMATOR"
    ADMIN = "ADMIN"


_RANK = {
    Role.VIEWER: 1,
    Role.ESTIMATOR: 2,
    Role.ADMIN: 3,
}

# tokens issued without a role claim
DEFAULT_ROLE = Role.ESTIMATOR


def require_role(role: Role):
    def dependency(request: Request, _auth: tuple[str, int] = Depends(require_auth)):
        claim_role = request.state.claims.get("role") or DEFAULT_ROLE.value

        try:
            user_role = Role(str(claim_role).upper())
        except ValueError as exc:
            raise HTTPException(status_code=403, detail="Invalid role claim") from exc

        if _RANK[user_role] < _RANK[role]:
            raise HTTPException(status_code=403, detail="Insufficient role")

        request.state.role = user_role.value
        return user_role

    return dependency
