CUSTOMER = "CUSTOMER"
ADMIN = "ADMIN"
SUPER_ADMIN = "SUPER_ADMIN"

ALLOWED_DISPLAY_ROLES = {SUPER_ADMIN, ADMIN, CUSTOMER}
# may override customer-only booking rules (cancellation window, completion)
OPERATOR_ROLES = {ADMIN, SUPER_ADMIN}


def filter_role_names(roles):
    names = []
    for role in roles or []:
        name = role if isinstance(role, str) else getattr(role, "name", None)
        if name in ALLOWED_DISPLAY_ROLES:
            names.append(name)
    return names


def is_operator_role(role) -> bool:
    if isinstance(role, str):
        return role.upper() in OPERATOR_ROLES
    return any(name in OPERATOR_ROLES for name in filter_role_names(role))


def actor_role(user) -> str:
    names = set(filter_role_names(getattr(user, "roles", None)))
    if SUPER_ADMIN in names:
        return SUPER_ADMIN
    if ADMIN in names:
        return ADMIN
    return CUSTOMER
