from __future__ import annotations

import sys

from fastapi.routing import APIRoute

from agency.main import app
from agency.models.enums import RoleEnum
from agency.tenancy.permissions import get_permission_matrix

API_PREFIX = "/api"

PUBLIC_PATH_PREFIXES = {
    "/docs",
    "/docs/oauth2-redirect",
    "/openapi.json",
    "/metrics",
}

PUBLIC_METHOD_ROUTES = {
    "/ping": {"GET"},
}

AUTH_DEPENDENCIES = ("get_current_user", "get_tenant_context", "require_permission")


def _is_public_route(path: str, methods: set[str]) -> bool:
    if any(path == prefix or path.startswith(prefix + "/") for prefix in PUBLIC_PATH_PREFIXES):
        return True
    allowed = PUBLIC_METHOD_ROUTES.get(path)
    if not allowed:
        return False
    normalized_methods = {method for method in methods if method not in {"HEAD", "OPTIONS"}}
    return normalized_methods.issubset(allowed)


def _dependency_labels(route: APIRoute) -> list[str]:
    labels = []
    for dep in route.dependant.dependencies:
        call = dep.call
        name = getattr(call, "__qualname__", getattr(call, "__name__", str(call)))
        labels.append(name)
    return labels


def iter_api_routes(routes=None, prefix: str = ""):
    """Yield (full_path, route) for every APIRoute, descending into mounted routers."""
    for route in app.routes if routes is None else routes:
        if isinstance(route, APIRoute):
            path = route.path if route.path.startswith(prefix) else prefix + route.path
            yield path, route
            continue
        nested = getattr(route, "routes", None)
        if nested:
            yield from iter_api_routes(nested, prefix + (getattr(route, "prefix", "") or ""))


def find_unguarded_routes() -> list[tuple[str, set[str]]]:
    issues = []
    for path, route in iter_api_routes():
        if _is_public_route(path, route.methods or set()):
            continue
        labels = _dependency_labels(route)
        if not any(dep in label for label in labels for dep in AUTH_DEPENDENCIES):
            issues.append((path, route.methods))
    return issues


def print_matrix() -> None:
    roles = [role.value for role in RoleEnum]
    print("permission".ljust(32) + "".join(role.ljust(8) for role in roles))
    for group in get_permission_matrix():
        print(f"[{group['category']}]")
        for row in group["permissions"]:
            marks = "".join(("yes" if row[role] else "-").ljust(8) for role in roles)
            print(f"  {row['key']}".ljust(32) + marks)


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if "--matrix" in argv:
        print_matrix()

    api_paths = [path for path, _ in iter_api_routes() if path.startswith(API_PREFIX + "/")]
    if not api_paths:
        print(f"RBAC audit: no routes found under {API_PREFIX}; router layout not recognised")
        return 1

    issues = find_unguarded_routes()
    if issues:
        print("RBAC audit: endpoints missing actor/tenant dependencies")
        for path, methods in issues:
            print(f"- {sorted(methods)} {path}")
        return 1

    print("RBAC audit: no missing auth dependencies detected.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
