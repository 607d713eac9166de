"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- Bearer JWT security scheme with per-path overrides
- The 429 response every rate-limited operation can return

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_PUBLIC_OPERATIONS = {
    ("/v1/auth/login", "post"),
    ("/v1/auth/verify-email", "post"),
    ("/v1/users", "post"),
}

_TOO_MANY_REQUESTS = {
    "description": "Rate limit exceeded. Retry after the number of seconds in Retry-After.",
    "headers": {
        "Retry-After": {"schema": {"type": "integer"}},
        "X-RateLimit-Limit": {"schema": {"type": "integer"}},
        "X-RateLimit-Remaining": {"schema": {"type": "integer"}},
        "X-RateLimit-Reset": {"schema": {"type": "integer"}},
    },
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects components.securitySchemes for bearer auth (``Authorization`` header)
    - Marks all operations as requiring a token by default, then exempts health
      endpoints and the public auth/registration operations with ``security: []``
    - Documents the 429 response on ``/v1`` operations
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "BearerAuth",
            {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Access token from POST /v1/auth/login.",
            },
        )
        schema.setdefault("security", [{"BearerAuth": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {"name": "Products", "description": "Product catalog (cached reads)."},
            {"name": "Users", "description": "Registration and account management."},
            {"name": "Auth", "description": "Login, e-mail verification, current user."},
            {"name": "Admin", "description": "Operational endpoints (admin only)."},
            {"name": "Health", "description": "Liveness and readiness checks."},
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            for method, method_obj in methods.items():
                if not isinstance(method_obj, dict):
                    continue
                if path.startswith("/health") or (path, method) in _PUBLIC_OPERATIONS:
                    method_obj["security"] = []
                if path.startswith("/v1/"):
                    method_obj.setdefault("responses", {}).setdefault("429", _TOO_MANY_REQUESTS)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
