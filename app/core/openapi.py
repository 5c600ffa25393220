"""OpenAPI customization.

Documents the two header credentials the service understands:
- ``API_KEY``: optional client access token selecting a token rate limit
- ``X-Admin-Key``: operator key required on /admin endpoints
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.core.config import settings

_TAGS = [
    {"name": "API", "description": "Rate limited endpoints."},
    {"name": "Rate limit", "description": "Non-counting status of the caller's limit."},
    {"name": "Admin", "description": "Operator reset and inspection of any key."},
    {"name": "Health", "description": "Liveness and readiness checks."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and security schemes."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "AccessToken",
            {
                "type": "apiKey",
                "in": "header",
                "name": settings.app.token_header,
                "description": "Optional access token; configured tokens get their own limit.",
            },
        )
        security_schemes.setdefault(
            "AdminKey",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-Admin-Key",
                "description": "Operator key for /admin endpoints.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing = {t.get("name") for t in tags}
        tags.extend(t for t in _TAGS if t["name"] not in existing)

        for path, methods in schema.get("paths", {}).items():
            if path.startswith("/admin/"):
                requirement = [{"AdminKey": []}]
            elif path.startswith("/api/"):
                # Token is optional: anonymous callers fall back to the IP limit.
                requirement = [{}, {"AccessToken": []}]
            else:
                requirement = []
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = requirement

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
