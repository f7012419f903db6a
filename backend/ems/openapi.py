"""Minimal deterministic OpenAPI description of the ticketing API.

Schemas stay shallow (ids, enums, lifecycle metadata); paths are generated
from the registries below so the document follows the routes that exist.
"""
from typing import Any, Dict, List, Optional, Tuple

from ems.constants.roles import ALL_PRIORITIES, ALL_ROLES, ALL_STATUSES, ROLE_ADMIN, ROLE_BRANCH_MANAGER, ROLE_TECHNICIAN
from ems.forms.fields import FieldType, Section
from ems.utils.fsm import REPORT_FSM

__all__ = ["build_openapi_spec"]

# (action, summary, roles); empty roles = any authenticated user
REPORT_ACTIONS: List[Tuple[str, str, List[str]]] = [
    ("assign", "Assign technician", [ROLE_ADMIN]),
    ("start", "Confirm arrival / resume work", [ROLE_TECHNICIAN]),
    ("request-parts", "Request spare parts", [ROLE_TECHNICIAN]),
    ("complete", "Submit repair closeout", [ROLE_TECHNICIAN]),
    ("close", "Confirm and close", [ROLE_ADMIN]),
    ("comments", "Add comment", []),
]

CONFIG_PATHS: List[Tuple[str, str, str, List[str]]] = [
    ("/config", "get", "Current system config", []),
    ("/config/{section}/fields", "post", "Add field", [ROLE_ADMIN]),
    ("/config/{section}/fields/{field_id}", "patch", "Update field", [ROLE_ADMIN]),
    ("/config/{section}/fields/{field_id}", "delete", "Remove field (idempotent)", [ROLE_ADMIN]),
    ("/config/{section}/reorder", "post", "Move one field", [ROLE_ADMIN]),
    ("/config/{section}/form", "get", "Rendered form widgets", []),
    ("/config/features/{name}", "put", "Toggle feature flag", [ROLE_ADMIN]),
    ("/config/keywords", "put", "Replace priority keywords", [ROLE_ADMIN]),
    ("/config/classify", "post", "Classify free text", []),
]

# roles None: no token required
DIRECTORY_PATHS: List[Tuple[str, str, str, Optional[List[str]]]] = [
    ("/directory/session", "post", "Issue access token for a role", None),
    ("/directory/me", "get", "Identity behind the token", []),
    ("/directory/branches", "get", "List branches", []),
    ("/directory/users", "get", "List users", [ROLE_ADMIN]),
    ("/inventory/parts", "get", "List spare parts", []),
    ("/inventory/parts", "post", "Create or update spare part", [ROLE_ADMIN]),
    ("/inventory/parts/{part_id}", "delete", "Delete spare part", [ROLE_ADMIN]),
]


def caching_headers() -> Dict[str, Any]:
    return {
        "ETag": {"schema": {"type": "string"}},
        "Last-Modified": {"schema": {"type": "string"}},
        "X-Last-Modified-ISO": {"schema": {"type": "string"}},
    }


def _op(summary: str, roles, status: str = "200") -> Dict[str, Any]:
    od: Dict[str, Any] = {"summary": summary, "responses": {status: {"description": "OK"}}}
    if roles is None:
        od["security"] = []
    elif roles:
        od["x-required-roles"] = list(roles)
    return od


def _report_transitions() -> List[str]:
    ordered = []
    for src, targets in REPORT_FSM.graph.items():
        for s in [src] + sorted(targets):
            if s not in ordered:
                ordered.append(s)
    return ordered


def build_openapi_spec() -> Dict[str, Any]:
    schemas: Dict[str, Any] = {
        "Report": {
            "type": "object",
            "properties": {
                "id": {"type": "string"},
                "status": {"type": "string", "enum": list(ALL_STATUSES)},
                "priority": {"type": "string", "enum": list(ALL_PRIORITIES)},
            },
            "required": ["id"],
            "x-transitions": _report_transitions(),
            "x-transition-graph": {k: sorted(v) for k, v in REPORT_FSM.graph.items()},
        },
        "DynamicField": {
            "type": "object",
            "properties": {
                "id": {"type": "string"},
                "labelAr": {"type": "string"},
                "type": {"type": "string", "enum": [t.value for t in FieldType]},
                "required": {"type": "boolean"},
                "options": {"type": "array", "items": {"type": "string"}},
                "order": {"type": "integer"},
            },
            "required": ["id", "labelAr", "type"],
        },
        "SparePart": {"type": "object", "properties": {"id": {"type": "string"}}, "required": ["id"]},
        "Pagination": {
            "type": "object",
            "properties": {
                "total": {"type": "integer"},
                "limit": {"type": "integer"},
                "offset": {"type": "integer"},
                "returned": {"type": "integer"},
            },
            "required": ["total", "limit", "offset", "returned"],
        },
        "Error": {
            "type": "object",
            "properties": {"error": {"type": "object", "properties": {
                "status": {"type": "integer"}, "title": {"type": "string"}, "detail": {"type": "string"},
            }}},
            "required": ["error"],
        },
    }

    paths: Dict[str, Any] = {}

    def put(path, method, od):
        paths.setdefault(path, {})[method] = od

    list_op = _op("List reports (role scoped)", [])
    list_op["parameters"] = [
        {"$ref": "#/components/parameters/LimitParam"},
        {"$ref": "#/components/parameters/OffsetParam"},
        {"name": "sort", "in": "query", "schema": {"type": "string"}},
        {"name": "status", "in": "query", "schema": {"type": "string", "enum": list(ALL_STATUSES)}},
        {"name": "priority", "in": "query", "schema": {"type": "string", "enum": list(ALL_PRIORITIES)}},
        {"name": "branch_id", "in": "query", "schema": {"type": "string"}},
    ]
    list_op["responses"]["200"]["headers"] = caching_headers()
    put("/reports", "get", list_op)
    put("/reports", "post", _op("Create report from intake values", [ROLE_BRANCH_MANAGER, ROLE_ADMIN], "201"))
    put("/reports/summary", "get", _op("Report counts per status", []))
    put("/reports/{report_id}", "get", _op("Get report", []))
    put("/reports/{report_id}", "patch", _op("Forced edit", [ROLE_ADMIN]))
    put("/reports/{report_id}", "put", _op("Idempotent upsert (offline replay)", [ROLE_TECHNICIAN, ROLE_ADMIN]))
    for action, summary, roles in REPORT_ACTIONS:
        put(f"/reports/{{report_id}}/{action}", "post", _op(summary, roles))
    for path, method, summary, roles in CONFIG_PATHS + DIRECTORY_PATHS:
        put(path, method, _op(summary, roles))

    tags = set()
    for path, ops in paths.items():
        tag = path.split("/")[1].capitalize()
        tags.add(tag)
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("{", "").replace("}", "").replace("-", "_")
            od["operationId"] = f"{method}_{rid}"
            od["tags"] = [tag]

    return {
        "openapi": "3.0.3",
        "info": {"title": "Branch Maintenance API", "version": "0.1.0"},
        "paths": paths,
        "components": {
            "schemas": schemas,
            "parameters": {
                "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
                "OffsetParam": {"name": "offset", "in": "query", "schema": {"type": "integer", "default": 0}},
                "Section": {"name": "section", "in": "path", "required": True,
                            "schema": {"type": "string", "enum": [s.value for s in Section]}},
            },
            "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
            "x-roles": list(ALL_ROLES),
        },
        "security": [{"BearerAuth": []}],
        "tags": [{"name": t, "description": f"{t} endpoints"} for t in sorted(tags)],
    }
