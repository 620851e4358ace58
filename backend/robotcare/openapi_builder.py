"""Deterministic OpenAPI document for the RobotCare ticket API.

Scope:
- Auth endpoints: /iam/auth/login (POST), /iam/auth/me (GET)
- Tickets: list/create, single GET & HEAD with caching headers, the workflow
  actions and read-only sub-collections
- Team engineer projection and notification dispatch

Lifecycle schemas carry ``x-transitions`` taken from the runtime state
machines; every operation carries ``x-required-permissions``.
"""
from typing import Any, Dict, List
from robotcare.models.ticket import TicketStatus, TicketPriority, StageType, StageStatus
from robotcare.services.workflow import TICKET_FSM, STAGE_FSM
from .openapi_parts.constants import (
    ENTITIES,
    ACTION_REGISTRY,
    SUBRESOURCES,
    SORT_DETAILS,
    FILTER_PARAMS,
    READ_PERMISSION,
    CREATE_PERMISSION,
    TEAM_PERMISSION,
    DISPATCH_PERMISSION,
)
from .openapi_parts.helpers import object_schema, ref, json_body, caching_headers, error_responses

__all__ = ["build_openapi_spec"]

_STR = {"type": "string"}
_INT = {"type": "integer"}
_DT = {"type": "string", "format": "date-time", "nullable": True}


def _transitions(fsm) -> Dict[str, List[str]]:
    return {state: sorted(fsm.graph[state]) for state in fsm.states()}


def _schemas() -> Dict[str, Any]:
    ticket = object_schema({
        "id": _INT,
        "ticket_number": _STR,
        "title": _STR,
        "description": _STR,
        "status": {"type": "string", "enum": [s.value for s in TicketStatus]},
        "priority": {"type": "string", "enum": [p.value for p in TicketPriority]},
        "customer_id": _INT,
        "robot_id": _INT,
        "service_provider_id": {"type": "integer", "nullable": True},
        "created_by": _INT,
        "assigned_to": {"type": "integer", "nullable": True},
        "due_date": _DT,
        "resolved_at": _DT,
        "resolution_notes": {"type": "string", "nullable": True},
        "created_at": _DT,
        "updated_at": _DT,
        "version": _INT,
    }, ["id", "ticket_number", "title", "status", "priority", "customer_id", "robot_id"])
    ticket["x-transitions"] = _transitions(TICKET_FSM)

    stage = object_schema({
        "id": _INT,
        "ticket_id": _INT,
        "stage_type": {"type": "string", "enum": [s.value for s in StageType]},
        "content": _STR,
        "attachments": {"type": "array", "items": {"type": "object"}},
        "expected_date": _DT,
        "status": {"type": "string", "enum": [s.value for s in StageStatus]},
        "created_by": _INT,
        "updated_by": {"type": "integer", "nullable": True},
        "created_at": _DT,
        "updated_at": _DT,
        "completed_at": _DT,
    }, ["id", "ticket_id", "stage_type", "status"])
    stage["x-transitions"] = _transitions(STAGE_FSM)

    return {
        "Ticket": ticket,
        "Stage": stage,
        "Comment": object_schema({"id": _INT, "ticket_id": _INT, "content": {"type": "string", "maxLength": 500},
                                  "created_by": _INT, "created_at": _DT}, ["id", "content"]),
        "Rating": object_schema({"id": _INT, "ticket_id": _INT, "score": {"type": "integer", "minimum": 1, "maximum": 5},
                                 "comment": {"type": "string", "nullable": True}, "created_by": _INT,
                                 "created_at": _DT}, ["id", "score"]),
        "TimelineEvent": object_schema({"id": _INT, "ticket_id": {"type": "integer", "nullable": True},
                                        "robot_id": {"type": "integer", "nullable": True}, "event_type": _STR,
                                        "title": _STR, "description": _STR, "meta": {"type": "object"},
                                        "created_by": _INT, "created_at": _DT}, ["id", "event_type"]),
        "GanttSpan": object_schema({"stage_type": _STR, "title": _STR, "status": _STR,
                                    "start": {"type": "string", "format": "date"},
                                    "end": {"type": "string", "format": "date"}}, ["stage_type", "start", "end"]),
        "Engineer": object_schema({"id": _INT, "display_name": _STR, "email": _STR, "role": _STR,
                                   "current_status": {"type": "string", "enum": ["idle", "working", "busy"]},
                                   "ticket_stats": {"type": "object"},
                                   "active_tickets": {"type": "array", "items": {"type": "object"}},
                                   "is_assigned_to_current_ticket": {"type": "boolean"}}, ["id", "display_name"]),
        "TicketInput": object_schema({"robot_id": _INT, "title": _STR, "description": _STR,
                                      "priority": {"type": "string", "enum": [p.value for p in TicketPriority]},
                                      "robot_status": _STR, "due_date": _DT}, ["robot_id", "title"]),
        "StageInput": object_schema({"stage_type": {"type": "string", "enum": [s.value for s in StageType]},
                                     "content": _STR, "attachments": {"type": "array", "items": {}},
                                     "expected_date": _DT}, ["stage_type"]),
        "AssignInput": object_schema({"engineer_id": _INT}, ["engineer_id"]),
        "SummaryInput": object_schema({"summary_content": _STR}),
        "ConfirmInput": object_schema({"score": {"type": "integer", "minimum": 1, "maximum": 5},
                                       "comment": {"type": "string", "maxLength": 500}}, ["score"]),
        "CommentInput": object_schema({"content": {"type": "string", "minLength": 1, "maxLength": 500}}, ["content"]),
        "Pagination": object_schema({"total": _INT, "limit": _INT, "offset": _INT, "returned": _INT},
                                    ["total", "limit", "offset", "returned"]),
        "Error": object_schema({"error": object_schema({"status": _INT, "title": _STR, "detail": _STR, "kind": _STR,
                                                        "meta": {"type": "object"}}, ["status", "title", "detail"])},
                               ["error"]),
    }


def _error(description: str) -> Dict[str, Any]:
    return {"description": description} | json_body(ref("Error"))


def _ticket_paths(schema_name: str, prefix: str, id_param: str) -> Dict[str, Any]:
    paths: Dict[str, Any] = {}
    single = f"{prefix}/{{{id_param}}}"
    id_params = [{"name": id_param, "in": "path", "required": True, "schema": _INT}]
    list_params = [
        {"$ref": "#/components/parameters/LimitParam"},
        {"$ref": "#/components/parameters/OffsetParam"},
        {"$ref": f"#/components/parameters/{schema_name}SortParam"},
    ] + [{"name": n, "in": "query", "schema": _STR, "description": d} for n, d in FILTER_PARAMS]
    list_body = object_schema({"data": {"type": "array", "items": ref(schema_name)}, "pagination": ref("Pagination")})

    paths[prefix] = {
        "get": {
            "summary": "List tickets in scope",
            "parameters": list_params,
            "responses": {"200": {"description": "OK", "headers": caching_headers()} | json_body(list_body),
                          "304": {"description": "Not Modified"}} | error_responses("400"),
            "x-required-permissions": [READ_PERMISSION],
        },
        "head": {
            "summary": "Ticket list validators",
            "parameters": list_params,
            "responses": {"200": {"description": "Headers only", "headers": caching_headers()},
                          "304": {"description": "Not Modified"}},
            "x-required-permissions": [READ_PERMISSION],
        },
        "post": {
            "summary": "Create ticket",
            "requestBody": {"required": True} | json_body(ref("TicketInput")),
            "responses": {"201": {"description": "Created"} | json_body(ref(schema_name))}
            | error_responses("400", "403", "404"),
            "x-required-permissions": [CREATE_PERMISSION],
        },
    }
    paths[single] = {
        "get": {
            "summary": "Ticket with stages, Gantt spans, comments, rating and timeline",
            "parameters": id_params,
            "responses": {"200": {"description": "OK", "headers": caching_headers()} | json_body(ref(schema_name)),
                          "304": {"description": "Not Modified"}} | error_responses("404"),
            "x-required-permissions": [READ_PERMISSION],
        },
        "head": {
            "summary": "Ticket validators",
            "parameters": id_params,
            "responses": {"200": {"description": "Headers only", "headers": caching_headers()},
                          "304": {"description": "Not Modified"}} | error_responses("404"),
            "x-required-permissions": [READ_PERMISSION],
        },
    }
    for suffix, summary, item in SUBRESOURCES:
        paths[f"{single}/{suffix}"] = {
            "get": {
                "summary": summary,
                "parameters": id_params,
                "responses": {"200": {"description": "OK"} | json_body(
                    object_schema({"data": {"type": "array", "items": ref(item)}}))} | error_responses("404"),
                "x-required-permissions": [READ_PERMISSION],
            }
        }
    for spec in ACTION_REGISTRY:
        path = f"{single}/{spec['path']}"
        paths.setdefault(path, {})["post"] = {
            "summary": spec["summary"],
            "parameters": id_params,
            "requestBody": {"required": True} | json_body(ref(spec["request"])),
            "responses": {spec["status"]: {"description": "OK"} | json_body(ref(spec["response"]))}
            | error_responses("400", "403", "404", "409"),
            "x-required-permissions": list(spec["permissions"]),
        }
    return paths


def build_openapi_spec() -> Dict[str, Any]:
    components: Dict[str, Any] = {
        "schemas": _schemas(),
        "responses": {
            "BadRequest": _error("Bad Request"),
            "Forbidden": _error("Forbidden"),
            "NotFound": _error("Not Found"),
            "Conflict": _error("Conflict (already completed, already confirmed, concurrent write)"),
        },
        "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        "parameters": {
            "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
            "OffsetParam": {"name": "offset", "in": "query", "schema": {"type": "integer", "default": 0}},
        },
    }
    for pname, desc in SORT_DETAILS.items():
        components["parameters"][pname] = {"name": "sort", "in": "query", "schema": _STR, "description": desc}

    paths: Dict[str, Any] = {
        "/iam/auth/login": {"post": {"summary": "Login", "security": [],
                                     "responses": {"200": {"description": "JWT issued"}}}},
        "/iam/auth/me": {"get": {"summary": "Current user", "responses": {"200": {"description": "OK"}}}},
    }
    for schema_name, prefix, id_param in ENTITIES:
        paths.update(_ticket_paths(schema_name, prefix, id_param))
    paths["/tickets/notifications/dispatch"] = {
        "post": {
            "summary": "Retry pending notifications",
            "responses": {"200": {"description": "Delivery counts"}} | error_responses("403"),
            "x-required-permissions": [DISPATCH_PERMISSION],
        }
    }
    paths["/team/engineers"] = {
        "get": {
            "summary": "Engineers with workload",
            "parameters": [
                {"name": "include_stats", "in": "query", "schema": {"type": "boolean", "default": True}},
                {"name": "ticket_id", "in": "query", "schema": _INT},
            ],
            "responses": {"200": {"description": "OK"} | json_body(
                object_schema({"data": {"type": "array", "items": ref("Engineer")}}))},
            "x-required-permissions": [TEAM_PERMISSION],
        }
    }

    # Add operationIds & tags
    tag_desc: Dict[str, str] = {}
    for path, ops in paths.items():
        tag = path.split("/")[1].capitalize()
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("{", "").replace("}", "")
            od["operationId"] = f"auto_{method}_{rid}"
            od["tags"] = [tag]
        tag_desc[tag] = f"{tag} domain endpoints"

    return {
        "openapi": "3.0.3",
        "info": {"title": "RobotCare API", "version": "0.1.0"},
        "paths": paths,
        "components": components,
        "security": [{"BearerAuth": []}],
        "tags": [{"name": n, "description": d} for n, d in sorted(tag_desc.items())],
    }
