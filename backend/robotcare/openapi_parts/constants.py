"""Registries for the OpenAPI builder. Output ordering follows list order."""
from typing import Dict, List, Tuple
from robotcare.constants.permissions import (
    TKT_READ, TKT_CREATE, TKT_COMMENT, TKT_STAGE_WRITE, TKT_ASSIGN,
    TKT_SUMMARY_COMPLETE, TKT_CONFIRM, TEAM_READ, NOTIFY_DISPATCH,
)

# (SchemaName, path prefix, id param)
ENTITIES: List[Tuple[str, str, str]] = [
    ("Ticket", "/tickets", "ticket_id"),
]

# State-changing endpoints under a single ticket: (suffix, summary, permissions, request schema, status code)
ACTION_REGISTRY: List[Dict[str, object]] = [
    {"path": "stages", "summary": "Create or update a stage", "permissions": [TKT_STAGE_WRITE, TKT_CONFIRM],
     "request": "StageInput", "response": "Stage", "status": "200"},
    {"path": "assign", "summary": "Assign engineer", "permissions": [TKT_ASSIGN],
     "request": "AssignInput", "response": "Ticket", "status": "200"},
    {"path": "stages/summary/complete", "summary": "Complete summary stage", "permissions": [TKT_SUMMARY_COMPLETE],
     "request": "SummaryInput", "response": "Stage", "status": "200"},
    {"path": "confirm", "summary": "Customer confirmation with rating", "permissions": [TKT_CONFIRM],
     "request": "ConfirmInput", "response": "Rating", "status": "201"},
    {"path": "comments", "summary": "Add comment", "permissions": [TKT_COMMENT],
     "request": "CommentInput", "response": "Comment", "status": "201"},
]

# Read-only sub-collections of a ticket: (suffix, summary, item schema)
SUBRESOURCES: List[Tuple[str, str, str]] = [
    ("stages", "Stages with Gantt spans", "Stage"),
    ("comments", "Comments, oldest first", "Comment"),
    ("timeline", "Timeline events, newest first", "TimelineEvent"),
]

SORT_DETAILS: Dict[str, str] = {
    "TicketSortParam": "Comma separated; prefix '-' for desc. Fields: created_at, updated_at, priority, status, ticket_number, due_date, id",
}

FILTER_PARAMS: List[Tuple[str, str]] = [
    ("status", "Ticket status"),
    ("priority", "Ticket priority"),
    ("customer_id", "Customer organization id"),
    ("robot_id", "Robot id"),
    ("assigned_to", "Engineer user id or 'none'"),
    ("search", "Case-insensitive match on number, title, description"),
]

READ_PERMISSION = TKT_READ
CREATE_PERMISSION = TKT_CREATE
TEAM_PERMISSION = TEAM_READ
DISPATCH_PERMISSION = NOTIFY_DISPATCH
