from flask import Blueprint, request, current_app
from robotcare import get_db
from robotcare.constants.permissions import TEAM_READ
from robotcare.decorators.auth import require_permissions
from robotcare.errors import ValidationError
from robotcare.services.policy import current_actor
from robotcare.services.team import list_engineers

team_bp = Blueprint('team', __name__)


@team_bp.get('/engineers')
@require_permissions(TEAM_READ)
def engineers():
    include_stats = request.args.get('include_stats', 'true').lower() not in ('0', 'false', 'no')
    ticket_id = request.args.get('ticket_id')
    if ticket_id is not None:
        try:
            ticket_id = int(ticket_id)
        except ValueError:
            raise ValidationError('ticket_id must be an integer')
    rows = list_engineers(
        get_db(), current_actor(),
        include_stats=include_stats,
        ticket_id=ticket_id,
        busy_threshold=int(current_app.config.get('ENGINEER_BUSY_THRESHOLD', 3)),
    )
    return {'data': rows}
