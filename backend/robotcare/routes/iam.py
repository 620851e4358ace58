from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from sqlalchemy import select
from robotcare import get_db
from robotcare.models.authz import User
from robotcare.services.policy import claims_for
from robotcare.utils.clock import utcnow, isoformat

iam_bp = Blueprint('iam', __name__)


@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not user.verify_password(password):
        abort(401, description='invalid credentials')
    if user.status != User.STATUS_ACTIVE:
        abort(403, description=f'account {user.status}')
    user.last_login_at = utcnow()
    session.commit()
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=claims_for(user))
    return {'access_token': token}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    # Identity stored as string, cast back to int for DB lookup
    user_id = int(get_jwt_identity())
    session = get_db()
    user = session.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    claims = claims_for(user)
    return {
        'id': user.id,
        'display_name': user.display_name,
        'email': user.email,
        'org_id': user.org_id,
        'role': claims['role'],
        'capability': claims['capability'],
        'perms': claims['perms'],
        'status': user.status,
        'last_login_at': isoformat(user.last_login_at),
    }
