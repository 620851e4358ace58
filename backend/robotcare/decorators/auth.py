from functools import wraps
from flask_jwt_extended import verify_jwt_in_request
from robotcare.errors import Forbidden
from robotcare.services.policy import has_permissions


def require_permissions(*codes: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not has_permissions(*codes):
                raise Forbidden('Missing permission', meta={'required': list(codes)})
            return fn(*args, **kwargs)
        wrapper.required_permissions = codes
        return wrapper
    return outer
