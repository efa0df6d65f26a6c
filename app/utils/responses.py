from flask import jsonify
from flask_login import current_user


def success_response(data=None, status=200):
    """Wrap a payload in the success envelope"""
    return jsonify({"success": True, "data": data}), status


def optional_user_id():
    """Id of the authenticated caller, or None for anonymous requests"""
    if current_user.is_authenticated:
        return current_user.id
    return None
