# Overview: Flask API routes for user accounts; creation, profile edits and category migration.

# backend/storefront/routes/users.py
"""
User console routes.

Provides endpoints for:
- Account listing, creation, profile update and deletion
- Customer -> franchise upgrade and franchise -> customer revert
- Login / logout activity flags
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import identity_service
from ..services.identity_service import (
    DuplicateEmailError,
    AllocationError,
    InvalidCategoryTransitionError,
    MissingLineageError,
    UserNotFoundError,
)
from ..services.document_store import PersistenceError

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _unavailable(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Storage unavailable"}), 503


@users_bp.get("")
def list_users_route():
    """
    List users.

    Query params:
    - category: "customer" | "franchise" (optional)
    """
    category = request.args.get("category")
    try:
        users = identity_service.list_users(category)
    except PersistenceError:
        return _unavailable("Failed to list users")
    return jsonify({"users": users, "count": len(users)}), 200


@users_bp.post("")
def create_user_route():
    """Create a customer account. Returns the allocated id."""
    data = request.get_json() or {}
    try:
        user_id = identity_service.create_user(data)
        return jsonify({"userId": user_id}), 201
    except DuplicateEmailError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except AllocationError:
        return _unavailable("Failed to allocate user id")
    except PersistenceError:
        return _unavailable("Failed to create user")


@users_bp.get("/<user_id>")
def get_user_route(user_id: str):
    try:
        user = identity_service.get_user_by_id(user_id)
    except PersistenceError:
        return _unavailable("Failed to load user")
    if not user:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"user": user}), 200


@users_bp.patch("/<user_id>")
def update_user_route(user_id: str):
    data = request.get_json() or {}
    try:
        user = identity_service.update_user(user_id, data)
        return jsonify({"user": user}), 200
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except DuplicateEmailError as e:
        return jsonify({"error": str(e)}), 409
    except PersistenceError:
        return _unavailable("Failed to update user")


@users_bp.delete("/<user_id>")
def delete_user_route(user_id: str):
    try:
        identity_service.delete_user(user_id)
        return jsonify({"deleted": user_id}), 200
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PersistenceError:
        return _unavailable("Failed to delete user")


@users_bp.post("/<user_id>/upgrade")
def upgrade_user_route(user_id: str):
    """
    Upgrade a customer to franchise.

    The account moves to a franchise id; the customer id stops existing.
    """
    try:
        franchise_id = identity_service.upgrade_to_franchise(user_id)
        return jsonify({"userId": franchise_id, "previousId": user_id}), 200
    except InvalidCategoryTransitionError as e:
        return jsonify({"error": str(e)}), 400
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except AllocationError:
        return _unavailable("Failed to allocate franchise id")
    except PersistenceError:
        return _unavailable("Failed to upgrade user")


@users_bp.post("/<user_id>/revert")
def revert_user_route(user_id: str):
    """Revert a franchise to the customer id it was upgraded from."""
    try:
        customer_id = identity_service.revert_to_customer(user_id)
        return jsonify({"userId": customer_id, "previousFranchiseId": user_id}), 200
    except (InvalidCategoryTransitionError, MissingLineageError) as e:
        return jsonify({"error": str(e)}), 400
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PersistenceError:
        return _unavailable("Failed to revert user")


@users_bp.post("/login")
def login_route():
    data = request.get_json() or {}
    email = data.get("email")
    if not email:
        return jsonify({"error": "email required"}), 400

    try:
        user = identity_service.login_user(email)
        return jsonify({"user": user}), 200
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PersistenceError:
        return _unavailable("Failed to login user")


@users_bp.post("/<user_id>/logout")
def logout_route(user_id: str):
    try:
        identity_service.logout_user(user_id)
        return jsonify({"userId": user_id, "isActive": False}), 200
    except UserNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PersistenceError:
        return _unavailable("Failed to logout user")
