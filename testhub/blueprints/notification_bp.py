"""
Notification Blueprint — the caller's in-app notification inbox.

  GET    /api/v1/notifications             — all, newest first
  GET    /api/v1/notifications/unread      — unread only
  GET    /api/v1/notifications/count       — unread count
  PUT    /api/v1/notifications/<id>/read   — mark one read
  PUT    /api/v1/notifications/read-all    — mark all read
  DELETE /api/v1/notifications/<id>        — delete one
"""

from flask import Blueprint, jsonify

from testhub.middleware.jwt_auth import current_principal
from testhub.services.notification import NotificationService

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1/notifications")


@notification_bp.route("", methods=["GET"])
def list_notifications():
    user = current_principal()
    return jsonify([n.to_dict() for n in NotificationService.list_for_user(user.email)])


@notification_bp.route("/unread", methods=["GET"])
def list_unread():
    user = current_principal()
    return jsonify([n.to_dict() for n in NotificationService.list_unread(user.email)])


@notification_bp.route("/count", methods=["GET"])
def unread_count():
    user = current_principal()
    return jsonify({"unread_count": NotificationService.unread_count(user.email)})


@notification_bp.route("/<int:notification_id>/read", methods=["PUT"])
def mark_read(notification_id):
    user = current_principal()
    notif = NotificationService.mark_read(notification_id, user.email)
    return jsonify(notif.to_dict())


@notification_bp.route("/read-all", methods=["PUT"])
def mark_all_read():
    user = current_principal()
    count = NotificationService.mark_all_read(user.email)
    return jsonify({"marked_read": count})


@notification_bp.route("/<int:notification_id>", methods=["DELETE"])
def delete_notification(notification_id):
    user = current_principal()
    NotificationService.delete(notification_id, user.email)
    return jsonify({"deleted": True, "id": notification_id})
