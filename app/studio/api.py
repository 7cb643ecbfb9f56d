from __future__ import annotations

from flask import Blueprint, abort, current_app, g, jsonify, render_template, request
from postgrest.exceptions import APIError

from app.studio.constants import ROLE_ADMIN
from app.studio.exports import csv_response
from app.studio.print_styles import add_print_styles
from app.studio.rbac import require_view, user_has_view
from app.studio.routing import resolve_route
from app.studio.schema import EntitySchema, schema_for
from app.studio.security import ensure_csrf_token, sanitize_filename, validate_id
from app.studio.service import DataService, RemoteTimeout, remote_error_message
from app.studio.session import SessionContext

bp = Blueprint("api", __name__)

# Entities only an Admin may touch through the generic endpoints.
_ADMIN_ENTITIES = ("users",)


def _data() -> DataService:
    ctx: SessionContext = g.session_ctx
    return DataService(
        ctx.backend.client_for(ctx.access_token),
        create_timeout=current_app.config["CREATE_TIMEOUT_SECONDS"],
    )


def _schema_or_404(entity: str) -> EntitySchema:
    try:
        return schema_for(entity)
    except KeyError:
        abort(404)


def _gate(schema: EntitySchema) -> None:
    user = g.current_user
    if schema.table in _ADMIN_ENTITIES and user.get("role") != ROLE_ADMIN:
        g.missing_permission = ROLE_ADMIN
        abort(403)
    if not user_has_view(user, schema.view):
        g.missing_permission = schema.view.value
        abort(403)


def _record_id_or_400(record_id: str) -> str:
    if not validate_id(record_id):
        abort(400, description="Invalid id.")
    return record_id


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description="Expected a JSON object.")
    data.pop("csrf_token", None)
    return data


@bp.errorhandler(APIError)
def _remote_error(e: APIError):
    current_app.logger.error("Remote error on %s %s: %s", request.method, request.path, remote_error_message(e))
    return jsonify({"error": remote_error_message(e)}), 502


@bp.errorhandler(RemoteTimeout)
def _remote_timeout(e: RemoteTimeout):
    return jsonify({"error": str(e)}), 504


@bp.get("/session")
def session_state():
    ctx: SessionContext = g.session_ctx
    return jsonify(
        {
            "user": ctx.user,
            "profile": ctx.profile,
            "notifications": ctx.notifications,
            "csrf_token": ensure_csrf_token(),
        }
    )


@bp.get("/navigate")
def navigate():
    resolution = resolve_route(request.args.get("fragment"), g.current_user)
    return jsonify(resolution.to_dict())


# ---------- Notifications ----------


@bp.get("/notifications")
@require_view()
def notifications_list():
    items = _data().get_notifications()
    items.sort(key=lambda n: n.get("timestamp") or "", reverse=True)
    return jsonify(items)


@bp.post("/notifications/<notification_id>/read")
@require_view()
def notification_read(notification_id: str):
    record = _data().update_notification(_record_id_or_400(notification_id), {"isRead": True})
    return jsonify(record)


@bp.post("/notifications/read-all")
@require_view()
def notifications_read_all():
    data = _data()
    unread = [n["id"] for n in data.get_notifications() if not n.get("isRead")]
    result = data.mark_notifications_read(unread)
    return jsonify(result.to_dict()), (200 if result.ok else 207)


# ---------- Users & contracts ----------


@bp.post("/users/<user_id>/approve")
@require_view(admin_only=True)
def user_approve(user_id: str):
    record = _data().approve_user(_record_id_or_400(user_id))
    current_app.logger.info("User %s approved by %s", user_id, g.current_user.get("id"))
    return jsonify(record)


@bp.get("/contracts/<contract_id>/print")
@require_view()
def contract_print(contract_id: str):
    _gate(schema_for("contracts"))
    data = _data()
    contract = data.get_contract(_record_id_or_400(contract_id))
    if contract is None:
        abort(404)
    html = render_template("print/contract.html", contract=contract, profile=g.session_ctx.profile)
    return add_print_styles(html)


# ---------- Generic entity CRUD ----------


@bp.get("/<entity>")
@require_view()
def entity_list(entity: str):
    schema = _schema_or_404(entity)
    _gate(schema)
    return jsonify(_data().select_all(schema))


@bp.post("/<entity>")
@require_view()
def entity_create(entity: str):
    schema = _schema_or_404(entity)
    _gate(schema)
    record = _data().create(schema, _json_body())
    current_app.logger.info("Created %s %s", schema.singular, record.get("id"))
    return jsonify(record), 201


@bp.patch("/<entity>/<record_id>")
@require_view()
def entity_update(entity: str, record_id: str):
    schema = _schema_or_404(entity)
    _gate(schema)
    record = _data().update(schema, _record_id_or_400(record_id), _json_body())
    return jsonify(record)


@bp.delete("/<entity>/<record_id>")
@require_view()
def entity_delete(entity: str, record_id: str):
    schema = _schema_or_404(entity)
    _gate(schema)
    _data().delete(schema, _record_id_or_400(record_id))
    current_app.logger.info("Deleted %s %s", schema.singular, record_id)
    return "", 204


@bp.get("/<entity>/export.csv")
@require_view()
def entity_export(entity: str):
    schema = _schema_or_404(entity)
    _gate(schema)
    records = _data().select_all(schema)
    include_timestamp = request.args.get("timestamp", "1") != "0"
    return csv_response(
        schema.app_names,
        (schema.values(r) for r in records),
        sanitize_filename(f"{schema.table}.csv"),
        include_timestamp=include_timestamp,
    )
