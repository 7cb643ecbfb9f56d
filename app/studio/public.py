"""
Anonymous endpoints behind the public forms and the client/freelancer portals.
"""
from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, abort, current_app, jsonify, request
from postgrest.exceptions import APIError

from app.studio.backend import current_backend
from app.studio.constants import (
    LEAD_CHANNEL_WEBSITE,
    LEAD_STATUS_DISCUSSION,
    MSG_RATE_LIMITED,
    MSG_SAVE_FAILED,
    View,
)
from app.studio.exports import format_date
from app.studio.notifications import add_notification
from app.studio.security import validate_form_data, validate_id
from app.studio.service import DataService, RemoteTimeout, remote_error_message

bp = Blueprint("public", __name__)

# Profile fields the public pages may show.
PUBLIC_PROFILE_FIELDS = (
    "companyName",
    "email",
    "phone",
    "website",
    "address",
    "bio",
    "logoBase64",
    "brandColor",
    "publicPageConfig",
    "projectTypes",
    "eventTypes",
    "packageCategories",
)

_LEAD_RULES = {
    "name": {"type": "text", "required": True, "maxLength": 100},
    "whatsapp": {"type": "phone", "required": True},
    "eventType": {"type": "text", "required": True, "maxLength": 100},
    "eventDate": {"type": "text", "required": True, "maxLength": 10},
    "eventLocation": {"type": "text", "required": True, "maxLength": 255},
}

_FEEDBACK_RULES = {
    "clientName": {"type": "text", "required": True, "maxLength": 100},
    "satisfaction": {"type": "text", "required": True, "maxLength": 50},
    "rating": {"type": "currency", "required": True},
    "feedback": {"type": "text", "maxLength": 2000},
}


def _data() -> DataService:
    return DataService(current_backend().client, create_timeout=current_app.config["CREATE_TIMEOUT_SECONDS"])


def _payload() -> dict:
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def _public_profile(profile: dict | None) -> dict:
    if not profile:
        return {}
    return {k: profile.get(k) for k in PUBLIC_PROFILE_FIELDS}


def _validate(payload: dict, rules: dict) -> tuple[dict, list[str]]:
    checked = validate_form_data(payload, rules)
    absent = [name for name, rule in rules.items() if rule.get("required") and name not in payload]
    return checked.clean_data, checked.errors + [f"{name} wajib diisi" for name in absent]


def _check_rate_limit(form: str) -> bool:
    ip = request.remote_addr or "unknown"
    allowed = current_app.extensions["rate_limiter"].check(f"{form}:{ip}")
    if not allowed:
        current_app.logger.warning("Public %s rate limit hit (ip=%s)", form, ip)
    return allowed


@bp.errorhandler(APIError)
def _remote_error(e: APIError):
    current_app.logger.error("Public %s failed: %s", request.path, remote_error_message(e))
    return jsonify({"error": MSG_SAVE_FAILED}), 502


@bp.errorhandler(RemoteTimeout)
def _remote_timeout(e: RemoteTimeout):
    return jsonify({"error": str(e)}), 504


@bp.get("/packages")
def packages():
    data = _data()
    return jsonify(
        {
            "packages": data.get_packages(),
            "addOns": data.get_add_ons(),
            "profile": _public_profile(data.get_primary_profile()),
        }
    )


@bp.post("/leads")
def lead_create():
    if not _check_rate_limit("lead-form"):
        return jsonify({"error": MSG_RATE_LIMITED}), 429

    form, errors = _validate(_payload(), _LEAD_RULES)
    if errors:
        return jsonify({"error": "; ".join(errors), "errors": errors}), 400

    notes = (
        f"Jenis Acara: {form['eventType']}\n"
        f"Tanggal Acara: {format_date(form['eventDate'])}\n"
        f"Lokasi Acara: {form['eventLocation']}"
    )
    data = _data()
    lead = data.create_lead(
        {
            "name": form["name"],
            "whatsapp": form["whatsapp"],
            "contactChannel": LEAD_CHANNEL_WEBSITE,
            "location": form["eventLocation"],
            "status": LEAD_STATUS_DISCUSSION,
            "date": datetime.now(timezone.utc).isoformat(),
            "notes": notes,
        }
    )
    current_app.logger.info("Public lead %s received", lead.get("id"))

    # The lead is already stored; a failed profile lookup or notification does not undo it.
    try:
        profile = data.get_primary_profile()
    except APIError as e:
        current_app.logger.warning("Profile lookup for lead notification failed: %s", remote_error_message(e))
        profile = None
    add_notification(
        data,
        {
            "title": "Prospek Baru Diterima!",
            "message": f"Prospek baru dari {lead['name']} telah masuk melalui formulir web.",
            "icon": "lead",
            "link": {"view": View.PROSPEK.value},
        },
        profile,
    )
    return jsonify(lead), 201


@bp.post("/feedback")
def feedback_create():
    if not _check_rate_limit("feedback-form"):
        return jsonify({"error": MSG_RATE_LIMITED}), 429

    form, errors = _validate(_payload(), _FEEDBACK_RULES)
    if errors:
        return jsonify({"error": "; ".join(errors), "errors": errors}), 400

    record = _data().create_client_feedback(
        {
            "clientName": form.get("clientName"),
            "satisfaction": form.get("satisfaction"),
            "rating": form.get("rating"),
            "feedback": form.get("feedback", ""),
            "date": datetime.now(timezone.utc).isoformat(),
        }
    )
    return jsonify(record), 201


@bp.get("/portal/<access_id>")
def client_portal(access_id: str):
    if not validate_id(access_id):
        abort(404)
    data = _data()
    client = data.get_client_by_portal_id(access_id)
    if client is None:
        abort(404)
    return jsonify(
        {
            "client": client,
            "projects": data.get_projects_by_client_id(client["id"]),
            "contracts": data.get_contracts_by_client_id(client["id"]),
            "profile": _public_profile(data.get_primary_profile()),
        }
    )


@bp.get("/freelancer-portal/<access_id>")
def freelancer_portal(access_id: str):
    if not validate_id(access_id):
        abort(404)
    data = _data()
    member = data.get_team_member_by_portal_id(access_id)
    if member is None:
        abort(404)
    return jsonify(
        {
            "teamMember": member,
            "projectPayments": data.get_team_project_payments(team_member_id=member["id"]),
            "rewardLedger": data.get_reward_ledger_entries(team_member_id=member["id"]),
            "profile": _public_profile(data.get_primary_profile()),
        }
    )
