"""
Declarative field mapping between application records and storage rows.

Application records use camelCase keys (the shape the browser works with);
storage rows use the snake_case column names of the hosted tables. Every entity
is described once here and both directions are derived from that description.
"""
from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from app.studio.constants import (
    MSG_TIMEOUT_CLIENT,
    MSG_TIMEOUT_FEEDBACK,
    MSG_TIMEOUT_LEAD,
    MSG_TIMEOUT_PROJECT,
    MSG_TIMEOUT_TRANSACTION,
    View,
)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


@dataclass(frozen=True)
class Field:
    app: str
    db: str
    write: bool = True
    read: bool = True
    default: Callable[[], Any] | None = None


def f(app: str, db: str | None = None, **kwargs: Any) -> Field:
    return Field(app=app, db=db or snake_case(app.replace(".", "_")), **kwargs)


def fields(*names: str | Field) -> tuple[Field, ...]:
    return tuple(n if isinstance(n, Field) else f(n) for n in names)


def _lookup(data: Mapping[str, Any], path: str) -> tuple[bool, Any]:
    head, _, rest = path.partition(".")
    if head not in data:
        return False, None
    value = data[head]
    if not rest:
        return True, value
    if not isinstance(value, Mapping):
        return False, None
    return _lookup(value, rest)


def _assign(out: dict[str, Any], path: str, value: Any) -> None:
    head, _, rest = path.partition(".")
    if not rest:
        out[head] = value
        return
    _assign(out.setdefault(head, {}), rest, value)


@dataclass(frozen=True)
class EntitySchema:
    table: str
    singular: str
    view: View
    fields: tuple[Field, ...]
    timeout_message: str | None = None
    _nested: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        nested = frozenset(fl.app.partition(".")[0] for fl in self.fields if "." in fl.app)
        object.__setattr__(self, "_nested", nested)

    @property
    def app_names(self) -> list[str]:
        return ["id"] + [fl.app for fl in self.fields if fl.read and fl.app != "id"]

    def values(self, record: Mapping[str, Any]) -> list[Any]:
        """Flat row of `record` in `app_names` order, for tabular exports."""
        return [_lookup(record, name)[1] for name in self.app_names]

    def to_db(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Map an application record (or partial) to a storage row.

        Only keys present in `data` are emitted, so a partial maps to a partial
        update. Read-only fields are never written.
        """
        row: dict[str, Any] = {}
        for fl in self.fields:
            if not fl.write:
                continue
            present, value = _lookup(data, fl.app)
            if present:
                row[fl.db] = value
        return row

    def from_db(self, row: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {"id": row.get("id")}
        for fl in self.fields:
            value = row.get(fl.db) if fl.read else None
            if value is None and fl.default is not None:
                value = fl.default()
            _assign(out, fl.app, copy.deepcopy(value))
        for key in self._nested:
            group = out.get(key)
            if isinstance(group, dict) and all(v is None for v in group.values()):
                out.pop(key)
        return out


USERS = EntitySchema(
    table="users",
    singular="user",
    view=View.SETTINGS,
    fields=fields(
        "id",
        "email",
        f("password", "password_hash", read=False, default=str),
        "fullName",
        "companyName",
        "role",
        f("permissions", default=list),
        "isApproved",
    ),
)

PROFILES = EntitySchema(
    table="profiles",
    singular="profile",
    view=View.SETTINGS,
    fields=fields(
        "adminUserId",
        "fullName",
        "email",
        "phone",
        "companyName",
        "website",
        "address",
        "bankAccount",
        "authorizedSigner",
        "idNumber",
        "bio",
        f("incomeCategories", default=list),
        f("expenseCategories", default=list),
        f("projectTypes", default=list),
        f("eventTypes", default=list),
        f("assetCategories", default=list),
        f("sopCategories", default=list),
        f("packageCategories", default=list),
        f("projectStatusConfig", default=list),
        f("notificationSettings", default=dict),
        f("securitySettings", default=dict),
        "briefingTemplate",
        "termsAndConditions",
        "contractTemplate",
        "logoBase64",
        "brandColor",
        f("publicPageConfig", default=dict),
        "packageShareTemplate",
        "bookingFormTemplate",
        f("chatTemplates", default=list),
    ),
)

CLIENTS = EntitySchema(
    table="clients",
    singular="client",
    view=View.CLIENTS,
    fields=fields(
        "name",
        "email",
        "phone",
        "whatsapp",
        "since",
        "instagram",
        "status",
        "clientType",
        "lastContact",
        "portalAccessId",
    ),
    timeout_message=MSG_TIMEOUT_CLIENT,
)

PACKAGES = EntitySchema(
    table="packages",
    singular="package",
    view=View.PACKAGES,
    fields=fields(
        "name",
        "price",
        "category",
        f("physicalItems", default=list),
        f("digitalItems", default=list),
        "processingTime",
        "defaultPrintingCost",
        "defaultTransportCost",
        "photographers",
        "videographers",
        "coverImage",
    ),
)

ADD_ONS = EntitySchema(
    table="add_ons",
    singular="add_on",
    view=View.PACKAGES,
    fields=fields("name", "price"),
)

PROJECTS = EntitySchema(
    table="projects",
    singular="project",
    view=View.PROJECTS,
    fields=fields(
        "projectName",
        "clientName",
        "clientId",
        "projectType",
        "packageName",
        "packageId",
        f("addOns", default=list),
        "date",
        "deadlineDate",
        "location",
        "progress",
        "status",
        "activeSubStatuses",
        "totalCost",
        "amountPaid",
        "paymentStatus",
        f("team", default=list),
        "notes",
        "accommodation",
        "driveLink",
        "clientDriveLink",
        "finalDriveLink",
        "startTime",
        "endTime",
        "image",
        "revisions",
        "promoCodeId",
        "discountAmount",
        "shippingDetails",
        "dpProofUrl",
        "printingDetails",
        "printingCost",
        "transportCost",
        "isEditingConfirmedByClient",
        "isPrintingConfirmedByClient",
        "isDeliveryConfirmedByClient",
        "confirmedSubStatuses",
        "clientSubStatusNotes",
        "subStatusConfirmationSentAt",
        "completedDigitalItems",
        "invoiceSignature",
        "customSubStatuses",
        "bookingStatus",
        "rejectionReason",
        "chatHistory",
    ),
    timeout_message=MSG_TIMEOUT_PROJECT,
)

TEAM_MEMBERS = EntitySchema(
    table="team_members",
    singular="team_member",
    view=View.TEAM,
    fields=fields(
        "name",
        "role",
        "email",
        "phone",
        "standardFee",
        "noRek",
        "rewardBalance",
        "rating",
        f("performanceNotes", default=list),
        "portalAccessId",
    ),
)

TRANSACTIONS = EntitySchema(
    table="transactions",
    singular="transaction",
    view=View.FINANCE,
    fields=fields(
        "date",
        "description",
        "amount",
        "type",
        "projectId",
        "category",
        "method",
        "pocketId",
        "cardId",
        "printingItemId",
        "vendorSignature",
    ),
    timeout_message=MSG_TIMEOUT_TRANSACTION,
)

CARDS = EntitySchema(
    table="cards",
    singular="card",
    view=View.FINANCE,
    fields=fields(
        "cardHolderName",
        "bankName",
        "cardType",
        "lastFourDigits",
        "expiryDate",
        "balance",
        "colorGradient",
    ),
)

FINANCIAL_POCKETS = EntitySchema(
    table="financial_pockets",
    singular="financial_pocket",
    view=View.FINANCE,
    fields=fields(
        "name",
        "description",
        "icon",
        "type",
        "amount",
        "goalAmount",
        "lockEndDate",
        "members",
        "sourceCardId",
    ),
)

LEADS = EntitySchema(
    table="leads",
    singular="lead",
    view=View.PROSPEK,
    fields=fields("name", "contactChannel", "location", "status", "date", "notes", "whatsapp"),
    timeout_message=MSG_TIMEOUT_LEAD,
)

ASSETS = EntitySchema(
    table="assets",
    singular="asset",
    view=View.ASSETS,
    fields=fields("name", "category", "purchaseDate", "purchasePrice", "serialNumber", "status", "notes"),
)

CONTRACTS = EntitySchema(
    table="contracts",
    singular="contract",
    view=View.CONTRACTS,
    fields=fields(
        "contractNumber",
        "clientId",
        "projectId",
        "signingDate",
        "signingLocation",
        "clientName1",
        "clientAddress1",
        "clientPhone1",
        "clientName2",
        "clientAddress2",
        "clientPhone2",
        "shootingDuration",
        "guaranteedPhotos",
        "albumDetails",
        "digitalFilesFormat",
        "otherItems",
        "personnelCount",
        "deliveryTimeframe",
        "dpDate",
        "finalPaymentDate",
        "cancellationPolicy",
        "jurisdiction",
        "vendorSignature",
        "clientSignature",
        f("createdAt", write=False),
    ),
)

CLIENT_FEEDBACK = EntitySchema(
    table="client_feedback",
    singular="client_feedback",
    view=View.CLIENT_REPORTS,
    fields=fields("clientName", "satisfaction", "rating", "feedback", "date"),
    timeout_message=MSG_TIMEOUT_FEEDBACK,
)

NOTIFICATIONS = EntitySchema(
    table="notifications",
    singular="notification",
    view=View.DASHBOARD,
    fields=fields(
        "title",
        "message",
        "timestamp",
        "isRead",
        "icon",
        f("link.view", "link_view"),
        f("link.action", "link_action"),
    ),
)

SOCIAL_MEDIA_POSTS = EntitySchema(
    table="social_media_posts",
    singular="social_media_post",
    view=View.SOCIAL_MEDIA_PLANNER,
    fields=fields(
        "projectId",
        "clientName",
        "postType",
        "platform",
        "scheduledDate",
        "caption",
        "mediaUrl",
        "status",
        "notes",
    ),
)

PROMO_CODES = EntitySchema(
    table="promo_codes",
    singular="promo_code",
    view=View.PROMO_CODES,
    fields=fields(
        "code",
        "discountType",
        "discountValue",
        "isActive",
        "usageCount",
        "maxUsage",
        "expiryDate",
        f("createdAt", write=False),
    ),
)

SOPS = EntitySchema(
    table="sops",
    singular="sop",
    view=View.SOP,
    fields=fields("title", "category", "content", "lastUpdated"),
)

TEAM_PROJECT_PAYMENTS = EntitySchema(
    table="team_project_payments",
    singular="team_project_payment",
    view=View.TEAM,
    fields=fields("projectId", "teamMemberName", "teamMemberId", "date", "status", "fee", "reward"),
)

TEAM_PAYMENT_RECORDS = EntitySchema(
    table="team_payment_records",
    singular="team_payment_record",
    view=View.TEAM,
    fields=fields("recordNumber", "teamMemberId", "date", "projectPaymentIds", "totalAmount", "vendorSignature"),
)

REWARD_LEDGER_ENTRIES = EntitySchema(
    table="reward_ledger_entries",
    singular="reward_ledger_entry",
    view=View.TEAM,
    fields=fields("teamMemberId", "date", "description", "amount", "projectId"),
)


SCHEMAS: dict[str, EntitySchema] = {
    s.table: s
    for s in (
        USERS,
        PROFILES,
        CLIENTS,
        PACKAGES,
        ADD_ONS,
        PROJECTS,
        TEAM_MEMBERS,
        TRANSACTIONS,
        CARDS,
        FINANCIAL_POCKETS,
        LEADS,
        ASSETS,
        CONTRACTS,
        CLIENT_FEEDBACK,
        NOTIFICATIONS,
        SOCIAL_MEDIA_POSTS,
        PROMO_CODES,
        SOPS,
        TEAM_PROJECT_PAYMENTS,
        TEAM_PAYMENT_RECORDS,
        REWARD_LEDGER_ENTRIES,
    )
}


def schema_for(entity: str) -> EntitySchema:
    """Look up a schema by its table name (the `<entity>` segment of API URLs)."""
    try:
        return SCHEMAS[entity]
    except KeyError:
        raise KeyError(f"Unknown entity: {entity}") from None
