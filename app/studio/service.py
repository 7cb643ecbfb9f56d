from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from typing import Any, TypeVar

from postgrest.exceptions import APIError
from supabase import Client

from app.studio import schema as sc
from app.studio.schema import EntitySchema

logger = logging.getLogger(__name__)

T = TypeVar("T")

Record = dict[str, Any]


class RemoteTimeout(RuntimeError):
    pass


def call_with_timeout(fn: Callable[[], T], timeout: float, message: str) -> T:
    """
    Run `fn` on a worker thread of its own and wait at most `timeout` seconds.

    The worker starts immediately, so calls abandoned earlier never delay this
    one. An overrunning call is not cancelled; it finishes (or fails) in the
    background with nobody waiting on it.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="remote-call")
    future = executor.submit(fn)
    executor.shutdown(wait=False)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeout:
        logger.warning("Remote call still pending after %.1fs; giving up waiting (%s)", timeout, message)
        raise RemoteTimeout(message) from None


def remote_error_message(exc: BaseException) -> str:
    if isinstance(exc, APIError):
        return exc.message or str(exc)
    return str(exc) or exc.__class__.__name__


def _single_row(rows: list[dict[str, Any]] | None) -> dict[str, Any]:
    if not rows or len(rows) != 1:
        raise APIError(
            {
                "message": "JSON object requested, multiple (or no) rows returned",
                "code": "PGRST116",
                "hint": None,
                "details": f"The result contains {len(rows or [])} rows",
            }
        )
    return rows[0]


@dataclass
class BatchResult:
    updated: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {"updated": self.updated, "failed": self.failed, "ok": self.ok}


class DataService:
    """
    Typed facade over the hosted tables: one get/create/update/delete set per entity.

    Every call maps field names through the entity's schema, issues exactly one
    remote call and maps the result back. Remote errors propagate unchanged.
    """

    def __init__(self, client: Client, *, create_timeout: float = 10.0) -> None:
        self.client = client
        self.create_timeout = create_timeout

    # ---------- Generic operations ----------
    def select_all(self, schema: EntitySchema, **filters: Any) -> list[Record]:
        q = self.client.table(schema.table).select("*")
        for column, value in filters.items():
            q = q.eq(column, value)
        res = q.execute()
        return [schema.from_db(row) for row in (res.data or [])]

    def select_first(self, schema: EntitySchema, **filters: Any) -> Record | None:
        q = self.client.table(schema.table).select("*")
        for column, value in filters.items():
            q = q.eq(column, value)
        res = q.limit(1).execute()
        rows = res.data or []
        return schema.from_db(rows[0]) if rows else None

    def create(self, schema: EntitySchema, data: Mapping[str, Any]) -> Record:
        row = schema.to_db(data)

        def _insert():
            return self.client.table(schema.table).insert(row).execute()

        if schema.timeout_message:
            res = call_with_timeout(_insert, self.create_timeout, schema.timeout_message)
        else:
            res = _insert()
        return schema.from_db(_single_row(res.data))

    def update(self, schema: EntitySchema, record_id: str, data: Mapping[str, Any]) -> Record:
        row = schema.to_db(data)
        # The primary key is only ever written on create.
        row.pop("id", None)
        res = self.client.table(schema.table).update(row).eq("id", record_id).execute()
        return schema.from_db(_single_row(res.data))

    def delete(self, schema: EntitySchema, record_id: str) -> None:
        self.client.table(schema.table).delete().eq("id", record_id).execute()

    # ---------- Users ----------
    def get_users(self) -> list[Record]:
        return self.select_all(sc.USERS)

    def get_user(self, user_id: str) -> Record | None:
        return self.select_first(sc.USERS, id=user_id)

    def create_user(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.USERS, data)

    def update_user(self, user_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.USERS, user_id, data)

    def delete_user(self, user_id: str) -> None:
        self.delete(sc.USERS, user_id)

    def approve_user(self, user_id: str) -> Record:
        return self.update(sc.USERS, user_id, {"isApproved": True})

    # ---------- Profiles ----------
    def get_profiles(self) -> list[Record]:
        return self.select_all(sc.PROFILES)

    def get_profile(self, profile_id: str) -> Record | None:
        return self.select_first(sc.PROFILES, id=profile_id)

    def get_primary_profile(self) -> Record | None:
        return self.select_first(sc.PROFILES)

    def create_profile(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.PROFILES, data)

    def update_profile(self, profile_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.PROFILES, profile_id, data)

    def delete_profile(self, profile_id: str) -> None:
        self.delete(sc.PROFILES, profile_id)

    # ---------- Clients ----------
    def get_clients(self) -> list[Record]:
        return self.select_all(sc.CLIENTS)

    def get_client_by_portal_id(self, access_id: str) -> Record | None:
        return self.select_first(sc.CLIENTS, portal_access_id=access_id)

    def create_client(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.CLIENTS, data)

    def update_client(self, client_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.CLIENTS, client_id, data)

    def delete_client(self, client_id: str) -> None:
        self.delete(sc.CLIENTS, client_id)

    # ---------- Packages & add-ons ----------
    def get_packages(self) -> list[Record]:
        return self.select_all(sc.PACKAGES)

    def create_package(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.PACKAGES, data)

    def update_package(self, package_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.PACKAGES, package_id, data)

    def delete_package(self, package_id: str) -> None:
        self.delete(sc.PACKAGES, package_id)

    def get_add_ons(self) -> list[Record]:
        return self.select_all(sc.ADD_ONS)

    def create_add_on(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.ADD_ONS, data)

    def update_add_on(self, add_on_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.ADD_ONS, add_on_id, data)

    def delete_add_on(self, add_on_id: str) -> None:
        self.delete(sc.ADD_ONS, add_on_id)

    # ---------- Projects ----------
    def get_projects(self) -> list[Record]:
        return self.select_all(sc.PROJECTS)

    def get_projects_by_client_id(self, client_id: str) -> list[Record]:
        return self.select_all(sc.PROJECTS, client_id=client_id)

    def create_project(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.PROJECTS, data)

    def update_project(self, project_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.PROJECTS, project_id, data)

    def delete_project(self, project_id: str) -> None:
        self.delete(sc.PROJECTS, project_id)

    # ---------- Team ----------
    def get_team_members(self) -> list[Record]:
        return self.select_all(sc.TEAM_MEMBERS)

    def get_team_member_by_portal_id(self, access_id: str) -> Record | None:
        return self.select_first(sc.TEAM_MEMBERS, portal_access_id=access_id)

    def create_team_member(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.TEAM_MEMBERS, data)

    def update_team_member(self, member_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.TEAM_MEMBERS, member_id, data)

    def delete_team_member(self, member_id: str) -> None:
        self.delete(sc.TEAM_MEMBERS, member_id)

    def get_team_project_payments(self, **filters: Any) -> list[Record]:
        return self.select_all(sc.TEAM_PROJECT_PAYMENTS, **filters)

    def create_team_project_payment(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.TEAM_PROJECT_PAYMENTS, data)

    def update_team_project_payment(self, payment_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.TEAM_PROJECT_PAYMENTS, payment_id, data)

    def delete_team_project_payment(self, payment_id: str) -> None:
        self.delete(sc.TEAM_PROJECT_PAYMENTS, payment_id)

    def get_team_payment_records(self) -> list[Record]:
        return self.select_all(sc.TEAM_PAYMENT_RECORDS)

    def create_team_payment_record(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.TEAM_PAYMENT_RECORDS, data)

    def update_team_payment_record(self, record_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.TEAM_PAYMENT_RECORDS, record_id, data)

    def delete_team_payment_record(self, record_id: str) -> None:
        self.delete(sc.TEAM_PAYMENT_RECORDS, record_id)

    def get_reward_ledger_entries(self, **filters: Any) -> list[Record]:
        return self.select_all(sc.REWARD_LEDGER_ENTRIES, **filters)

    def create_reward_ledger_entry(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.REWARD_LEDGER_ENTRIES, data)

    def update_reward_ledger_entry(self, entry_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.REWARD_LEDGER_ENTRIES, entry_id, data)

    def delete_reward_ledger_entry(self, entry_id: str) -> None:
        self.delete(sc.REWARD_LEDGER_ENTRIES, entry_id)

    # ---------- Finance ----------
    def get_transactions(self) -> list[Record]:
        return self.select_all(sc.TRANSACTIONS)

    def create_transaction(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.TRANSACTIONS, data)

    def update_transaction(self, transaction_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.TRANSACTIONS, transaction_id, data)

    def delete_transaction(self, transaction_id: str) -> None:
        self.delete(sc.TRANSACTIONS, transaction_id)

    def get_cards(self) -> list[Record]:
        return self.select_all(sc.CARDS)

    def create_card(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.CARDS, data)

    def update_card(self, card_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.CARDS, card_id, data)

    def delete_card(self, card_id: str) -> None:
        self.delete(sc.CARDS, card_id)

    def get_financial_pockets(self) -> list[Record]:
        return self.select_all(sc.FINANCIAL_POCKETS)

    def create_financial_pocket(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.FINANCIAL_POCKETS, data)

    def update_financial_pocket(self, pocket_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.FINANCIAL_POCKETS, pocket_id, data)

    def delete_financial_pocket(self, pocket_id: str) -> None:
        self.delete(sc.FINANCIAL_POCKETS, pocket_id)

    # ---------- Leads ----------
    def get_leads(self) -> list[Record]:
        return self.select_all(sc.LEADS)

    def create_lead(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.LEADS, data)

    def update_lead(self, lead_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.LEADS, lead_id, data)

    def delete_lead(self, lead_id: str) -> None:
        self.delete(sc.LEADS, lead_id)

    # ---------- Assets ----------
    def get_assets(self) -> list[Record]:
        return self.select_all(sc.ASSETS)

    def create_asset(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.ASSETS, data)

    def update_asset(self, asset_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.ASSETS, asset_id, data)

    def delete_asset(self, asset_id: str) -> None:
        self.delete(sc.ASSETS, asset_id)

    # ---------- Contracts ----------
    def get_contracts(self) -> list[Record]:
        return self.select_all(sc.CONTRACTS)

    def get_contract(self, contract_id: str) -> Record | None:
        return self.select_first(sc.CONTRACTS, id=contract_id)

    def get_contracts_by_client_id(self, client_id: str) -> list[Record]:
        return self.select_all(sc.CONTRACTS, client_id=client_id)

    def create_contract(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.CONTRACTS, data)

    def update_contract(self, contract_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.CONTRACTS, contract_id, data)

    def delete_contract(self, contract_id: str) -> None:
        self.delete(sc.CONTRACTS, contract_id)

    # ---------- Client feedback ----------
    def get_client_feedback(self) -> list[Record]:
        return self.select_all(sc.CLIENT_FEEDBACK)

    def create_client_feedback(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.CLIENT_FEEDBACK, data)

    def update_client_feedback(self, feedback_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.CLIENT_FEEDBACK, feedback_id, data)

    def delete_client_feedback(self, feedback_id: str) -> None:
        self.delete(sc.CLIENT_FEEDBACK, feedback_id)

    # ---------- Notifications ----------
    def get_notifications(self) -> list[Record]:
        return self.select_all(sc.NOTIFICATIONS)

    def create_notification(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.NOTIFICATIONS, data)

    def update_notification(self, notification_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.NOTIFICATIONS, notification_id, data)

    def delete_notification(self, notification_id: str) -> None:
        self.delete(sc.NOTIFICATIONS, notification_id)

    def mark_notifications_read(self, notification_ids: list[str]) -> BatchResult:
        """
        Mark each notification read with one concurrent update per row.

        Not atomic: rows that fail stay unread and are reported in
        `BatchResult.failed`; the rest are committed.
        """
        result = BatchResult()
        if not notification_ids:
            return result
        with ThreadPoolExecutor(max_workers=min(8, len(notification_ids))) as pool:
            futures = {
                nid: pool.submit(self.update_notification, nid, {"isRead": True}) for nid in notification_ids
            }
            for nid, future in futures.items():
                try:
                    future.result()
                    result.updated.append(nid)
                except Exception as e:
                    result.failed[nid] = remote_error_message(e)
        if result.failed:
            logger.warning(
                "mark-all-read partial failure: %d updated, %d failed (%s)",
                len(result.updated),
                len(result.failed),
                ", ".join(sorted(result.failed)),
            )
        return result

    # ---------- Social media ----------
    def get_social_media_posts(self) -> list[Record]:
        return self.select_all(sc.SOCIAL_MEDIA_POSTS)

    def create_social_media_post(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.SOCIAL_MEDIA_POSTS, data)

    def update_social_media_post(self, post_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.SOCIAL_MEDIA_POSTS, post_id, data)

    def delete_social_media_post(self, post_id: str) -> None:
        self.delete(sc.SOCIAL_MEDIA_POSTS, post_id)

    # ---------- Promo codes ----------
    def get_promo_codes(self) -> list[Record]:
        return self.select_all(sc.PROMO_CODES)

    def create_promo_code(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.PROMO_CODES, data)

    def update_promo_code(self, promo_code_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.PROMO_CODES, promo_code_id, data)

    def delete_promo_code(self, promo_code_id: str) -> None:
        self.delete(sc.PROMO_CODES, promo_code_id)

    # ---------- SOPs ----------
    def get_sops(self) -> list[Record]:
        return self.select_all(sc.SOPS)

    def create_sop(self, data: Mapping[str, Any]) -> Record:
        return self.create(sc.SOPS, data)

    def update_sop(self, sop_id: str, data: Mapping[str, Any]) -> Record:
        return self.update(sc.SOPS, sop_id, data)

    def delete_sop(self, sop_id: str) -> None:
        self.delete(sc.SOPS, sop_id)
