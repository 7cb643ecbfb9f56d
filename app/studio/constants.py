"""
Central constants for the studio application.
"""
from __future__ import annotations

from enum import Enum


class View(str, Enum):
    HOMEPAGE = "Homepage"
    DASHBOARD = "Dashboard"
    PROSPEK = "Prospek"
    BOOKING = "Booking"
    CLIENTS = "Clients"
    PROJECTS = "Projects"
    TEAM = "Team"
    FINANCE = "Finance"
    CALENDAR = "Calendar"
    SOCIAL_MEDIA_PLANNER = "Social Media Planner"
    PACKAGES = "Packages"
    ASSETS = "Assets"
    CONTRACTS = "Contracts"
    PROMO_CODES = "Promo Codes"
    SOP = "SOP"
    CLIENT_REPORTS = "Client Reports"
    SETTINGS = "Settings"

    @property
    def slug(self) -> str:
        return self.value.lower().replace(" ", "-")


ROLE_ADMIN = "Admin"
ROLE_MEMBER = "Member"

# Granted to every self-registered account until an admin edits it.
DEFAULT_MEMBER_PERMISSIONS = (View.DASHBOARD, View.CLIENTS, View.PROJECTS, View.CALENDAR)

LEAD_CHANNEL_WEBSITE = "Website"
LEAD_STATUS_DISCUSSION = "Discussion"

# User-facing messages (Indonesian, as shown in the studio UI).
MSG_SIGN_IN_TIMEOUT = "Koneksi terlalu lambat. Silakan periksa internet Anda dan coba lagi."
MSG_INVALID_CREDENTIALS = "Email atau kata sandi salah."
MSG_EMAIL_NOT_CONFIRMED = "Email belum dikonfirmasi. Silakan cek email Anda."
MSG_USER_RECORD_NOT_FOUND = "User record not found in database. Please contact admin."
MSG_APPROVAL_PENDING = "Akun Anda sedang menunggu persetujuan admin. Silakan hubungi admin untuk aktivasi."
MSG_SIGNED_OUT = "Anda telah keluar dari sistem."
MSG_SIGN_UP_OK = "Pendaftaran berhasil. Akun Anda menunggu persetujuan admin."
MSG_ACCESS_DENIED_TITLE = "Akses Ditolak"
MSG_ACCESS_DENIED = "Anda tidak memiliki izin untuk mengakses halaman ini."
MSG_BACK_TO_DASHBOARD = "Kembali ke Dashboard"
MSG_RATE_LIMITED = "Terlalu banyak percobaan. Silakan tunggu beberapa menit."
MSG_SAVE_FAILED = "Terjadi kesalahan saat menyimpan data. Silakan coba lagi."

MSG_TIMEOUT_CLIENT = "Timeout: Gagal menyimpan data klien. Silakan coba lagi."
MSG_TIMEOUT_PROJECT = "Timeout: Gagal menyimpan proyek. Silakan coba lagi."
MSG_TIMEOUT_TRANSACTION = "Timeout: Gagal menyimpan transaksi. Silakan coba lagi."
MSG_TIMEOUT_LEAD = "Timeout: Gagal menyimpan prospek. Silakan coba lagi."
MSG_TIMEOUT_FEEDBACK = "Timeout: Gagal menyimpan feedback. Silakan coba lagi."
