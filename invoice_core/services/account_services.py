# =============================================================================
# invoice_core/services/account_services.py
# User, company and admin operations
# =============================================================================

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional

from invoice_core.remote.base import Record
from invoice_core.services.base_service import BaseService


class UserService(BaseService):
    """Users (managers, admins, sellers) belonging to a company."""

    collection = "users"

    def get_user(self, uid: str) -> Optional[Record]:
        return self._get(uid)

    def update_user(self, uid: str, data: Dict[str, Any], user_id: str) -> None:
        self._update(uid, data, user_id)

    def get_company_users(self, company_id: str) -> List[Record]:
        return self._list(company_id)

    def create_user(self, data: Dict[str, Any], admin_id: str) -> str:
        return self._create(data, admin_id)

    def update_user_status(self, user_id: str, is_active: bool, admin_id: str) -> None:
        """Activate or deactivate a user."""
        self._update(user_id, {"isActive": is_active, "updatedAt": datetime.now()}, admin_id)

    def delete_user(self, user_id: str, admin_id: str) -> None:
        self._delete(user_id, admin_id)


class CompanyService(BaseService):
    collection = "companies"

    def get_company(self, company_id: str) -> Optional[Record]:
        return self._get(company_id)

    def create_company(self, data: Dict[str, Any], user_id: str) -> str:
        return self._create(data, user_id)

    def update_company(self, company_id: str, data: Dict[str, Any], user_id: str) -> None:
        self._update(company_id, data, user_id)


class AdminService(BaseService):
    """Platform administrators."""

    collection = "admins"

    def check_email_exists(self, email: str) -> bool:
        """
        Whether an active admin uses ``email`` (case-insensitive).

        Returns False on any error so a lookup problem never grants access.
        """
        try:
            admins = self._list()
        except Exception as e:
            self.logger.error(f"Error checking admin email: {e}")
            return False
        wanted = email.lower()
        return any(
            str(admin.get("email", "")).lower() == wanted and admin.get("isActive")
            for admin in admins
        )

    def get_all_admins(self) -> List[Record]:
        return self._list()

    def create_admin(self, data: Dict[str, Any], created_by: str) -> str:
        return self._create(data, created_by)

    def update_admin(self, admin_id: str, data: Dict[str, Any], updated_by: str) -> None:
        self._update(admin_id, data, updated_by)

    def delete_admin(self, admin_id: str, deleted_by: str) -> None:
        self._delete(admin_id, deleted_by)

    def force_database_upgrade(self) -> bool:
        """
        Recreate the local store to recover from a schema problem.

        Unsynced local changes are lost; only wire this to an explicit
        user action.
        """
        with self.log_operation("Forcing local database upgrade"):
            return self.data_service.force_upgrade()
