import logging
from typing import Dict, Any, Optional

from services.settings_service import validate_company_settings, SettingsValidationError
from services.table_gateway import TableGateway

logger = logging.getLogger("ERP.Profiles")

TABLE = "company_profiles"

_EDITABLE = ("company_name", "business_number", "ceo_name", "phone", "email", "address")


class ProfileService:

    def __init__(self, gateway: TableGateway):
        self.gateway = gateway

    def get_by_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self.gateway.select(TABLE, filters={"user_id": user_id})
        return rows[0] if rows else None

    def update_profile(self, profile_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        allowed = {k: v for k, v in changes.items() if k in _EDITABLE}
        if not allowed:
            raise SettingsValidationError("No editable profile fields supplied.")

        current = self.gateway.select(TABLE, filters={"id": profile_id})
        if not current:
            raise KeyError(f"Company profile '{profile_id}' not found.")
        if "company_name" in allowed or "business_number" in allowed or "phone" in allowed:
            validate_company_settings({**current[0], **allowed})

        row = self.gateway.update(TABLE, profile_id, allowed)
        logger.info(f"Company profile {profile_id} updated ({', '.join(sorted(allowed))})")
        return row
