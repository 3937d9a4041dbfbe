import logging
from typing import Dict, Any, List, Optional

from services.table_gateway import TableGateway

logger = logging.getLogger("ERP.Categories")

TABLE = "categories"


class CategoryService:

    def __init__(self, gateway: TableGateway):
        self.gateway = gateway

    def list_categories(self) -> List[Dict[str, Any]]:
        return self.gateway.select(TABLE, order="code")

    def create_category(self, code: str, name: str, description: Optional[str] = None) -> Dict[str, Any]:
        code = (code or "").strip()
        name = (name or "").strip()
        if not code or not name:
            raise ValueError("Category code and name are required.")

        if self.gateway.select(TABLE, filters={"code": code}):
            raise ValueError(f"Category code {code} already exists.")

        row = self.gateway.insert(TABLE, [{
            "code": code,
            "name": name,
            "description": description or None,
        }])[0]
        logger.info(f"Category {code} created.")
        return row

    def get_category(self, category_id: str) -> Dict[str, Any]:
        rows = self.gateway.select(TABLE, filters={"id": category_id})
        if not rows:
            raise KeyError(f"Category '{category_id}' not found.")
        return rows[0]

    def update_category(self, category_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        self.get_category(category_id)

        allowed = {k: v for k, v in changes.items() if k in ("code", "name", "description")}
        if not allowed:
            raise ValueError("No editable category fields supplied.")
        for key in ("code", "name"):
            if key in allowed:
                allowed[key] = str(allowed[key] or "").strip()
                if not allowed[key]:
                    raise ValueError(f"Category {key} cannot be blank.")

        if "code" in allowed:
            clash = self.gateway.select(TABLE, filters={"code": allowed["code"]})
            if any(row["id"] != category_id for row in clash):
                raise ValueError(f"Category code {allowed['code']} already exists.")

        row = self.gateway.update(TABLE, category_id, allowed)
        logger.info(f"Category {category_id} updated ({', '.join(sorted(allowed))}).")
        return row

    def delete_category(self, category_id: str) -> None:
        self.get_category(category_id)
        self.gateway.delete(TABLE, category_id)
        logger.info(f"Category {category_id} deleted.")
