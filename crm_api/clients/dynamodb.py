"""
DynamoDB document store for per-user integration records.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import boto3

from crm_api.core.config import StorageSettings
from crm_api.core.errors import ConfigurationError


class DynamoDBClient:
    """Get and merge-write integration documents keyed by (pk, sk)."""

    def __init__(self, settings: StorageSettings, *, table: Any = None) -> None:
        if table is None:
            if not settings.dynamodb_table_name:
                raise ConfigurationError("DYNAMODB_TABLE_NAME is not configured.")
            resource = boto3.resource("dynamodb", region_name=settings.region_name)
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    @staticmethod
    def _key(user_id: str, integration: str) -> Dict[str, str]:
        return {"pk": f"user#{user_id}", "sk": f"integration#{integration}"}

    def get_document(self, user_id: str, integration: str) -> Optional[Dict[str, Any]]:
        response = self._table.get_item(
            Key=self._key(user_id, integration), ConsistentRead=True
        )
        item = response.get("Item")
        if item is None:
            return None
        return {key: value for key, value in item.items() if key not in ("pk", "sk")}

    def merge_document(
        self, user_id: str, integration: str, fields: Dict[str, Any]
    ) -> None:
        """UpdateItem with a SET clause per field; other attributes are untouched."""
        if not fields:
            return
        names = {}
        values = {}
        clauses = []
        for index, (field, value) in enumerate(fields.items()):
            names[f"#f{index}"] = field
            values[f":v{index}"] = value
            clauses.append(f"#f{index} = :v{index}")
        self._table.update_item(
            Key=self._key(user_id, integration),
            UpdateExpression="SET " + ", ".join(clauses),
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )


__all__ = ["DynamoDBClient"]
