from datetime import datetime
from typing import Any
from uuid import UUID

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict, TypeAdapter
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Dialect
from sqlalchemy.sql.type_api import TypeEngine
from sqlalchemy.types import TypeDecorator


class PydanticJSON(TypeDecorator):
    """JSON column whose contents are validated by a pydantic `TypeAdapter`.

    JSONB on PostgreSQL, plain JSON elsewhere. Assign a new value to change
    the column: edits inside the document are not tracked by the ORM.
    """

    impl = sa.JSON
    cache_ok = True

    def __init__(self, pydantic_type: Any) -> None:
        super().__init__()
        # Kept under the constructor argument name for the statement cache key.
        self.pydantic_type = pydantic_type
        self._adapter: TypeAdapter[Any] = TypeAdapter(pydantic_type)

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(sa.JSON())

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        return self._adapter.dump_python(
            self._adapter.validate_python(value), mode="json"
        )

    def process_result_value(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        return self._adapter.validate_python(value)


class BaseDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime | None
