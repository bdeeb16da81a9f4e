from datetime import date, datetime
from uuid import UUID
from pydantic import BaseModel


def serialize_data(data):
    """Convert datetime, enum, UUID and pydantic objects to serializable formats for caching."""
    if isinstance(data, BaseModel):
        return serialize_data(data.model_dump(by_alias=True))
    if isinstance(data, dict):
        return {k: serialize_data(v) for k, v in data.items()}
    elif isinstance(data, (list, tuple)):
        return [serialize_data(item) for item in data]
    elif isinstance(data, (date, datetime)):
        return data.isoformat()
    elif isinstance(data, UUID):
        return str(data)
    elif hasattr(data, 'value'):  # Enum
        return data.value
    else:
        return data
