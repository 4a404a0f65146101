from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    store_backend: str
    store_connected: bool
    total_records: int
    capacity_limit: int
