from src.infrastructure.risk_service.http_client import HttpRiskServiceClient, bearer_header
from src.infrastructure.risk_service.in_memory import InMemoryRiskService

__all__ = ["HttpRiskServiceClient", "InMemoryRiskService", "bearer_header"]
