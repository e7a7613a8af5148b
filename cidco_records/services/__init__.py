from cidco_records.services.storage_service import StorageService
from cidco_records.services.evidence_service import EvidenceService
from cidco_records.services.email_service import EmailService
from cidco_records.services.registry_service import RegistryService, RegistryFilter
from cidco_records.services.user_service import UserService

__all__ = [
    "StorageService",
    "EvidenceService",
    "EmailService",
    "RegistryService",
    "RegistryFilter",
    "UserService",
]
