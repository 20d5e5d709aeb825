"""Services package - Remote clients and the provisioning saga."""
from .bulk_provisioning_service import BatchError, BatchSummary, BulkProvisioningService
from .clients import ServiceClients, close_service_clients, get_service_clients
from .credential_service import CredentialProvisioner, CredentialResult
from .profile_service import ProfileFields, ProfileProvisioner, ProfileResult
from .resource_resolver import RemoteResourceResolver, ResolutionResult
from .row_orchestrator import RowOrchestrator, RowOutcome, RowStage, RowState

__all__ = [
    "BatchError",
    "BatchSummary",
    "BulkProvisioningService",
    "CredentialProvisioner",
    "CredentialResult",
    "ProfileFields",
    "ProfileProvisioner",
    "ProfileResult",
    "RemoteResourceResolver",
    "ResolutionResult",
    "RowOrchestrator",
    "RowOutcome",
    "RowStage",
    "RowState",
    "ServiceClients",
    "close_service_clients",
    "get_service_clients",
]
