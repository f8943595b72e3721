"""Constants for the Cloudflare Access Operator."""

# API Group
API_GROUP = "access.cloudflare.dev"
API_GROUP_VERSION = f"{API_GROUP}/v1alpha1"
API_VERSION = "v1alpha1"

# Resource Kinds
KIND_PROVIDER = "Provider"
KIND_ACCESS_CA_CERTIFICATE = "AccessCACertificate"

# Plurals
PLURAL_PROVIDERS = "providers"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Controller name used in structured logs
CONTROLLER_NAME = "cloudflare-access-operator"

# Cloudflare API
DEFAULT_API_BASE_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_API_TOKEN_KEY = "api-token"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0

# Container scope kinds
LEVEL_ACCOUNT = "account"
LEVEL_ZONE = "zone"

# Condition Types
COND_READY = "Ready"
COND_PROVIDER_NOT_READY = "ProviderNotReady"
COND_AUTH_VALID = "AuthValid"
COND_ENDPOINT_REACHABLE = "EndpointReachable"
COND_CREATION_FAILED = "CreationFailed"
COND_IMPORT_FAILED = "ImportFailed"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_SUCCEEDED = "ValidateSucceeded"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_CERTIFICATE_CREATED = "CertificateCreated"
EVENT_REASON_CERTIFICATE_IMPORTED = "CertificateImported"
EVENT_REASON_CERTIFICATE_DELETED = "CertificateDeleted"
EVENT_REASON_DRIFT_DETECTED = "DriftDetected"
