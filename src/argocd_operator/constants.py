"""Constants for the Argo CD Operator."""

# API Group
API_GROUP = "argoproj.io"
API_VERSION = "v1beta1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_ARGOCD = "ArgoCD"
PLURAL_ARGOCD = "argocds"

# Controller name used in structured logs
CONTROLLER_NAME = "argocd-operator"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Field Manager
FIELD_MANAGER = "argocd-operator"

# Labels
LABEL_NAME = "app.kubernetes.io/name"
LABEL_PART_OF = "app.kubernetes.io/part-of"
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_COMPONENT = "app.kubernetes.io/component"
LABEL_PART_OF_VALUE = "argocd"
LABEL_NAMESPACE_MANAGED_BY = "argocd.argoproj.io/managed-by"
LABEL_NAMESPACE_CLAIMED_BY = "argocd.argoproj.io/managed-by-cluster-argocd"
LABEL_SECRET_TYPE = "argocd.argoproj.io/secret-type"
LABEL_RBAC_SCOPE = "argocds.argoproj.io/rbac-scope"

# RBAC scopes recorded on managed roles and role bindings
RBAC_SCOPE_INSTANCE = "instance"
RBAC_SCOPE_MANAGED = "managed-namespace"
RBAC_SCOPE_SOURCE = "source-namespace"

# Annotations
ANNOTATION_INSTANCE_NAME = "argocds.argoproj.io/name"
ANNOTATION_INSTANCE_NAMESPACE = "argocds.argoproj.io/namespace"

# Components
COMPONENT_APPLICATION_CONTROLLER = "argocd-application-controller"
COMPONENT_SERVER = "argocd-server"
COMPONENT_REPO_SERVER = "argocd-repo-server"
COMPONENT_REDIS = "argocd-redis"
COMPONENT_DEX = "argocd-dex-server"
COMPONENT_KEYCLOAK = "keycloak"
COMPONENT_APPLICATIONSET = "argocd-applicationset-controller"
COMPONENT_NOTIFICATIONS = "argocd-notifications-controller"
COMPONENT_ROLLOUTS = "argo-rollouts"

# Well-known object names
CONFIGMAP_ARGOCD = "argocd-cm"
CONFIGMAP_RBAC = "argocd-rbac-cm"
CONFIGMAP_SSH_KNOWN_HOSTS = "argocd-ssh-known-hosts-cm"
CONFIGMAP_TLS_CERTS = "argocd-tls-certs-cm"
CONFIGMAP_GPG_KEYS = "argocd-gpg-keys-cm"
CONFIGMAP_NOTIFICATIONS = "argocd-notifications-cm"
CONFIGMAP_APPSET_GITLAB_SCM_TLS = "argocd-appset-gitlab-scm-tls-certs-cm"
SECRET_ARGOCD = "argocd-secret"
SECRET_NOTIFICATIONS = "argocd-notifications-secret"
SECRET_ROLLOUTS_NOTIFICATION = "argo-rollouts-notification-secret"
SECRET_REPO_SERVER_TLS = "argocd-repo-server-tls"
SECRET_REDIS_TLS = "argocd-operator-redis-tls"
SECRET_KEYCLOAK = "keycloak-secret"
SECRET_TYPE_CLUSTER = "cluster"
PROMETHEUS_RULE_COMPONENT_STATUS = "argocd-component-status-alert"

# Default images
DEFAULT_ARGOCD_IMAGE = "quay.io/argoproj/argocd"
DEFAULT_ARGOCD_VERSION = "v2.10.6"
DEFAULT_DEX_IMAGE = "ghcr.io/dexidp/dex"
DEFAULT_DEX_VERSION = "v2.38.0"
DEFAULT_KEYCLOAK_IMAGE = "quay.io/keycloak/keycloak"
DEFAULT_KEYCLOAK_VERSION = "24.0.2"
DEFAULT_REDIS_IMAGE = "redis"
DEFAULT_REDIS_VERSION = "7.0.15-alpine"
DEFAULT_ROLLOUTS_IMAGE = "quay.io/argoproj/argo-rollouts"
DEFAULT_ROLLOUTS_VERSION = "v1.6.6"

# Default ports
PORT_SERVER_HTTP = 8080
PORT_SERVER_HTTPS = 8083
PORT_SERVER_METRICS = 8083
PORT_REPO_SERVER = 8081
PORT_REPO_SERVER_METRICS = 8084
PORT_CONTROLLER_METRICS = 8082
PORT_REDIS = 6379
PORT_DEX_HTTP = 5556
PORT_DEX_GRPC = 5557
PORT_KEYCLOAK = 8080
PORT_APPSET_WEBHOOK = 7000
PORT_APPSET_METRICS = 8080
PORT_ROLLOUTS_METRICS = 8090

DEFAULT_NODE_SELECTOR = {"kubernetes.io/os": "linux"}

# Condition Types
COND_RECONCILED = "Reconciled"
COND_ERROR_OCCURRED = "ErrorOccurred"
COND_SSO_CONFIGURED = "SSOConfigured"
COND_SOURCE_NAMESPACE_CONFLICT = "SourceNamespaceConflict"

# Component phases reported in status
PHASE_AVAILABLE = "Available"
PHASE_PENDING = "Pending"
PHASE_RUNNING = "Running"
PHASE_FAILED = "Failed"
PHASE_UNKNOWN = "Unknown"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_PROVIDER_SWITCHED = "ProviderSwitched"
EVENT_REASON_DEPRECATION_NOTICE = "DeprecationNotice"
EVENT_REASON_SOURCE_NAMESPACE_CONFLICT = "SourceNamespaceConflict"
EVENT_REASON_TEARDOWN_COMPLETED = "TeardownCompleted"

# Optional API groups probed on the cluster
API_GROUP_ROUTE = "route.openshift.io"
API_GROUP_MONITORING = "monitoring.coreos.com"
API_GROUP_TEMPLATE = "template.openshift.io"
