"""Stable identifiers of the built-in pipeline steps."""

CHECK_BUILD = "check_build"
RESOURCE_GROUP = "resource_group"
VALIDATE_CLUSTER = "validate_cluster"
TEMPLATE_DEPLOY = "template_deploy"
TEMPLATE_MONITOR = "template_monitor"
CLUSTER_INFO = "cluster_info"
DEPLOY_DCOS = "deploy_dcos"
DEPLOY_SWARM = "deploy_swarm"
DEPLOY_KUBERNETES = "deploy_kubernetes"
ENABLE_PORTS = "enable_ports"
