# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from .agent_configuration import AgentConfigurationStep
from .agent_lifecycle import AgentLifecycleStep
from .container_runtime import ContainerRuntimeDetectionStep, ContainerRuntimeIntegrationStep
from .convergence import ConvergenceStep
from .host_preparation import HostPreparationStep
from .identity_tagging import IdentityTaggingStep
from .mount_table import MountTablePersistenceStep
from .network_identity import NetworkIdentityStep
from .storage_discovery import StorageDiscoveryStep
from .storage_provisioning import StorageProvisioningStep


def default_steps():
    """The first-boot pipeline, in execution order."""
    return [
        NetworkIdentityStep(),
        AgentLifecycleStep(),
        HostPreparationStep(),
        ContainerRuntimeDetectionStep(),
        StorageDiscoveryStep(),
        StorageProvisioningStep(),
        ContainerRuntimeIntegrationStep(),
        MountTablePersistenceStep(),
        AgentConfigurationStep(),
        IdentityTaggingStep(),
        ConvergenceStep(),
    ]
