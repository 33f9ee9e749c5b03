"""
Query catalog for Azure Resource Graph inventory.

Each entry is a KQL query run across every resolved subscription. Queries
project the fields that end up as export columns; all of them sort on a
stable key so skip-based paging neither skips nor repeats rows.
"""
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .exceptions import ConfigError
from .models import QueryDefinition


class QueryCatalog:
    """Ordered, unique-named set of queries."""

    def __init__(self, queries: Iterable[QueryDefinition]):
        self._queries: Dict[str, QueryDefinition] = {}
        for definition in queries:
            if not definition.name:
                raise ConfigError("Query name must not be empty")
            if not definition.query or not definition.query.strip():
                raise ConfigError(f"Query {definition.name} has no query text")
            if definition.name in self._queries:
                raise ConfigError(f"Duplicate query name in catalog: {definition.name}")
            self._queries[definition.name] = definition

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> 'QueryCatalog':
        """Build a catalog from (name, query text) pairs."""
        return cls(QueryDefinition(name=name, query=query) for name, query in pairs)

    def __iter__(self) -> Iterator[QueryDefinition]:
        return iter(self._queries.values())

    def __len__(self) -> int:
        return len(self._queries)

    def __contains__(self, name: object) -> bool:
        return name in self._queries

    def __getitem__(self, name: str) -> QueryDefinition:
        return self._queries[name]

    def get(self, name: str) -> Optional[QueryDefinition]:
        return self._queries.get(name)

    def names(self) -> List[str]:
        return list(self._queries)

    def select(self, names: Iterable[str]) -> 'QueryCatalog':
        """
        Restrict the catalog to the given names, keeping catalog order.

        Raises:
            ConfigError: If any name is not in the catalog
        """
        wanted = list(names)
        unknown = [n for n in wanted if n not in self._queries]
        if unknown:
            raise ConfigError(f"Unknown query name(s): {', '.join(unknown)}")
        wanted_set = set(wanted)
        return QueryCatalog(q for q in self if q.name in wanted_set)


# =============================================================================
# Default Inventory Queries
# =============================================================================

_QUERIES: List[Tuple[str, str]] = [
    # Subscriptions & resource groups
    ("Subscriptions", """
ResourceContainers
| where type == 'microsoft.resources/subscriptions'
| project subscriptionId, name, tenantId, state = tostring(properties.state), tags
| order by subscriptionId asc
"""),
    ("ResourceGroups", """
ResourceContainers
| where type == 'microsoft.resources/subscriptions/resourcegroups'
| project id, name, subscriptionId, location, tags,
    provisioningState = tostring(properties.provisioningState)
| order by id asc
"""),
    ("ResourceCountsByType", """
Resources
| summarize resourceCount = count() by subscriptionId, type
| order by subscriptionId asc, type asc
"""),

    # Compute
    ("VirtualMachines", """
Resources
| where type =~ 'microsoft.compute/virtualmachines'
| extend vmSize = tostring(properties.hardwareProfile.vmSize),
    osType = tostring(properties.storageProfile.osDisk.osType),
    osDiskSizeGB = toint(properties.storageProfile.osDisk.diskSizeGB),
    dataDiskCount = array_length(properties.storageProfile.dataDisks),
    powerState = tostring(properties.extended.instanceView.powerState.code)
| project id, name, subscriptionId, resourceGroup, location, vmSize, osType,
    osDiskSizeGB, dataDiskCount, powerState, zones, tags
| order by id asc
"""),
    ("VirtualMachineScaleSets", """
Resources
| where type =~ 'microsoft.compute/virtualmachinescalesets'
| project id, name, subscriptionId, resourceGroup, location,
    skuName = tostring(sku.name), capacity = toint(sku.capacity), tags
| order by id asc
"""),
    ("ManagedDisks", """
Resources
| where type =~ 'microsoft.compute/disks'
| extend diskSizeGB = toint(properties.diskSizeGB),
    diskState = tostring(properties.diskState),
    managedBy = tostring(managedBy)
| project id, name, subscriptionId, resourceGroup, location,
    skuName = tostring(sku.name), diskSizeGB, diskState, managedBy, tags
| order by id asc
"""),
    ("UnattachedDisks", """
Resources
| where type =~ 'microsoft.compute/disks'
| where isempty(managedBy) and tostring(properties.diskState) =~ 'Unattached'
| project id, name, subscriptionId, resourceGroup, location,
    diskSizeGB = toint(properties.diskSizeGB), timeCreated = properties.timeCreated, tags
| order by id asc
"""),
    ("DiskSnapshots", """
Resources
| where type =~ 'microsoft.compute/snapshots'
| project id, name, subscriptionId, resourceGroup, location,
    diskSizeGB = toint(properties.diskSizeGB),
    sourceResourceId = tostring(properties.creationData.sourceResourceId),
    timeCreated = properties.timeCreated, incremental = properties.incremental
| order by id asc
"""),

    # Storage
    ("StorageAccounts", """
Resources
| where type =~ 'microsoft.storage/storageaccounts'
| project id, name, subscriptionId, resourceGroup, location, kind,
    skuName = tostring(sku.name),
    accessTier = tostring(properties.accessTier),
    httpsOnly = properties.supportsHttpsTrafficOnly,
    minimumTlsVersion = tostring(properties.minimumTlsVersion),
    allowBlobPublicAccess = properties.allowBlobPublicAccess, tags
| order by id asc
"""),

    # Networking
    ("VirtualNetworks", """
Resources
| where type =~ 'microsoft.network/virtualnetworks'
| project id, name, subscriptionId, resourceGroup, location,
    addressPrefixes = properties.addressSpace.addressPrefixes,
    subnetCount = array_length(properties.subnets), tags
| order by id asc
"""),
    ("NetworkSecurityGroups", """
Resources
| where type =~ 'microsoft.network/networksecuritygroups'
| project id, name, subscriptionId, resourceGroup, location,
    securityRules = properties.securityRules,
    subnetCount = array_length(properties.subnets),
    nicCount = array_length(properties.networkInterfaces), tags
| order by id asc
"""),
    ("PublicIpAddresses", """
Resources
| where type =~ 'microsoft.network/publicipaddresses'
| project id, name, subscriptionId, resourceGroup, location,
    ipAddress = tostring(properties.ipAddress),
    allocationMethod = tostring(properties.publicIPAllocationMethod),
    associatedTo = tostring(properties.ipConfiguration.id),
    skuName = tostring(sku.name), tags
| order by id asc
"""),
    ("NetworkInterfaces", """
Resources
| where type =~ 'microsoft.network/networkinterfaces'
| project id, name, subscriptionId, resourceGroup, location,
    attachedVm = tostring(properties.virtualMachine.id),
    privateIpAddress = tostring(properties.ipConfigurations[0].properties.privateIPAddress),
    tags
| order by id asc
"""),
    ("LoadBalancers", """
Resources
| where type =~ 'microsoft.network/loadbalancers'
| project id, name, subscriptionId, resourceGroup, location,
    skuName = tostring(sku.name),
    frontendCount = array_length(properties.frontendIPConfigurations),
    backendPoolCount = array_length(properties.backendAddressPools), tags
| order by id asc
"""),

    # App platform
    ("AppServicePlans", """
Resources
| where type =~ 'microsoft.web/serverfarms'
| project id, name, subscriptionId, resourceGroup, location, kind,
    skuName = tostring(sku.name), workerCount = toint(properties.numberOfWorkers), tags
| order by id asc
"""),
    ("WebApps", """
Resources
| where type =~ 'microsoft.web/sites'
| project id, name, subscriptionId, resourceGroup, location, kind,
    state = tostring(properties.state),
    defaultHostName = tostring(properties.defaultHostName),
    httpsOnly = properties.httpsOnly, tags
| order by id asc
"""),
    ("AksClusters", """
Resources
| where type =~ 'microsoft.containerservice/managedclusters'
| project id, name, subscriptionId, resourceGroup, location,
    kubernetesVersion = tostring(properties.kubernetesVersion),
    agentPools = properties.agentPoolProfiles,
    nodeResourceGroup = tostring(properties.nodeResourceGroup), tags
| order by id asc
"""),
    ("ContainerRegistries", """
Resources
| where type =~ 'microsoft.containerregistry/registries'
| project id, name, subscriptionId, resourceGroup, location,
    skuName = tostring(sku.name),
    adminUserEnabled = properties.adminUserEnabled, tags
| order by id asc
"""),

    # Data
    ("SqlServers", """
Resources
| where type =~ 'microsoft.sql/servers'
| project id, name, subscriptionId, resourceGroup, location,
    version = tostring(properties.version),
    publicNetworkAccess = tostring(properties.publicNetworkAccess), tags
| order by id asc
"""),
    ("SqlDatabases", """
Resources
| where type =~ 'microsoft.sql/servers/databases'
| where name != 'master'
| project id, name, subscriptionId, resourceGroup, location,
    skuName = tostring(sku.name), tier = tostring(sku.tier),
    maxSizeBytes = tolong(properties.maxSizeBytes), tags
| order by id asc
"""),
    ("CosmosDbAccounts", """
Resources
| where type =~ 'microsoft.documentdb/databaseaccounts'
| project id, name, subscriptionId, resourceGroup, location, kind,
    consistencyLevel = tostring(properties.consistencyPolicy.defaultConsistencyLevel),
    locations = properties.locations, tags
| order by id asc
"""),

    # Security & resilience
    ("KeyVaults", """
Resources
| where type =~ 'microsoft.keyvault/vaults'
| project id, name, subscriptionId, resourceGroup, location,
    skuName = tostring(properties.sku.name),
    softDeleteEnabled = properties.enableSoftDelete,
    purgeProtectionEnabled = properties.enablePurgeProtection, tags
| order by id asc
"""),
    ("RecoveryServicesVaults", """
Resources
| where type =~ 'microsoft.recoveryservices/vaults'
| project id, name, subscriptionId, resourceGroup, location,
    skuName = tostring(sku.name), tags
| order by id asc
"""),
    ("AdvisorRecommendations", """
AdvisorResources
| where type == 'microsoft.advisor/recommendations'
| project id, subscriptionId, resourceGroup,
    category = tostring(properties.category),
    impact = tostring(properties.impact),
    impactedResource = tostring(properties.resourceMetadata.resourceId),
    problem = tostring(properties.shortDescription.problem)
| order by id asc
"""),
    ("PolicyNonCompliance", """
PolicyResources
| where type =~ 'microsoft.policyinsights/policystates'
| where properties.complianceState =~ 'NonCompliant'
| project id, subscriptionId,
    resourceId = tostring(properties.resourceId),
    policyDefinitionName = tostring(properties.policyDefinitionName),
    policyAssignmentName = tostring(properties.policyAssignmentName)
| order by id asc
"""),
]


DEFAULT_CATALOG = QueryCatalog.from_pairs((name, query.strip()) for name, query in _QUERIES)
