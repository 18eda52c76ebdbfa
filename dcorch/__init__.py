from .component import Component
from .config import DeploymentContext, DeviceConfig, OrchestratorConfig
from .errors import *
from .network import NetworkConfiguration
from .properties import PropertyDefinition, PropertySet, PropertyStore
from .providers import Provider, ProviderRegistry, register_builtin_providers
from .resources import *
from .service import Service
from .switch_collection import SwitchCollection
from .topology import NetworkTopologyResolver
from .validators import Check
