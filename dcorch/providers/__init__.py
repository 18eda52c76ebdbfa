#  Copyright (c) 2022 KTH Royal Institute of Technology, Sweden,
#  and the ExPECA Research Group (PI: Prof. James Gross).
#
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.

"""
Hardware specific providers and the registry used to look them up.
"""

from .base import Provider
from .cluster import ScvmmCluster, VmwareCluster
from .controller import IdracProvider
from .registry import ProviderRegistry
from .server import ServerProvider
from .switch import (
    Force10Switch,
    GenericSwitch,
    PowerConnectSwitch,
    SwitchProvider,
)
from .virtualmachine import ScvmmVirtualMachine, VmwareVirtualMachine
from .volume import CompellentVolume, EquallogicVolume

BUILTIN_PROVIDERS = (
    ('server', ServerProvider),
    ('controller', IdracProvider),
    ('volume', EquallogicVolume),
    ('volume', CompellentVolume),
    ('cluster', VmwareCluster),
    ('cluster', ScvmmCluster),
    ('virtualmachine', VmwareVirtualMachine),
    ('virtualmachine', ScvmmVirtualMachine),
    # switches are matched on their inventory, most specific first
    ('switch', Force10Switch),
    ('switch', PowerConnectSwitch),
    ('switch', GenericSwitch),
)


def register_builtin_providers(registry: ProviderRegistry) -> ProviderRegistry:
    for category, cls in BUILTIN_PROVIDERS:
        registry.register(category, cls)
    return registry


__all__ = [
    'BUILTIN_PROVIDERS',
    'Provider',
    'ProviderRegistry',
    'SwitchProvider',
    'register_builtin_providers',
]
