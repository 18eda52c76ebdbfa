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
Typed resources, one class per resource category.
"""

from typing import Type

from ..errors import ResourceLookupError
from .base import Resource
from .cluster import Cluster
from .controller import Controller
from .server import Server
from .switch import Switch
from .virtualmachine import VirtualMachine
from .volume import Volume

RESOURCE_CLASSES = {
    cls.category: cls
    for cls in (Cluster, Controller, Server, Switch, VirtualMachine, Volume)
}


def resource_class(category: str) -> Type[Resource]:
    try:
        return RESOURCE_CLASSES[category.lower()]
    except KeyError:
        raise ResourceLookupError(f'Unknown resource category {category}')


__all__ = [
    'Cluster',
    'Controller',
    'Resource',
    'Server',
    'Switch',
    'VirtualMachine',
    'Volume',
    'resource_class',
]
