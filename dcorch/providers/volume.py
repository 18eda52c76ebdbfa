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

from __future__ import annotations

import re
from typing import ClassVar

from ..properties import PropertyDefinition, PropertySet
from ..validators import Check
from .base import Provider

_PERCENTAGE = re.compile(r'\d*%')


class EquallogicVolume(Provider):
    provider_name: ClassVar[str] = 'equallogic'
    protocol_types = ('asm::volume::equallogic',)

    schema = PropertySet(
        PropertyDefinition('size', validation=re.compile(r'\d+(m|g|t|GB|MB|TB)')),
        PropertyDefinition('ensure', default='present',
                           validation=['present', 'absent']),
        PropertyDefinition('auth_ensure', default='present',
                           validation=['present', 'absent']),
        PropertyDefinition('thinprovision', default='enable',
                           validation=['enable', 'disable']),
        PropertyDefinition('snapreserve', default='100%',
                           validation=_PERCENTAGE),
        PropertyDefinition('thinminreserve', default='10%',
                           validation=_PERCENTAGE),
        PropertyDefinition('thingrowthwarn', default='60%',
                           validation=_PERCENTAGE),
        PropertyDefinition('thingrowthmax', default='100%',
                           validation=_PERCENTAGE),
        PropertyDefinition('thinwarnsoftthres', default='60%',
                           validation=_PERCENTAGE),
        PropertyDefinition('thinwarnhardthres', default='90%',
                           validation=_PERCENTAGE),
        PropertyDefinition('multihostaccess', default='enable',
                           validation=['enable', 'disable']),
        PropertyDefinition('decrypt', default=False,
                           validation=Check.BOOLEAN),
        PropertyDefinition('poolname', default='default',
                           validation=re.compile(r'^\w+$')),
        PropertyDefinition('passwd', validation=str),
        PropertyDefinition('iqnorip', validation=str),
        PropertyDefinition('auth_type', validation=str),
        PropertyDefinition('chap_user_name', validation=str),

        PropertyDefinition('add_to_sdrs', default='', validation=str,
                           tags='extra'),
    )

    @property
    def fc(self) -> bool:
        return False


class CompellentVolume(Provider):
    provider_name: ClassVar[str] = 'compellent'
    protocol_types = ('asm::volume::compellent',)
    json_facts = ('inventory', 'storage_profiles')

    schema = PropertySet(
        PropertyDefinition('size', default='100g',
                           validation=re.compile(r'^\d+(k|m|t|KB|MB|GB|TB)$',
                                                 re.I)),
        PropertyDefinition('boot', default=False, validation=Check.BOOLEAN),
        PropertyDefinition('volumefolder', default='', validation=str),
        PropertyDefinition('purge', default='yes', validation=['yes', 'no']),
        PropertyDefinition('volume_notes', default='', validation=str),
        PropertyDefinition('server_notes', default='', validation=str),
        PropertyDefinition('replayprofile', default='Sample', validation=str),
        PropertyDefinition('storageprofile', default='Low Priority',
                           validation=str),
        PropertyDefinition('servername', default='', validation=str),
        PropertyDefinition('operatingsystem', default='VMWare ESX 5.1',
                           validation=str),
        PropertyDefinition('serverfolder', default='', validation=str),
        PropertyDefinition('wwn', default='', validation=str),
        PropertyDefinition('porttype', default='FibreChannel', validation=str),
        PropertyDefinition('manual', default=False, validation=Check.BOOLEAN),
        PropertyDefinition('force', default=False, validation=Check.BOOLEAN),
        PropertyDefinition('readonly', default=False,
                           validation=Check.BOOLEAN),
        PropertyDefinition('singlepath', default=False,
                           validation=Check.BOOLEAN),
        PropertyDefinition('lun', default='', validation=str),
        PropertyDefinition('localport', default='', validation=str),
        PropertyDefinition('ensure', default='present',
                           validation=['present', 'absent']),

        PropertyDefinition('configuresan', default=False,
                           validation=Check.BOOLEAN, tags='extra'),
        PropertyDefinition('add_to_sdrs', default='', validation=str,
                           tags='extra'),
    )

    @property
    def fc(self) -> bool:
        return self['porttype'] == 'FibreChannel' and self['configuresan']
