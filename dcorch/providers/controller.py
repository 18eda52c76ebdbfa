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
from .server import cert2serial, is_dell_cert


def _force_reboot(provider: IdracProvider) -> None:
    service = provider.resource.service
    if service is None:
        provider.logger.warning(f'Service is not set for '
                                f'{provider.resource.certname}, cannot '
                                f'determine force_reboot value')
        return
    provider['force_reboot'] = not service.retry


class IdracProvider(Provider):
    """
    Configures the iDRAC of a Dell server: BIOS, RAID, NIC partitioning and
    boot device.
    """

    provider_name: ClassVar[str] = 'idrac'
    protocol_types = ('asm::idrac',)

    schema = PropertySet(
        PropertyDefinition('servicetag',
                           validation=re.compile(r'^[a-z0-9]{7}$', re.I)),
        PropertyDefinition('nfsipaddress', validation=Check.ANY_IP),
        PropertyDefinition('model', validation=str),
        PropertyDefinition('nfssharepath', default='/var/nfs/idrac_config_xml',
                           validation=str),
        PropertyDefinition('target_boot_device', validation=str),
        PropertyDefinition('enable_npar', default=False,
                           validation=Check.BOOLEAN),
        PropertyDefinition('config_xml', validation=str),
        PropertyDefinition('raid_configuration', default_factory=dict,
                           validation=dict),
        PropertyDefinition('network_configuration', default_factory=dict,
                           validation=dict),
        PropertyDefinition('bios_settings', default_factory=dict,
                           validation=dict),
        PropertyDefinition('server_pool', validation=str),
        PropertyDefinition('target_ip', validation=Check.ANY_IP),
        PropertyDefinition('target_iscsi', validation=str),
        PropertyDefinition('force_reboot', default=False,
                           validation=Check.BOOLEAN),
        PropertyDefinition('ensure', default='present',
                           validation=['present', 'absent', 'teardown']),
    )

    def configure_hook(self) -> None:
        _force_reboot(self)

    def supports_server(self, server) -> bool:
        # only checks for a Dell certname, not every Dell server has an iDRAC
        return is_dell_cert(server.certname)

    def configure_for_server(self, server) -> bool:
        """
        Copies the network configuration, service tag, model and BIOS
        settings of a server into this iDRAC configuration.

        Returns
        -------
        bool
            False when the server lacks the configuration needed.
        """
        certname = self.resource.certname
        if not server.network_config.cards:
            self.logger.warning(f'Could not configure iDRAC {certname} for '
                                f'server {server.certname} without network '
                                f'configuration for the server')
            return False

        if not self.debug and server.device_config is None:
            self.logger.warning(f'Could not configure iDRAC {certname} for '
                                f'server {server.certname} without device '
                                f'configuration for the server')
            return False

        self['network_configuration'] = server.network_config.to_dict()
        self['servicetag'] = cert2serial(server.certname)
        if server.model:
            self['model'] = server.model.split(' ')[-1].lower()
        self['bios_settings'].update(server.bios_settings())
        self.uuid = server.uuid
        return True
