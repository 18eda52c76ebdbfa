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

from typing import Any, Dict

from ..providers.base import ResourceMap
from .base import Resource


class Cluster(Resource):
    category = 'cluster'

    def host_resources(self, server, host_ensure: str = 'present') \
            -> ResourceMap:
        return self.provider.host_resources(server, host_ensure)

    def evict_server(self, server) -> Dict[str, Any]:
        """
        Removes a server from this cluster.
        """
        return self.delegate(self.provider, 'evict_server', server)
