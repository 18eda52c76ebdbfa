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


class OrchestratorError(Exception):
    pass


class ConfigurationError(OrchestratorError):
    """
    Unknown or duplicated property definitions, or a value that failed
    validation.
    """
    pass


class ResourceLookupError(OrchestratorError, LookupError):
    """
    No matching provider, or an unknown property or resource.
    """
    pass


class StateError(OrchestratorError):
    """
    An object was used before it was fully initialized.
    """
    pass


class NetworkTopologyError(OrchestratorError):
    pass


class PolicyViolation(OrchestratorError):
    """
    Tagging was requested for a network that should never be configured on
    a switch port.
    """
    pass


class ResourceError(OrchestratorError):
    """
    Wraps a failure of an external collaborator, naming the resource and
    the attempted operation. The original error is chained as __cause__.
    """

    def __init__(self, certname: str, operation: str, error: BaseException):
        super(ResourceError, self).__init__(
            f'{certname}: {operation} failed: {error}'
        )
        self.certname = certname
        self.operation = operation
        self.error = error


class UnconnectedServerError(OrchestratorError):
    """
    Servers whose NICs could not be found on any managed switch.
    """

    def __init__(self, certnames):
        self.certnames = list(certnames)
        super(UnconnectedServerError, self).__init__(
            f'Could not find switch ports for servers '
            f'{", ".join(self.certnames)}'
        )
