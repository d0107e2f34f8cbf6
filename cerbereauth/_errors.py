# Copyright 2018 Allan Saddi <allan@saddi.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

__all__ = ['CerbereError',
           'ConfigurationError',
           'TransportError',
           'ResponseTooLarge',
           'ParseError',
           'ProtocolError']


class CerbereError(Exception):
    """Base class for everything raised by this package."""


class ConfigurationError(CerbereError, ValueError):
    """Invalid construction-time option. Never retried."""


class TransportError(CerbereError):
    """Network failure, timeout or unusable HTTP response."""


class ResponseTooLarge(TransportError):

    def __init__(self, limit):
        super(ResponseTooLarge, self).__init__(
            'Response exceeded {} bytes'.format(limit))
        self.limit = limit


class ParseError(CerbereError):
    """
    Validation response is not well-formed XML.

    The raw response is kept in `payload` for diagnostics. It is
    deliberately left out of the message so it never ends up in front
    of a user.
    """
    def __init__(self, message, payload=None):
        super(ParseError, self).__init__(message)
        self.payload = payload


class ProtocolError(CerbereError):
    """Well-formed response that does not authenticate anybody."""

    def __init__(self, message, code=None):
        if code:
            text = 'Validation failed [{}]: {}'.format(code, message)
        else:
            text = message
        super(ProtocolError, self).__init__(text)
        self.code = code
        self.message = message
