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

import logging

import requests

from ._errors import TransportError, ResponseTooLarge


__all__ = ['RequestsTransport',
           'DEFAULT_TIMEOUT',
           'DEFAULT_MAX_RESPONSE_SIZE']


log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
DEFAULT_MAX_RESPONSE_SIZE = 1000000


class RequestsTransport(object):
    """
    Sends a ValidationRequest with requests and returns the raw response
    body. Decoding is left to the XML parser, which honours a BOM or the
    encoding declared in the prolog.

    timeout - Connect and read timeout, in seconds.

    max_response_size - Ceiling on the response body, in bytes. The
      connection is dropped as soon as it is exceeded.

    session - Optional requests.Session (connection pooling, custom CA
      bundle...). The requests module itself is used otherwise.
    """

    chunk_size = 8192

    def __init__(self, timeout=DEFAULT_TIMEOUT,
                 max_response_size=DEFAULT_MAX_RESPONSE_SIZE, session=None):
        self._timeout = timeout
        self._max_response_size = max_response_size
        self._session = session

    def send(self, request):
        http = self._session if self._session is not None else requests
        log.debug('%s %s', request.method, request.url)
        try:
            r = http.request(request.method, request.url,
                             headers=dict(request.headers),
                             data=request.body.encode('utf-8'),
                             timeout=self._timeout, stream=True)
        except requests.RequestException as e:
            raise TransportError(
                'Cerbere server unreachable: {}'.format(e)) from e

        try:
            r.raise_for_status()
            chunks = []
            size = 0
            for chunk in r.iter_content(self.chunk_size):
                size += len(chunk)
                if size > self._max_response_size:
                    log.warning('Response from %s exceeded %d bytes',
                                request.url, self._max_response_size)
                    raise ResponseTooLarge(self._max_response_size)
                chunks.append(chunk)
        except requests.RequestException as e:
            raise TransportError(
                'Cerbere validation request failed: {}'.format(e)) from e
        finally:
            r.close()

        return b''.join(chunks)
