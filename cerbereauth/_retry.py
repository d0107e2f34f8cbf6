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

import time
from urllib.parse import urlsplit, parse_qsl

from ._utils import remove_query_params


__all__ = ['RetryController',
           'RETRY_MARKER']


RETRY_MARKER = '_cas_retry'


class RetryController(object):
    """
    Single, time-boxed retry after a failed ticket validation.

    The usual failure is a stale ticket left in a bookmarked or
    refreshed URL. Dropping the ticket and sending the user through
    the CAS login again fixes it. The URL carries the current time
    window as a marker, and a failure on a URL already marked with the
    current window is final.
    """

    def __init__(self, window=60, marker=RETRY_MARKER, clock=time.time):
        self.window = window
        self.marker = marker
        self._clock = clock

    def current_token(self):
        return int(self._clock() // self.window)

    def marker_token(self, url):
        for k, v in parse_qsl(urlsplit(url).query, keep_blank_values=True):
            if k == self.marker:
                return v
        return None

    def retry_url(self, url):
        """
        Returns where to redirect for another attempt, or None if this
        URL was already retried within the current window.
        """
        token = str(self.current_token())
        if self.marker_token(url) == token:
            return None
        return remove_query_params(url, ('ticket', self.marker),
                                   extra=[(self.marker, token)])
