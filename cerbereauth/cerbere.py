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
import traceback
from urllib.parse import parse_qsl

from ._casclient import CerbereClient
from ._config import CerbereConfig
from ._errors import ParseError, ProtocolError, TransportError
from ._retry import RetryController
from ._utils import get_service_url, remove_query_params, redirect


__all__ = ['CerbereMiddleware',
           'CERBERE_USER_KEY',
           'CERBERE_INFO_KEY',
           'CERBERE_PROFILE_KEY']


log = logging.getLogger(__name__)

# environ keys
CERBERE_USER_KEY = 'cerbere.user'
CERBERE_INFO_KEY = 'cerbere.info'
CERBERE_PROFILE_KEY = 'cerbere.profile'


class CerbereMiddleware(object):
    """
    WSGI middleware authenticating requests against a Cerbere server.

    Every request without a ticket is sent to the Cerbere login page, so
    wrap only the login/callback part of the application (e.g. mount it
    on /login) and keep the authenticated user in the application's own
    session afterwards.

    verify - Called as verify(subject_id, profile, done), or
      verify(environ, subject_id, profile, done) when
      pass_environ_to_callback is set. It must call
      done(err=None, user=None, info=None): an `err` is a server error,
      a false `user` an authentication failure.

    logout_path - PATH_INFO that logs the user out of Cerbere.

    logout_return_url - Where the Cerbere server sends the user after
      logging out. Without it, the user stays on the server's page.

    casfailed_url - Where to send users whose authentication failed.
      A plain 401 is returned otherwise.

    Server options (cas_url, service_url, property_map,
    pass_environ_to_callback) may be given one by one or as a ready
    CerbereConfig.
    """

    def __init__(self, application, verify, cas_url=None, service_url=None,
                 property_map=None, pass_environ_to_callback=False,
                 logout_path=None, logout_return_url=None,
                 casfailed_url=None, config=None, client=None,
                 retry_controller=None):
        if not callable(verify):
            raise TypeError('CerbereMiddleware requires a verify callback')
        self._application = application
        self._verify = verify
        self._logout_path = logout_path
        self._logout_return_url = logout_return_url
        self._casfailed_url = casfailed_url

        if client is not None:
            config = client.config
        elif config is None:
            config = CerbereConfig(cas_url, service_url=service_url,
                                   property_map=property_map,
                                   pass_environ_to_callback=pass_environ_to_callback)
        self._config = config

        if client is None:
            client = CerbereClient(config)
        self._client = client

        if retry_controller is None:
            retry_controller = RetryController()
        self._retry = retry_controller

    def __call__(self, environ, start_response):
        path_info = environ.get('PATH_INFO', '')
        if self._logout_path is not None and path_info == self._logout_path:
            return self._logout(environ, start_response)

        params = dict(parse_qsl(environ.get('QUERY_STRING', '')))
        service_url = self._get_service_url(environ, params)
        ticket = params.get('ticket')
        if not ticket:
            # Redirect to Cerbere login
            return redirect(start_response,
                            self._client.login_url(service_url), 'CAS login')

        try:
            subject_id, profile = self._client.authenticate(ticket, service_url)
        except ProtocolError as e:
            # Most likely a stale ticket left in a bookmarked or
            # refreshed URL. Drop it and go through the login again,
            # once.
            retry_url = self._retry.retry_url(
                get_service_url(environ, strip=()))
            if retry_url is not None:
                log.warning('Ticket validation failed (%s), retrying via %s',
                            e, retry_url)
                return redirect(start_response, retry_url, 'Retry')
            log.warning('Ticket validation failed again, giving up: %s', e)
            return self._casfailed(environ, start_response)
        except ParseError as e:
            log.warning('Unusable validation response: %s', e)
            traceback.print_exc(file=environ['wsgi.errors'])
            return self._casfailed(environ, start_response)
        except TransportError:
            traceback.print_exc(file=environ['wsgi.errors'])
            return self._error(environ, start_response)

        return self._verified(environ, start_response, subject_id, profile)

    def _get_service_url(self, environ, params):
        service_url = self._config.service_url
        if service_url is None:
            return get_service_url(environ)
        # Carry the retry marker through the login round trip
        marker = self._retry.marker
        if marker in params:
            return remove_query_params(service_url, (marker,),
                                       extra=[(marker, params[marker])])
        return service_url

    def _verified(self, environ, start_response, subject_id, profile):
        outcome = []

        def done(err=None, user=None, info=None):
            outcome.append((err, user, info))

        if self._config.pass_environ_to_callback:
            self._verify(environ, subject_id, profile, done)
        else:
            self._verify(subject_id, profile, done)

        if not outcome:
            log.error('verify callback for %s never called done()', subject_id)
            return self._error(environ, start_response)

        err, user, info = outcome[0]
        if err is not None:
            log.error('verify callback failed for %s: %r', subject_id, err)
            environ['wsgi.errors'].write('{!r}\n'.format(err))
            return self._error(environ, start_response)
        if not user:
            log.warning('verify callback rejected %s', subject_id)
            return self._casfailed(environ, start_response)

        environ['AUTH_TYPE'] = 'CERBERE'
        environ['REMOTE_USER'] = str(subject_id)
        environ[CERBERE_USER_KEY] = user
        environ[CERBERE_INFO_KEY] = info
        environ[CERBERE_PROFILE_KEY] = profile
        return self._application(environ, start_response)

    def _logout(self, environ, start_response):
        return_url = self._logout_return_url
        url = self._client.logout_url(return_url, do_redirect=bool(return_url))
        return redirect(start_response, url, 'CAS logout')

    def _casfailed(self, environ, start_response):
        if self._casfailed_url is not None:
            start_response('302 Moved Temporarily', [
                ('Location', self._casfailed_url)
                ])
            return []
        else:
            # Default failure notice
            start_response('401 Unauthorized', [('Content-Type', 'text/plain')])
            return [b'Cerbere authentication failed\n']

    def _error(self, environ, start_response):
        start_response('500 Internal Server Error',
                       [('Content-Type', 'text/plain')])
        return [b'Cerbere authentication error\n']
