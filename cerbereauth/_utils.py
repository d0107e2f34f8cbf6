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

from html import escape
from urllib.parse import quote, urlencode, urlsplit, urlunsplit, parse_qsl


__all__ = ['get_host',
           'get_service_url',
           'remove_query_params',
           'redirect']


_DEFAULT_PORTS = {'http': '80', 'https': '443'}


def _first(value):
    # Proxies may append to these headers
    return value.split(',')[0].strip()


def get_host(environ, scheme=None):
    """Host (and non-default port) the request was addressed to."""
    if environ.get('HTTP_X_FORWARDED_HOST'):
        return _first(environ['HTTP_X_FORWARDED_HOST'])
    if environ.get('HTTP_HOST'):
        return environ['HTTP_HOST']

    if scheme is None:
        scheme = environ['wsgi.url_scheme']
    host = environ['SERVER_NAME']
    port = environ.get('SERVER_PORT')
    if port and port != _DEFAULT_PORTS.get(scheme):
        host += ':' + port
    return host


def get_service_url(environ, strip=('ticket',)):
    """
    Reconstructs the service URL the CAS server should send the user
    back to, honouring the usual reverse proxy headers.

    scheme: X-Forwarded-Proto, X-Proxied-Protocol, then wsgi.url_scheme
    host: X-Forwarded-Host, Host, then SERVER_NAME/SERVER_PORT
    path: X-Proxied-Request-Uri, then SCRIPT_NAME + PATH_INFO

    Query parameters named in `strip` are dropped, the rest are kept.
    """
    scheme = environ.get('HTTP_X_FORWARDED_PROTO') or \
        environ.get('HTTP_X_PROXIED_PROTOCOL') or \
        environ['wsgi.url_scheme']
    scheme = _first(scheme)

    if environ.get('HTTP_X_PROXIED_REQUEST_URI'):
        path = urlsplit(environ['HTTP_X_PROXIED_REQUEST_URI']).path
    else:
        path = quote(environ.get('SCRIPT_NAME', '') +
                     environ.get('PATH_INFO', ''))

    params = [(k, v) for k, v in
              parse_qsl(environ.get('QUERY_STRING', ''), keep_blank_values=True)
              if k not in strip]
    return urlunsplit((scheme, get_host(environ, scheme), path or '/',
                       urlencode(params), ''))


def remove_query_params(url, names, extra=None):
    """
    Returns `url` without the query parameters in `names`. Pairs in
    `extra` are appended afterwards.
    """
    parts = urlsplit(url)
    params = [(k, v) for k, v in
              parse_qsl(parts.query, keep_blank_values=True)
              if k not in names]
    if extra:
        params.extend(extra)
    return urlunsplit((parts.scheme, parts.netloc, parts.path,
                       urlencode(params), parts.fragment))


def redirect(start_response, location, label,
             status='307 Temporary Redirect'):
    """
    Temporary redirect, with a hyperlink body for clients that render
    but do not follow.
    """
    body = '<a href="{}">{}</a>'.format(escape(location, quote=True),
                                        escape(label)).encode('utf-8')
    start_response(status, [
        ('Location', location),
        ('Content-Type', 'text/html; charset=utf-8'),
        ('Content-Length', str(len(body)))
    ])
    return [body]
