"""
Reading server configuration from Django settings.

Each key of ``settings.LDAP_SERVERS`` names one directory server::

    LDAP_SERVERS = {
        "default": {
            "url": "ldap://ldap.example.com:389",
            "user": "cn=admin,dc=example,dc=com",
            "password": "secret",
            "basedn": "dc=example,dc=com",
            "log_changes": True,
        }
    }

``"hostname"`` and ``"port"`` may be given instead of ``"url"``.  See
:py:meth:`ldapentity.connection.DirectoryConnection._connect` for the TLS and
timeout options.
"""

from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

#: The port we use when a config gives a hostname but no port.
DEFAULT_PORT = 389


def get_server_config(name: str) -> dict[str, Any]:
    """
    Return ``settings.LDAP_SERVERS[name]``, with ``"url"`` filled in from
    ``"hostname"``/``"port"`` if needed.

    Raises:
        ImproperlyConfigured: ``LDAP_SERVERS`` doesn't exist, has no key
            ``name``, or the entry names no server

    """
    try:
        servers = settings.LDAP_SERVERS
    except AttributeError as e:
        msg = "settings.LDAP_SERVERS does not exist!"
        raise ImproperlyConfigured(msg) from e
    try:
        config = dict(servers[name])
    except KeyError as e:
        msg = f"settings.LDAP_SERVERS has no key '{name}'"
        raise ImproperlyConfigured(msg) from e
    return normalize_config(config, name=name)


def normalize_config(config: dict[str, Any], name: str = "<explicit>") -> dict[str, Any]:
    """
    Fill in ``"url"`` from ``"hostname"`` and ``"port"`` if it's missing.

    Raises:
        ImproperlyConfigured: neither ``"url"`` nor ``"hostname"`` is set

    """
    config = dict(config)
    if not config.get("url"):
        hostname = config.get("hostname")
        if not hostname:
            msg = f"LDAP server '{name}' needs either 'url' or 'hostname'"
            raise ImproperlyConfigured(msg)
        port = int(config.get("port") or DEFAULT_PORT)
        scheme = "ldaps" if config.get("use_ssl", False) else "ldap"
        config["url"] = f"{scheme}://{hostname}:{port}"
    return config
