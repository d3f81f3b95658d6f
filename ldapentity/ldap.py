# The fake directory in our tests patches ``ldapentity.ldap.initialize``, so
# everything in this package reaches python-ldap through this module.
import ldap
from ldap import *  # noqa: F403

__version__ = ldap.__version__
