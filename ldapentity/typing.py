"""
Type aliases for the raw python-ldap data structures we pass around.
"""

ModListEntry = tuple[int, str, list[bytes] | None]
ModList = list[ModListEntry]
AddModlist = list[tuple[str, list[bytes]]]
LDAPData = tuple[str, dict[str, list[bytes]]]
