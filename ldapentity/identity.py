"""
Models for the identity directory: users, groups and the kinds of group the
organisation is built from.

The tree looks like::

    dc=example,dc=com
      ou=people           LdapUser entries
      ou=divisions
        cn=<division>     Division
          cn=<tribe>      Tribe
            cn=<tribe>_sl, cn=<tribe>_gs, cn=<tribe>_lr, cn=<tribe>_lv
          cn=<group>      VotedGroup
            cn=<entry>    VoteEntry
"""

import enum

from .children import FixedChildren, FlaggedChildren
from .fields import BooleanField, CharField, CharListField, IntegerField
from .models import Model


class LdapUser(Model):
    """A person who can sign in."""

    uid = CharField("Username", required=True)
    mail = CharField("Email")
    emailVerified = BooleanField("Email verified")  # noqa: N815

    class Meta:
        objectclasses = ["inetOrgPerson", "vcpUser"]
        verbose_name = "user"


class GroupType(enum.Enum):
    GROUP = "group"
    DIVISION = "division"
    VOTED_GROUP = "voted_group"
    TRIBE = "tribe"
    TRIBE_GS = "tribe_gs"
    TRIBE_SL = "tribe_sl"
    TRIBE_LR = "tribe_lr"
    TRIBE_LV = "tribe_lv"


#: Object class to group type, most specific first.
GROUP_TYPES = (
    ("vcpVotedGroup", GroupType.VOTED_GROUP),
    ("vcpTribeLv", GroupType.TRIBE_LV),
    ("vcpTribeLr", GroupType.TRIBE_LR),
    ("vcpTribeSl", GroupType.TRIBE_SL),
    ("vcpTribeGs", GroupType.TRIBE_GS),
    ("vcpTribe", GroupType.TRIBE),
    ("vcpDivision", GroupType.DIVISION),
)


class LdapGroup(Model):
    """
    A group of users.
    """

    displayName = CharField("Display name")  # noqa: N815
    member = CharListField("Member ids")
    officialMail = CharField("Official email")  # noqa: N815

    class Meta:
        objectclasses = ["groupOfNames", "vcpGroup"]
        verbose_name = "group"

    @property
    def display_name(self) -> str | None:
        """``displayName``, or the group's id if the entry has none."""
        return self.displayName or self.id

    @property
    def division_id(self) -> str:
        """
        The id of the division the group lives in: the value of the fourth
        RDN from the end of its DN, or ``""`` if the DN is too short.
        """
        parts = (self.dn or "").split(",")
        if len(parts) < 4:  # noqa: PLR2004
            return ""
        return parts[-4].split("=", 1)[-1]

    @property
    def group_type(self) -> GroupType:
        objectclasses = {oc.lower() for oc in self.objectclasses}
        for objectclass, group_type in GROUP_TYPES:
            if objectclass.lower() in objectclasses:
                return group_type
        return GroupType.GROUP


class Division(LdapGroup):
    class Meta:
        objectclasses = ["vcpDivision"]
        verbose_name = "division"


class TribeGs(LdapGroup):
    class Meta:
        objectclasses = ["vcpTribeGs"]


class TribeLr(LdapGroup):
    class Meta:
        objectclasses = ["vcpTribeLr"]


class TribeLv(LdapGroup):
    class Meta:
        objectclasses = ["vcpTribeLv"]


class TribeSl(LdapGroup):
    class Meta:
        objectclasses = ["vcpTribeSl"]


class Tribe(LdapGroup):
    """
    A tribe, with its four leadership sub-groups as children at
    ``cn=<id>_gs``, ``cn=<id>_lr``, ``cn=<id>_lv`` and ``cn=<id>_sl``.
    """

    departmentId = IntegerField("Tribe id")  # noqa: N815

    class Meta:
        objectclasses = ["vcpTribe"]
        verbose_name = "tribe"
        children = FixedChildren(
            {
                "gs": ("{id}_gs", TribeGs),
                "lr": ("{id}_lr", TribeLr),
                "lv": ("{id}_lv", TribeLv),
                "sl": ("{id}_sl", TribeSl),
            }
        )


class VoteEntry(Model):
    """One vote cast in a :py:class:`VotedGroup`."""

    active = BooleanField("Active")

    class Meta:
        objectclasses = ["vcpVoteEntry"]


class VotedGroup(LdapGroup):
    """
    A group whose membership is voted on.  Its vote entries are loaded into
    ``active_vote_entries`` and ``inactive_vote_entries``.
    """

    class Meta:
        objectclasses = ["vcpVotedGroup"]
        verbose_name = "voted group"
        children = FlaggedChildren(
            VoteEntry,
            "active",
            true_slot="active_vote_entries",
            false_slot="inactive_vote_entries",
        )
