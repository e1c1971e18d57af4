"""Exception types raised while building a game."""

from __future__ import annotations


class SetupError(ValueError):
    """A problem definition cannot be turned into a playable game.

    Raised before play starts: malformed deal, duplicated cards, threat cards
    that are missing or held twice, threat-dependent policies without threat
    declarations. Illegal moves during play are reported as events instead.
    """
