from __future__ import annotations

from typing import Final, Iterable

CHANNEL_WHATSAPP: Final[str] = "whatsapp"
CHANNEL_EMAIL: Final[str] = "email"
CHANNELS: Final[tuple[str, ...]] = (CHANNEL_WHATSAPP, CHANNEL_EMAIL)

MODE_BOTH: Final[str] = "both"
COMMUNICATION_MODES: Final[tuple[str, ...]] = (CHANNEL_WHATSAPP, CHANNEL_EMAIL, MODE_BOTH)

DEFAULT_PREFERRED: Final[tuple[str, ...]] = (CHANNEL_EMAIL,)


def effective_channels(preferred: Iterable[str] | None, legacy_mode: str | None) -> frozenset[str]:
    """Collapse the preferred-channel list and the legacy mode into one set.

    A non-empty preferred list wins; otherwise ``both`` expands to every
    channel and a single-channel mode maps to itself.
    """
    selected = frozenset(channel for channel in (preferred or ()) if channel in CHANNELS)
    if selected:
        return selected
    if legacy_mode == MODE_BOTH:
        return frozenset(CHANNELS)
    if legacy_mode in CHANNELS:
        return frozenset({legacy_mode})
    return frozenset()


def legacy_mode_for(channels: Iterable[str]) -> str:
    selected = frozenset(channels)
    if selected >= frozenset(CHANNELS):
        return MODE_BOTH
    if CHANNEL_WHATSAPP in selected:
        return CHANNEL_WHATSAPP
    return CHANNEL_EMAIL


def ordered(channels: Iterable[str]) -> list[str]:
    selected = frozenset(channels)
    return [channel for channel in CHANNELS if channel in selected]
