"""Direct-message access policy."""

from __future__ import annotations

from .models import AccountSettings, DmPolicy

WILDCARD = "*"


def is_allowed(sender_id: str, account: AccountSettings) -> bool:
    """Return True if *sender_id* may talk to the bot in a direct chat.

    ``open`` admits everyone, ``allowlist`` admits the wildcard or listed
    ids, ``blocklist`` admits everyone not listed.
    """
    if account.dm_policy is DmPolicy.ALLOWLIST:
        return WILDCARD in account.allow_from or sender_id in account.allow_from
    if account.dm_policy is DmPolicy.BLOCKLIST:
        return sender_id not in account.block_from
    return True
