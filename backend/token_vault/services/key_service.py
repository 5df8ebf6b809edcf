"""Key inventory: which key versions are configured and which records use them."""
from sqlalchemy.ext.asyncio import AsyncSession

from token_vault.exceptions import ConfigurationError
from token_vault.repositories import gmail_config_repository as repo
from token_vault.schemas.vault import KeyInventory, KeyVersionInfo
from token_vault.utils.keys import KeyProvider


async def build_inventory(db: AsyncSession, provider: KeyProvider) -> KeyInventory:
    """Report configured key versions with their record counts.

    Records sealed under a version that is not decryptable any more end up in
    ``unresolvable_records``; a version may only be discarded once it has no
    records left.
    """
    counts = await repo.count_by_key_version(db)
    try:
        active_version = provider.active_version()
    except ConfigurationError:
        active_version = None

    keys = [
        KeyVersionInfo(version=v, status=provider.status_of(v), records=counts.get(v, 0))
        for v in provider.versions()
    ]
    decryptable = set(provider.decryptable_versions())
    unresolvable = {v: n for v, n in counts.items() if v not in decryptable}

    return KeyInventory(
        active_version=active_version,
        keys=keys,
        unresolvable_records=unresolvable,
        legacy_records=await repo.count_legacy(db),
    )
