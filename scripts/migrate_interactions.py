#!/usr/bin/env python3
"""
Migrate interactions to the multi-participant shape.

Older interactions stored a single participant as "contactId". Reads
already accept that shape; this rewrites interactions.json so every record
carries a de-duplicated "contactIds" list and no "contactId" key.

A backup of the original file is written next to it before migrating.
Dry run unless --execute is given.
"""
import logging
import shutil
from typing import Optional

from api.services.crm_models import Interaction
from api.services.crm_store import INTERACTIONS, CrmStore, JsonFileStore, get_crm_store

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".pre-multicontact-backup"


def _needs_migration(raw: dict) -> bool:
    contact_ids = raw.get("contactIds")
    if not isinstance(contact_ids, list) or "contactId" in raw:
        return True
    return len(set(contact_ids)) != len(contact_ids)


def migrate_interactions(dry_run: bool = True, store: Optional[CrmStore] = None) -> dict:
    """
    Rewrite interactions in the list shape.

    Args:
        dry_run: If True, don't write anything
        store: Store to use (defaults to the configured data directory)

    Returns:
        Stats dict
    """
    store = store or get_crm_store()
    raw_interactions = store.read_collection(INTERACTIONS)

    stats = {
        'total': len(raw_interactions),
        'migrated': 0,
        'already_migrated': 0,
        'without_participants': 0,
    }

    migrated = []
    for raw in raw_interactions:
        interaction = Interaction.from_dict(raw)
        if _needs_migration(raw):
            stats['migrated'] += 1
            if stats['migrated'] <= 5:
                logger.info(f"{interaction.id}: contactIds {interaction.contact_ids}")
        else:
            stats['already_migrated'] += 1
        if not interaction.contact_ids:
            stats['without_participants'] += 1
            logger.warning(f"Interaction {interaction.id} has no participants")
        migrated.append(interaction)

    logger.info(f"Found {stats['total']} interaction(s)")
    logger.info(f"  Already migrated: {stats['already_migrated']}")
    logger.info(f"  To migrate:       {stats['migrated']}")

    if stats['migrated'] == 0:
        logger.info("All interactions already use contactIds. Nothing to do.")
        return stats

    if dry_run:
        logger.info("DRY RUN - no changes made")
        return stats

    if isinstance(store, JsonFileStore):
        source = store.path_for(INTERACTIONS)
        backup = source.with_name(source.name + BACKUP_SUFFIX)
        shutil.copyfile(source, backup)
        logger.info(f"Backup written to {backup}")

    store.write_interactions(migrated)
    logger.info(f"Migrated {stats['migrated']} interaction(s)")
    return stats


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Migrate interactions to the contactIds list shape')
    parser.add_argument('--execute', action='store_true', help='Actually rewrite interactions.json')
    parser.add_argument('--data-path', help='Data directory (defaults to CRM_DATA_PATH)')
    args = parser.parse_args()

    migrate_interactions(
        dry_run=not args.execute,
        store=JsonFileStore(args.data_path) if args.data_path else None,
    )
