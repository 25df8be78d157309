#!/usr/bin/env python3
"""
Rebuild every contact summary from contacts and interactions.

Summaries are a derived cache. This recomputes all of them in one pass,
drops entries for contacts that are missing or private, and reports what
would change. Dry run unless --execute is given.
"""
import logging
from typing import Optional

from api.services.contact_summary import rebuild_all_summaries
from api.services.crm_store import CrmStore, JsonFileStore, get_crm_store

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def rebuild_summaries(dry_run: bool = True, store: Optional[CrmStore] = None) -> dict:
    """
    Recompute all contact summaries.

    Args:
        dry_run: If True, don't write the summaries collection
        store: Store to use (defaults to the configured data directory)

    Returns:
        Stats dict
    """
    store = store or get_crm_store()

    contacts = store.read_contacts()
    interactions = store.read_interactions()
    existing = {s.id: s for s in store.read_summaries()}
    rebuilt = rebuild_all_summaries(store, contacts=contacts, interactions=interactions, write=not dry_run)
    rebuilt_ids = {s.id for s in rebuilt}

    stats = {
        'contacts': len(contacts),
        'summaries': len(rebuilt),
        'added': 0,
        'updated': 0,
        'unchanged': 0,
        'removed': len([sid for sid in existing if sid not in rebuilt_ids]),
    }

    for summary in rebuilt:
        previous = existing.get(summary.id)
        if previous is None:
            stats['added'] += 1
        elif previous.to_dict() != summary.to_dict():
            stats['updated'] += 1
        else:
            stats['unchanged'] += 1

    logger.info(f"\n=== Rebuild Summary ===")
    logger.info(f"Contacts: {stats['contacts']}")
    logger.info(f"Summaries: {stats['summaries']} (added {stats['added']}, updated {stats['updated']}, unchanged {stats['unchanged']})")
    logger.info(f"Stale summaries removed: {stats['removed']}")

    if dry_run:
        logger.info("DRY RUN - no changes made")

    return stats


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Rebuild all contact summaries')
    parser.add_argument('--execute', action='store_true', help='Actually write the summaries')
    parser.add_argument('--data-path', help='Data directory (defaults to CRM_DATA_PATH)')
    args = parser.parse_args()

    rebuild_summaries(
        dry_run=not args.execute,
        store=JsonFileStore(args.data_path) if args.data_path else None,
    )
