"""
Whole-collection storage for the personal CRM.

Four named collections (contacts, interactions, summaries, config), each
persisted as one self-contained JSON document. A read returns the full
snapshot; a write replaces the previous contents entirely. There is no
locking and no compare-and-swap, so callers that touch several summaries
must batch their work into a single read and a single write.
"""
import copy
import json
import logging
import os
import stat
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from api.services.crm_models import Contact, ContactSummary, CrmConfig, Interaction
from config.settings import settings

logger = logging.getLogger(__name__)

CONTACTS = "contacts"
INTERACTIONS = "interactions"
SUMMARIES = "summaries"
CONFIG = "config"

COLLECTION_FILES = {
    CONTACTS: "contacts.json",
    INTERACTIONS: "interactions.json",
    SUMMARIES: "contact-summaries.json",
    CONFIG: "config.json",
}

# Mode for newly created documents
DEFAULT_FILE_MODE = 0o644


def _empty_snapshot(name: str) -> Union[list, dict]:
    if name == CONFIG:
        return CrmConfig().to_dict()
    return []


class StoreError(Exception):
    """A collection document could not be read or written."""


class CrmStore(ABC):
    """
    Abstract store offering whole-collection read and replace-write.

    Subclasses implement read_collection / write_collection on raw JSON
    snapshots; the typed helpers convert to and from the record dataclasses.
    """

    @abstractmethod
    def read_collection(self, name: str) -> Union[list, dict]:
        """Return the full snapshot of a collection (empty value if absent)."""

    @abstractmethod
    def write_collection(self, name: str, snapshot: Union[list, dict]) -> None:
        """Replace the full contents of a collection."""

    def _load_records(self, name: str, from_dict) -> list:
        """Convert a collection snapshot into records, or raise StoreError."""
        try:
            return [from_dict(d) for d in self.read_collection(name)]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed record in {name}: {e!r}")
            raise StoreError(f"Malformed record in {name}: {e}") from e

    def read_contacts(self) -> list[Contact]:
        return self._load_records(CONTACTS, Contact.from_dict)

    def write_contacts(self, contacts: list[Contact]) -> None:
        self.write_collection(CONTACTS, [c.to_dict() for c in contacts])

    def read_interactions(self) -> list[Interaction]:
        return self._load_records(INTERACTIONS, Interaction.from_dict)

    def write_interactions(self, interactions: list[Interaction]) -> None:
        self.write_collection(INTERACTIONS, [i.to_dict() for i in interactions])

    def read_summaries(self) -> list[ContactSummary]:
        return self._load_records(SUMMARIES, ContactSummary.from_dict)

    def write_summaries(self, summaries: list[ContactSummary]) -> None:
        self.write_collection(SUMMARIES, [s.to_dict() for s in summaries])

    def read_config(self) -> CrmConfig:
        try:
            return CrmConfig.from_dict(self.read_collection(CONFIG))
        except (TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed config document: {e!r}")
            raise StoreError(f"Malformed config document: {e}") from e

    def write_config(self, config: CrmConfig) -> None:
        self.write_collection(CONFIG, config.to_dict())


class JsonFileStore(CrmStore):
    """
    Collections stored as pretty-printed JSON files in one directory.

    Writes go to a temp file in the same directory which is then renamed
    over the target, so readers never see a half-written document.
    """

    def __init__(self, data_path: Union[str, Path]):
        """
        Initialize the file store.

        Args:
            data_path: Directory holding the collection documents
        """
        self.data_path = Path(data_path)

    def path_for(self, name: str) -> Path:
        if name not in COLLECTION_FILES:
            raise StoreError(f"Unknown collection: {name}")
        return self.data_path / COLLECTION_FILES[name]

    def read_collection(self, name: str) -> Union[list, dict]:
        path = self.path_for(name)
        if not path.exists():
            logger.debug(f"No {name} document at {path}, using empty value")
            return _empty_snapshot(name)

        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read {name} from {path}: {e}")
            raise StoreError(f"Failed to read {name}: {e}") from e

    def write_collection(self, name: str, snapshot: Union[list, dict]) -> None:
        path = self.path_for(name)
        self.data_path.mkdir(parents=True, exist_ok=True)

        # mkstemp creates 0600 files; keep the mode of the document being replaced
        mode = stat.S_IMODE(path.stat().st_mode) if path.exists() else DEFAULT_FILE_MODE

        fd, tmp_path = tempfile.mkstemp(dir=self.data_path, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Failed to write {name} to {path}: {e}")
            raise StoreError(f"Failed to write {name}: {e}") from e
        finally:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)

        size = len(snapshot) if isinstance(snapshot, list) else 1
        logger.debug(f"Saved {size} {name} record(s) to {path}")


class InMemoryStore(CrmStore):
    """Store kept in process memory. Snapshots are deep-copied in and out."""

    def __init__(self, initial: Optional[dict] = None):
        self._collections: dict[str, Union[list, dict]] = {}
        for name, snapshot in (initial or {}).items():
            self.write_collection(name, snapshot)

    def read_collection(self, name: str) -> Union[list, dict]:
        if name not in COLLECTION_FILES:
            raise StoreError(f"Unknown collection: {name}")
        if name not in self._collections:
            return _empty_snapshot(name)
        return copy.deepcopy(self._collections[name])

    def write_collection(self, name: str, snapshot: Union[list, dict]) -> None:
        if name not in COLLECTION_FILES:
            raise StoreError(f"Unknown collection: {name}")
        # Round-trip through JSON so the stored value matches what a file store would hold
        self._collections[name] = json.loads(json.dumps(snapshot))


# Singleton instance
_crm_store: Optional[CrmStore] = None


def get_crm_store(data_path: Optional[Union[str, Path]] = None) -> CrmStore:
    """
    Get or create the singleton JsonFileStore.

    Args:
        data_path: Directory for collection documents (defaults to CRM_DATA_PATH)

    Returns:
        CrmStore instance
    """
    global _crm_store
    if _crm_store is None:
        _crm_store = JsonFileStore(data_path or settings.data_path)
    return _crm_store
