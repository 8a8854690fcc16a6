# data.py
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from exceptions import StoreError

logger = logging.getLogger(__name__)

RECORD_MODE = 0o666


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


class PresenceStore:
    """Per-device last-seen timestamps, one JSON file per device name.

    Only one detector may write to a given directory. Readers need no locking:
    every write lands in a temporary file first and is moved into place with
    os.replace, so a reader sees either the old record or the new one.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}{self.SUFFIX}"

    def read(self, name: str) -> Optional[int]:
        """Returns the last-seen epoch seconds for a device, or None if never recorded.

        Args:
            name (str): Device name.

        Returns:
            Optional[int]: The stored timestamp, None if absent or undecodable.

        Raises:
            StoreError: If the record exists but cannot be opened (e.g. permissions).
        """
        record_file = self.path_for(name)
        try:
            with record_file.open("r", encoding="utf-8") as file:
                record = json.load(file)
            return int(record["last_seen"])
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as err:
            logger.warning("Ignoring unreadable presence record %s: %s", record_file, err)
        except OSError as err:
            # Only a missing record means "never seen"
            raise StoreError("Could not read presence record",
                             {"device": name, "path": record_file, "error": err}) from err
        return None

    def write(self, name: str, timestamp: int) -> None:
        """Replaces the record of a device with a new last-seen timestamp.

        Last write wins, including an older timestamp written after a newer one.

        Raises:
            StoreError: If the directory or the record cannot be written.
        """
        record = {"name": name, "last_seen": int(timestamp)}
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=self.directory,
                                             prefix=f".{name}.", suffix=".tmp",
                                             delete=False) as file:
                tmp_name = file.name
                # NamedTemporaryFile is created 0600; records must stay readable by queries
                os.fchmod(file.fileno(), RECORD_MODE & ~_current_umask())
                json.dump(record, file)
                file.flush()
                os.fsync(file.fileno())
            os.replace(tmp_name, self.path_for(name))
            tmp_name = None
        except OSError as err:
            raise StoreError("Could not write presence record",
                             {"device": name, "directory": self.directory, "error": err}) from err
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    def remove(self, name: str) -> bool:
        """Deletes the record of a device. Returns False if there was none."""
        try:
            self.path_for(name).unlink()
        except FileNotFoundError:
            return False
        except OSError as err:
            raise StoreError("Could not remove presence record",
                             {"device": name, "directory": self.directory, "error": err}) from err
        return True
