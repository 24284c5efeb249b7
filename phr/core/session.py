"""Session persistence so failed records can be retried in a later run.

The record set from the last process/retry run is stored in
<output>/_phr/session.json. Retrying replays that stored set instead of
rescanning, so what is retried is exactly what the user last saw.
"""

import logging
import os
import tempfile
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import orjson

from phr.core.models import MediaRecord, ProcessOptions

logger = logging.getLogger(__name__)


class SessionStore:
    """Saves and loads the record set of the last run.

    Usage:
        store = SessionStore(meta_dir)
        store.save(records, options)

        if store.exists():
            records, options = store.load()
    """

    SESSION_FILENAME = "session.json"
    VERSION = 1

    def __init__(self, meta_dir: str):
        """Initialize session store.

        Args:
            meta_dir: The _phr directory where the session file lives.
        """
        self.meta_dir = meta_dir
        self.session_path = os.path.join(meta_dir, self.SESSION_FILENAME)

    def exists(self) -> bool:
        return os.path.exists(self.session_path)

    def _cleanup_temp_files(self) -> None:
        """Remove orphaned temp files from interrupted saves."""
        try:
            for f in os.listdir(self.meta_dir):
                if f.startswith(".session_") and f.endswith(".tmp"):
                    try:
                        os.unlink(os.path.join(self.meta_dir, f))
                    except OSError:
                        pass
        except OSError:
            pass

    def save(self, records: List[MediaRecord], options: ProcessOptions) -> bool:
        """Write the session atomically.

        Writes to a temporary file in the same directory, then atomically
        replaces the target file via os.replace(). A crash mid-write never
        corrupts the previous session.

        Returns:
            True if the session was written.
        """
        state = {
            "version": self.VERSION,
            "saved_at": datetime.now().isoformat(),
            "options": options.to_dict(),
            "records": [r.to_dict() for r in records],
        }

        try:
            os.makedirs(self.meta_dir, exist_ok=True)
            self._cleanup_temp_files()

            fd, tmp_path = tempfile.mkstemp(
                dir=self.meta_dir, suffix=".tmp", prefix=".session_"
            )
            try:
                with open(fd, "wb") as f:
                    f.write(orjson.dumps(state, option=orjson.OPT_INDENT_2))
                os.replace(tmp_path, self.session_path)
            except BaseException:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
        except (OSError, TypeError) as e:
            logger.warning(f"Failed to save session to {self.session_path}: {e}")
            return False
        return True

    def load(self) -> Optional[Tuple[List[MediaRecord], ProcessOptions]]:
        """Read the stored session.

        Returns:
            (records, options), or None if there is no readable session.
        """
        state = self._read_session_file()
        if not state:
            return None
        try:
            records = [MediaRecord.from_dict(r) for r in state.get("records", [])]
            options = ProcessOptions.from_dict(state["options"])
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Session file {self.session_path} is invalid: {e}")
            return None
        return records, options

    def _read_session_file(self) -> Optional[Dict[str, Any]]:
        if not os.path.exists(self.session_path):
            return None
        try:
            with open(self.session_path, "rb") as f:
                return orjson.loads(f.read())
        except (OSError, orjson.JSONDecodeError) as e:
            logger.warning(f"Failed to read session file {self.session_path}: {e}")
            return None
