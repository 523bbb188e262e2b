"""Local draft persistence for the checkup template editor.

Two kinds of snapshots are kept as JSON files:

* the timed autosave, one per template (or one shared slot for the create
  flow), written every ``autosave_interval`` seconds and on unload, and
  restored for up to 24 hours;
* the auth-interruption backup, written when a token refresh fails just
  before the forced sign-out. It is tagged with the page path, lives for one
  hour and wins over the autosave on the next load of that page.

Both are removed once the template has been saved remotely.
"""

from __future__ import annotations

import json
import os
import re
import threading
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from checkup_admin.auth import AuthEvents
from checkup_admin.log import get_logger
from checkup_admin.template_schema import has_content

logger = get_logger(__name__)

AUTH_BACKUP_KEY = "checkup-template-auth-backup"
AUTOSAVE_KEY_PREFIX = "checkup-template-draft"
NEW_TEMPLATE_KEY = "new"
AUTOSAVE_MAX_AGE = timedelta(hours=24)
AUTH_BACKUP_MAX_AGE = timedelta(hours=1)
DEFAULT_AUTOSAVE_INTERVAL = 30.0

SOURCE_AUTH_BACKUP = "auth_backup"
SOURCE_AUTOSAVE = "autosave"

IDLE = "idle"
EDITING = "editing"
CLOSED = "closed"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def autosave_key(template_id: Optional[str] = None) -> str:
    """Return the autosave slot for ``template_id`` or the create-flow slot."""

    return f"{AUTOSAVE_KEY_PREFIX}-{template_id or NEW_TEMPLATE_KEY}"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class DraftStore:
    """Key/value store persisting one JSON document per key under ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the document stored under ``key``; unreadable documents are removed."""

        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Discarding unreadable draft %s: %s", path.name, exc)
            self.delete(key)
            return None
        return payload if isinstance(payload, dict) else None

    def write(self, key: str, payload: Dict[str, Any]) -> None:
        """Replace the document under ``key`` atomically."""

        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        temp_path = path.with_suffix(".json.tmp")
        with temp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
            handle.write("\n")
        os.replace(temp_path, path)

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def exists(self, key: str) -> bool:
        return self._path(key).exists()


class RepeatingTimer:
    """Call ``callback`` every ``interval`` seconds on a daemon thread until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], Any]) -> None:
        self.interval = interval
        self.callback = callback
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stopped.is_set()

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                self.callback()
            except Exception:  # pylint: disable=broad-except
                logger.exception("Scheduled draft snapshot failed")

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="draft-autosave", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._stopped.set()


@dataclass
class RestoreResult:
    """Outcome of :meth:`DraftSession.restore`; ``source`` is ``None`` when nothing was restored."""

    source: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    saved_at: Optional[datetime] = None

    @property
    def restored(self) -> bool:
        return self.source is not None


class DraftSession:
    """Autosave and recovery for one editing session of one template.

    ``form_state`` returns the current form data; it is called from the
    autosave thread, so it must not touch UI state.
    """

    def __init__(
        self,
        store: DraftStore,
        route_path: str,
        form_state: Callable[[], Dict[str, Any]],
        template_id: Optional[str] = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.route_path = route_path
        self.form_state = form_state
        self.template_id = template_id
        self.key = autosave_key(template_id)
        self.state = IDLE
        self._clock = clock
        self._loaded = False
        self._timer: Optional[RepeatingTimer] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._write_lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def is_autosaving(self) -> bool:
        return self._timer is not None

    def restore(self) -> RestoreResult:
        """Look for an auth backup for this page, then a fresh autosave.

        Expired entries are deleted. A restored auth backup is cleared
        immediately; a restored autosave stays until the template is saved or
        the user discards it.
        """

        now = self._clock()

        backup = self.store.read(AUTH_BACKUP_KEY)
        if backup is not None:
            saved_at = _parse_timestamp(backup.get("timestamp"))
            if saved_at is None or now - saved_at > AUTH_BACKUP_MAX_AGE:
                logger.info("Removing expired auth backup")
                self.store.delete(AUTH_BACKUP_KEY)
            elif backup.get("path") == self.route_path and isinstance(backup.get("data"), dict):
                self.store.delete(AUTH_BACKUP_KEY)
                self.mark_loaded()
                logger.info("Restored auth backup for %s", self.route_path)
                return RestoreResult(SOURCE_AUTH_BACKUP, backup["data"], saved_at)

        draft = self.store.read(self.key)
        if draft is not None:
            saved_at = _parse_timestamp(draft.get("timestamp"))
            if saved_at is None or now - saved_at > AUTOSAVE_MAX_AGE:
                logger.info("Removing stale draft %s", self.key)
                self.store.delete(self.key)
            elif has_content(draft.get("data")):
                self.mark_loaded()
                logger.info("Restored draft %s saved at %s", self.key, saved_at.isoformat())
                return RestoreResult(SOURCE_AUTOSAVE, draft["data"], saved_at)

        return RestoreResult()

    def mark_loaded(self) -> None:
        """Allow snapshots once the form holds restored or authoritative data."""

        self._loaded = True
        if self.state == IDLE:
            self.state = EDITING

    def _snapshot(self) -> Dict[str, Any]:
        return deepcopy(self.form_state())

    def autosave(self) -> bool:
        """Write the form to the autosave slot; skipped until data has loaded."""

        if not self._loaded or self.state != EDITING:
            return False
        with self._write_lock:
            # on_saved may have closed the session while we waited for the lock.
            if self.state != EDITING:
                return False
            self.store.write(
                self.key,
                {"data": self._snapshot(), "timestamp": self._clock().isoformat()},
            )
        logger.debug("Autosaved %s", self.key)
        return True

    def start_autosave(
        self,
        interval: float = DEFAULT_AUTOSAVE_INTERVAL,
        events: Optional[AuthEvents] = None,
    ) -> None:
        """Start the periodic autosave and listen for auth failures on ``events``."""

        if self._timer is None or not self._timer.is_running:
            self._timer = RepeatingTimer(interval, self.autosave)
            self._timer.start()
        if events is not None and self._unsubscribe is None:
            self._unsubscribe = events.subscribe(self.on_auth_error)

    def stop(self) -> None:
        """Cancel the timer and the auth subscription of this session."""

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_unload(self) -> None:
        """Take a final snapshot when the page goes away."""

        try:
            self.autosave()
        except OSError as exc:
            logger.warning("Final draft snapshot failed: %s", exc)

    def on_auth_error(self) -> None:
        """Back up the form, tagged with this page, before the forced sign-out."""

        if not self._loaded:
            return
        with self._write_lock:
            self.store.write(
                AUTH_BACKUP_KEY,
                {
                    "data": self._snapshot(),
                    "path": self.route_path,
                    "timestamp": self._clock().isoformat(),
                },
            )
        logger.info("Saved auth backup for %s", self.route_path)

    def on_saved(self) -> None:
        """Drop local drafts after a successful remote save and end the session."""

        self.stop()
        with self._write_lock:
            self.state = CLOSED
            self.store.delete(self.key)
            self.store.delete(AUTH_BACKUP_KEY)

    def discard(self) -> None:
        """Forget the autosave slot and this page's auth backup at the user's request."""

        with self._write_lock:
            self.store.delete(self.key)
            backup = self.store.read(AUTH_BACKUP_KEY)
            if backup is not None and backup.get("path") == self.route_path:
                self.store.delete(AUTH_BACKUP_KEY)
