"""Diagnostic store: point-in-time page snapshots for failed-login forensics.

Each login milestone saves a full-page PNG to the snapshot directory as
debug-{session_id}-{step}-{timestamp}.png. The directory is shared by
concurrent sessions; names are namespaced by session id so writers never
collide. Old snapshots are swept lazily at the start of every login attempt.
"""

from __future__ import annotations

import logging
import os
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from login_agent.errors import InvalidSnapshotName

log = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 24 * 3600.0

SNAPSHOT_RE = re.compile(
    r'^debug-(?P<session>[a-z0-9]{1,32})'
    r'-(?P<step>[a-z0-9][a-z0-9-]{0,63})'
    r'-(?P<ts>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z)\.png$'
)
_SESSION_RE = re.compile(r'^[a-z0-9]{1,32}$')
_TS_FORMAT = '%Y-%m-%dT%H-%M-%S'


@dataclass(frozen=True)
class DiagnosticSnapshot:
    session_id: str
    step_name: str
    captured_at: datetime
    storage_path: Path
    size: int = 0
    width: int | None = None
    height: int | None = None

    @property
    def filename(self) -> str:
        return self.storage_path.name

    def to_dict(self) -> dict:
        return {
            'filename': self.filename,
            'step': self.step_name,
            'size': self.size,
            'width': self.width,
            'height': self.height,
            'created': self.captured_at.isoformat(),
            'url': f'/debug/screenshot/{self.filename}',
        }


def _step_slug(step: str) -> str:
    slug = re.sub(r'[^a-z0-9-]+', '-', step.lower()).strip('-')
    return (slug or 'step')[:64]


def snapshot_name(session_id: str, step: str, when: datetime | None = None) -> str:
    """Build the on-disk filename for one snapshot."""
    when = when or datetime.now(timezone.utc)
    stamp = when.strftime(_TS_FORMAT) + f'-{when.microsecond // 1000:03d}Z'
    return f'debug-{session_id}-{_step_slug(step)}-{stamp}.png'


def parse_snapshot_name(filename: str) -> tuple[str, str, datetime]:
    """Return (session_id, step, captured_at). Raises InvalidSnapshotName."""
    m = SNAPSHOT_RE.match(filename or '')
    if m is None:
        raise InvalidSnapshotName(f'Invalid snapshot filename: {filename!r}')
    ts = m.group('ts')
    captured = datetime.strptime(ts[:-5], _TS_FORMAT).replace(
        microsecond=int(ts[-4:-1]) * 1000, tzinfo=timezone.utc,
    )
    return m.group('session'), m.group('step'), captured


def _image_size(path: Path) -> tuple[int | None, int | None]:
    from PIL import Image  # lazy import

    try:
        with Image.open(path) as img:
            return img.width, img.height
    except Exception as exc:
        log.debug('Could not read image size of %s: %s', path.name, exc)
        return None, None


class DiagnosticStore:
    """Snapshot writer, lister and sweeper for one directory.

    Args:
        base_dir: Directory holding all snapshots (created on demand).
        retention_seconds: Snapshots strictly older than this are swept.
        enabled: When False, capture is a no-op.
    """

    def __init__(
        self,
        base_dir: str | Path,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        enabled: bool = True,
    ) -> None:
        self._dir = Path(base_dir)
        self.retention_seconds = retention_seconds
        self.enabled = enabled

    @property
    def directory(self) -> Path:
        return self._dir

    async def capture(self, page, step: str, session_id: str) -> Path | None:
        """Save a full-page screenshot. Never raises; failures return None."""
        if not self.enabled:
            return None
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            path = self._dir / snapshot_name(session_id, step)
            log.info('[%s] Taking screenshot %s: %s', session_id, step, path)
            await page.screenshot(path=str(path), full_page=True)
            return path
        except Exception as exc:
            log.warning('[%s] Screenshot %s failed: %s', session_id, step, exc)
            return None

    def sweep_expired(self, now: float | None = None) -> int:
        """Delete snapshots older than the retention window.

        Only files whose mtime is strictly before the cutoff are touched, so
        a concurrent session's fresh snapshot is never removed. Returns the
        number of files deleted.
        """
        if not self._dir.is_dir():
            return 0
        cutoff = (now if now is not None else time.time()) - self.retention_seconds
        deleted = 0
        for entry in self._dir.iterdir():
            if not SNAPSHOT_RE.match(entry.name):
                continue
            try:
                if entry.stat().st_mtime < cutoff:
                    entry.unlink()
                    log.info('Deleted old screenshot: %s', entry.name)
                    deleted += 1
            except FileNotFoundError:
                continue  # another sweeper got there first
            except OSError as exc:
                log.warning('Failed to sweep %s: %s', entry.name, exc)
        return deleted

    def list(self, session_id: str) -> list[DiagnosticSnapshot]:
        """Snapshots for one session, ordered by capture time then name."""
        if not _SESSION_RE.match(session_id or ''):
            raise InvalidSnapshotName(f'Invalid session id: {session_id!r}')
        if not self._dir.is_dir():
            return []

        snapshots = []
        for entry in self._dir.glob(f'debug-{session_id}-*.png'):
            try:
                sid, step, captured = parse_snapshot_name(entry.name)
            except InvalidSnapshotName:
                continue
            if sid != session_id:
                continue
            try:
                size = entry.stat().st_size
            except FileNotFoundError:
                continue  # swept between glob and stat
            width, height = _image_size(entry)
            snapshots.append(DiagnosticSnapshot(
                session_id=sid,
                step_name=step,
                captured_at=captured,
                storage_path=entry,
                size=size,
                width=width,
                height=height,
            ))
        snapshots.sort(key=lambda s: (s.captured_at, s.filename))
        return snapshots

    def path_for(self, filename: str) -> Path:
        """Validated path of an existing snapshot.

        Raises InvalidSnapshotName for anything that is not a bare snapshot
        filename, FileNotFoundError if it does not exist.
        """
        parse_snapshot_name(filename)
        path = self._dir / filename
        if path.resolve().parent != self._dir.resolve():
            raise InvalidSnapshotName(f'Invalid snapshot filename: {filename!r}')
        if not path.is_file():
            raise FileNotFoundError(filename)
        return path

    def read(self, filename: str) -> bytes:
        return self.path_for(filename).read_bytes()

    def status(self) -> dict:
        """Directory health for the /debug/system endpoint."""
        exists = self._dir.is_dir()
        writable = exists and os.access(self._dir, os.W_OK)
        names: list[str] = []
        if exists:
            names = sorted(e.name for e in self._dir.iterdir() if SNAPSHOT_RE.match(e.name))
        return {
            'screenshotDirectory': str(self._dir),
            'directoryExists': exists,
            'canWrite': writable,
            'existingScreenshots': len(names),
            'screenshots': names[:10],
        }
