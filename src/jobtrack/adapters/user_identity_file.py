import uuid
from pathlib import Path

from jobtrack.core.interfaces.user_identity import UserIdentityPort
from jobtrack.core.settings import logger


class FileUserIdentityAdapter(UserIdentityPort):
    """Stable client id persisted as a one-line file.

    The id is generated once as ``user-<uuid4>``. If the file cannot be
    written the id still holds for the lifetime of this adapter.
    """

    def __init__(self, state_dir: str | Path, filename: str = "long-running-job-user-id"):
        self._path = Path(state_dir) / filename
        self._user_id: str | None = None

    def get_user_id(self) -> str:
        if self._user_id:
            return self._user_id

        try:
            stored = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            stored = ""
        except OSError as exc:
            logger.warning("[identity] unreadable user id file path=%s error=%s", self._path, exc)
            stored = ""

        if not stored:
            stored = f"user-{uuid.uuid4()}"
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._path.write_text(stored + "\n", encoding="utf-8")
            except OSError as exc:
                logger.warning("[identity] could not persist user id path=%s error=%s", self._path, exc)

        self._user_id = stored
        return stored
