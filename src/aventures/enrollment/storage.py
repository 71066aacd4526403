"""Payment proof storage on the local filesystem, served under the media URL."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import secrets
from pathlib import Path

from aventures.enrollment.wizard import ProofFile

logger = logging.getLogger(__name__)


class LocalProofStorage:
    """Writes proofs to ``<root>/<enrollment_id>/<token><ext>``."""

    def __init__(self, root: str | Path, base_url: str) -> None:
        self._root = Path(root)
        self._base_url = base_url.rstrip("/")

    async def upload(self, enrollment_id: str, proof: ProofFile) -> str:
        extension = mimetypes.guess_extension(proof.content_type) or Path(proof.filename).suffix or ".bin"
        name = f"{secrets.token_hex(8)}{extension}"
        relative = Path("payment-proofs") / enrollment_id / name

        await asyncio.to_thread(self._write, self._root / enrollment_id / name, proof.data)
        logger.info("Stored payment proof for enrollment %s (%d bytes)", enrollment_id, proof.size)
        return f"{self._base_url}/{relative.as_posix()}"

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
