"""Local storage for job artifacts and the URLs they are served under.

Layout (all under ``settings.data_dir`` unless overridden):

    outputs/{job_id}_{NN}_{template_id}.mp3   served at /outputs/{file}
    outputs/{job_id}_{NN}_{template_id}.mp4
    uploads/{name}                            served at /uploads/{name}

Files under the input-examples directory are served at /inputs/{relative}.
Relative URLs become absolute with ``public_url()`` when a public base URL
is configured; the lip-sync provider needs absolute ones.
"""

import logging
import shutil
import uuid
from pathlib import Path

from app.config import settings

logger = logging.getLogger(__name__)

OUTPUTS_PREFIX = "/outputs"
UPLOADS_PREFIX = "/uploads"
INPUTS_PREFIX = "/inputs"


class StorageService:
    """Paths and URLs for generated outputs, uploads and input examples."""

    def __init__(
        self,
        outputs_dir: str | Path | None = None,
        uploads_dir: str | Path | None = None,
        inputs_dir: str | Path | None = None,
        public_base_url: str | None = None,
    ) -> None:
        self.outputs_dir = Path(outputs_dir) if outputs_dir is not None else settings.outputs_dir
        self.uploads_dir = Path(uploads_dir) if uploads_dir is not None else settings.uploads_dir
        self.inputs_dir = Path(inputs_dir if inputs_dir is not None else settings.input_examples_dir)
        base = settings.public_base_url if public_base_url is None else public_base_url
        self.public_base_url = base.rstrip("/")

    # ------------------------------------------------------------------
    # Output artifacts
    # ------------------------------------------------------------------

    @staticmethod
    def artifact_name(job_id: str, index: int, template_id: str, ext: str) -> str:
        return f"{job_id}_{index:02d}_{template_id}.{ext}"

    def output_path(self, filename: str) -> Path:
        """Return the path for an output file, creating the outputs directory."""
        self.outputs_dir.mkdir(parents=True, exist_ok=True)
        return self.outputs_dir / filename

    def output_url(self, filename: str) -> str:
        return f"{OUTPUTS_PREFIX}/{filename}"

    # ------------------------------------------------------------------
    # Public URLs
    # ------------------------------------------------------------------

    @property
    def has_public_url(self) -> bool:
        return bool(self.public_base_url)

    def public_url(self, url_path: str) -> str:
        """Prefix a relative URL path with the public base URL."""
        if url_path.startswith(("http://", "https://")):
            return url_path
        return f"{self.public_base_url}{url_path}"

    def expose_local_file(self, path: str | Path) -> str:
        """Return a relative URL for a local file the static mounts can serve.

        Files under the inputs directory map onto /inputs; anything else is
        copied into uploads first.
        """
        src = Path(path).resolve()
        inputs_root = self.inputs_dir.resolve()
        if inputs_root in src.parents:
            return f"{INPUTS_PREFIX}/{src.relative_to(inputs_root).as_posix()}"

        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        dest = self.uploads_dir / f"{uuid.uuid4().hex[:8]}_{src.name}"
        shutil.copy2(src, dest)
        logger.debug("Copied %s → %s", src, dest)
        return f"{UPLOADS_PREFIX}/{dest.name}"
