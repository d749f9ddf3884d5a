"""Streaming download of job result files.

WHY: Results are audio files, often tens of megabytes, behind pre-signed
storage URLs. They must be streamed rather than buffered, must never be
mistaken for valid output if the stream breaks halfway, and multi-part
results (vocals + instrumental, stems) should download in parallel.

HOW: ResultDownloader owns its own httpx.AsyncClient without the API's
bearer token (storage hosts must not see it). download_one() streams into
``<dest>.part`` and renames on success. download_many() runs one
download_one() per entry concurrently with asyncio.gather.

RULES:
- Use as: async with ResultDownloader() as downloader: ...
- A file only appears at its final path after the stream completed
- Any failure or cancellation removes the .part file
- download_many names files "{name}.wav" inside dest_dir; two parts that
  would share a file raise InvalidRequestError before any download starts
- First failure cancels the remaining downloads and is re-raised; files
  that already finished stay on disk (no rollback)
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional

import httpx

from kits_cli.api.errors import DownloadError, InvalidRequestError
from kits_cli.config import CONNECT_TIMEOUT_S, METADATA_TIMEOUT_S

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class ResultDownloader:
    """Persists result URLs to local files."""

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = METADATA_TIMEOUT_S,
    ) -> None:
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> ResultDownloader:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout, connect=CONNECT_TIMEOUT_S),
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "ResultDownloader must be used as an async context manager: "
                "async with ResultDownloader() as downloader: ..."
            )
        return self._client

    async def download_one(self, url: str, dest_path: Path) -> Path:
        """Stream ``url`` to ``dest_path``.

        Returns:
            The final destination path.

        Raises:
            DownloadError: on any HTTP, network or filesystem failure. The
            partial file is removed first.
        """
        client = self._ensure_client()
        dest = Path(dest_path)
        part = dest.with_name(dest.name + ".part")
        done = False

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            async with client.stream("GET", url) as resp:
                resp.raise_for_status()
                with open(part, "wb") as f:
                    async for chunk in resp.aiter_bytes(_CHUNK_SIZE):
                        f.write(chunk)
            part.replace(dest)
            done = True
        except (httpx.HTTPError, OSError) as exc:
            raise DownloadError(url, exc) from exc
        finally:
            if not done:
                part.unlink(missing_ok=True)

        logger.info("Downloaded %s", dest)
        return dest

    async def download_many(
        self,
        outputs: Mapping[str, str],
        dest_dir: Path,
    ) -> Dict[str, Path]:
        """Download every ``name -> url`` entry to ``dest_dir/{name}.wav``.

        Downloads run concurrently and in no particular order. See the
        module docstring for the partial-failure behaviour.
        """
        dest_dir = Path(dest_dir)
        names = list(outputs)
        dests: Dict[str, Path] = {}
        claimed: Dict[Path, str] = {}
        for name in names:
            dest = dest_dir / f"{_safe_name(name)}.wav"
            if dest in claimed:
                raise InvalidRequestError(
                    "Result parts '{}' and '{}' would both be saved as {}".format(
                        claimed[dest], name, dest.name
                    )
                )
            claimed[dest] = name
            dests[name] = dest

        dest_dir.mkdir(parents=True, exist_ok=True)
        tasks = [
            asyncio.ensure_future(self.download_one(outputs[name], dests[name]))
            for name in names
        ]
        try:
            paths = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return dict(zip(names, paths))


def _safe_name(name: str) -> str:
    """Keep server-supplied part names inside dest_dir."""
    cleaned = name.replace("/", "_").replace("\\", "_").strip(". ")
    return cleaned or "output"
