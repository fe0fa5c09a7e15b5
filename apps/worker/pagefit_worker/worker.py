"""Worker runtime for executing page composition jobs."""

import logging
import os
import threading
import time
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Any, Dict, List, Optional, Tuple

import requests

from .client import ConvexClient, ConvexError
from .compose import CompositionResult, ScaleResult
from .errors import InvalidInput, PageFitError
from .history import ConvexHistoryStore, HistoryStore
from .thumbnails import DEFAULT_THUMBNAIL_SIZE
from .tools import (
    merge_output_name,
    merge_pdfs,
    mix_output_name,
    mix_pdfs,
    normalize_output_name,
    normalize_pdf,
    remove_output_name,
    remove_pages,
    reorder_output_name,
    reorder_pages,
    scale_output_name,
    scale_pdf,
    thumbnail_output_name,
    thumbnail_png,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

SUPPORTED_TOOLS = (
    "scale",
    "merge",
    "mix",
    "normalize",
    "reorder",
    "remove-pages",
    "thumbnail",
)


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on", "y"}


def _parse_int(value: Any, default: int) -> int:
    """Parse an integer with a safe fallback."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for an entry point."""
    resolved = (level or os.environ.get("PAGEFIT_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, resolved, logging.INFO), format=LOG_FORMAT)


def _result_meta(result: CompositionResult) -> Dict[str, Any]:
    """Describe a composition result the way the job record stores it."""
    meta: Dict[str, Any] = {
        "width": round(result.width),
        "height": round(result.height),
        "pageCount": result.page_count,
    }
    if isinstance(result, ScaleResult):
        meta.update(
            {
                "scale": round(result.scale, 4),
                "sourceWidth": round(result.source_width),
                "sourceHeight": round(result.source_height),
            }
        )
    return meta


class PageFitWorker:
    """Poll Convex for jobs and run page composition tools."""

    def __init__(
        self,
        convex_url: str,
        worker_id: str,
        worker_token: str,
        history_enabled: bool = True,
    ) -> None:
        """Initialize the worker with Convex configuration."""
        self.client = ConvexClient(convex_url)
        self.worker_id = worker_id
        self.worker_token = worker_token
        self._client_lock = threading.Lock()
        self.history: Optional[HistoryStore] = (
            ConvexHistoryStore(self.client, worker_token, lock=self._client_lock)
            if history_enabled
            else None
        )

    def run(self) -> None:
        """Run the worker polling loop."""
        poll_interval = _env_float("PAGEFIT_POLL_INTERVAL", 5)
        logger.info("Worker %s polling every %.1fs", self.worker_id, poll_interval)
        while True:
            job = self._mutation(
                "jobs:claimNextJob",
                {"workerId": self.worker_id, "workerToken": self.worker_token},
            )
            if not job:
                time.sleep(poll_interval)
                continue
            self._process_job(job)

    def _process_job(self, job: Dict[str, Any]) -> None:
        """Process a single job from Convex."""
        job_id = job["_id"]
        started = time.time()
        progress = {"value": 10}
        stop_event = threading.Event()
        heartbeat = threading.Thread(
            target=self._heartbeat, args=(job_id, progress, stop_event), daemon=True
        )
        heartbeat.start()
        logger.info("Job %s: %s", job_id, job.get("tool"))
        try:
            self._report(job_id, 10)
            with TemporaryDirectory() as temp:
                temp_path = Path(temp)
                inputs = self._download_inputs(job["inputs"], temp_path)
                progress["value"] = 40
                self._report(job_id, 40)
                outputs, meta = self._run_tool(job, inputs, temp_path)
                progress["value"] = 75
                self._report(job_id, 75)
                output_payload = self._upload_outputs(outputs)
            elapsed_minutes = max((time.time() - started) / 60, 0.01)
            bytes_processed = sum(item.get("sizeBytes", 0) for item in job["inputs"])
            self._mutation(
                "jobs:completeJob",
                {
                    "jobId": job_id,
                    "workerId": self.worker_id,
                    "outputs": output_payload,
                    "resultMeta": meta,
                    "minutesUsed": elapsed_minutes,
                    "bytesProcessed": bytes_processed,
                    "workerToken": self.worker_token,
                },
            )
            self._report(job_id, 100)
        except PageFitError as error:
            self._safe_fail(job_id, error.code, error.message)
        except ValueError as error:
            self._safe_fail(job_id, "USER_INPUT_INVALID", str(error), str(error))
        except ConvexError as error:
            self._safe_fail(
                job_id,
                "SERVICE_CAPACITY_TEMPORARY",
                "Processing failed. Please retry.",
                error.message,
            )
        except Exception as error:  # noqa: BLE001
            logger.exception("Job %s crashed", job_id)
            self._safe_fail(
                job_id,
                "SERVICE_CAPACITY_TEMPORARY",
                "Processing failed. Please retry.",
                str(error),
            )
        finally:
            stop_event.set()
            heartbeat.join(timeout=1)

    def _report(self, job_id: str, progress: int) -> None:
        """Update job progress and renew the lease."""
        self._mutation(
            "jobs:reportJobProgress",
            {
                "jobId": job_id,
                "workerId": self.worker_id,
                "progress": progress,
                "workerToken": self.worker_token,
            },
        )

    def _fail(
        self,
        job_id: str,
        error_code: str,
        error_message: str,
        log_message: str | None = None,
    ) -> None:
        """Report a failed job with a friendly error."""
        logger.warning("Job %s failed (%s): %s", job_id, error_code, log_message or error_message)
        self._mutation(
            "jobs:failJob",
            {
                "jobId": job_id,
                "workerId": self.worker_id,
                "errorCode": error_code,
                "errorMessage": error_message,
                "workerToken": self.worker_token,
            },
        )

    def _safe_fail(
        self,
        job_id: str,
        error_code: str,
        error_message: str,
        log_message: str | None = None,
    ) -> None:
        """Attempt to report a failure without crashing the worker."""
        try:
            self._fail(job_id, error_code, error_message, log_message)
        except Exception as error:  # noqa: BLE001
            logger.error("Failed to report job failure for %s: %s", job_id, error)

    def _heartbeat(
        self, job_id: str, progress: Dict[str, int], stop_event: threading.Event
    ) -> None:
        """Heartbeat loop that renews the job lease."""
        interval = _env_float("PAGEFIT_WORKER_HEARTBEAT_SECONDS", 25)
        while not stop_event.wait(interval):
            self._report(job_id, progress["value"])

    def _download_inputs(self, inputs: List[Dict[str, Any]], temp: Path) -> List[Path]:
        """Download job inputs to a temporary directory."""
        paths: List[Path] = []
        for index, item in enumerate(inputs, start=1):
            url = self._query(
                "files:getDownloadUrl",
                {
                    "storageId": item["storageId"],
                    "workerToken": self.worker_token,
                },
            )
            if not url:
                raise RuntimeError("Missing download URL")
            filename = f"{index:02d}_{Path(item['filename']).name}"
            target = temp / filename
            with requests.get(url, stream=True, timeout=120) as response:
                response.raise_for_status()
                with target.open("wb") as handle:
                    for chunk in response.iter_content(chunk_size=1024 * 1024):
                        if chunk:
                            handle.write(chunk)
            paths.append(target)
        return paths

    def _run_tool(
        self, job: Dict[str, Any], inputs: List[Path], temp: Path
    ) -> Tuple[List[Path], Dict[str, Any]]:
        """
        Dispatch the job's tool and return its output files and result metadata.

        Config keys: ``targetWidth``, ``targetHeight``, ``canvas``,
        ``pageOrder``, ``pages`` and ``pageIndex``. Output files are written
        under ``temp`` first and renamed once the result size is known.

        Raises:
            InvalidInput: When the job has no input files or an unknown tool.
            PageFitError: When the composition request itself is rejected.
        """
        tool = job["tool"]
        config = job.get("config")
        if not isinstance(config, dict):
            config = {}
        if tool not in SUPPORTED_TOOLS:
            raise InvalidInput(f"Unsupported tool: {tool}")
        if not inputs:
            raise InvalidInput("PDF file is required")
        staging = temp / "output.pdf"
        input_name = inputs[0].name

        if tool == "scale":
            result = scale_pdf(inputs[0], staging, config.get("targetWidth"), self.history)
            name = scale_output_name(input_name, result)
        elif tool == "merge":
            result = merge_pdfs(inputs, staging, config.get("targetWidth"))
            name = merge_output_name(result)
        elif tool == "mix":
            result = mix_pdfs(inputs, staging, config.get("pageOrder"), config.get("targetWidth"))
            name = mix_output_name(result)
        elif tool == "normalize":
            result = normalize_pdf(
                inputs[0],
                staging,
                config.get("canvas") or "custom",
                config.get("targetWidth"),
                config.get("targetHeight"),
            )
            name = normalize_output_name(input_name, result)
        elif tool == "reorder":
            result = reorder_pages(inputs[0], staging, config.get("pageOrder"))
            name = reorder_output_name(input_name)
        elif tool == "remove-pages":
            result = remove_pages(inputs[0], staging, config.get("pages"))
            name = remove_output_name(input_name)
        else:
            page_index = _parse_int(config.get("pageIndex"), -1)
            size = _env_int("PAGEFIT_THUMBNAIL_SIZE", DEFAULT_THUMBNAIL_SIZE)
            target = temp / thumbnail_output_name(input_name, page_index)
            return [thumbnail_png(inputs[0], target, page_index, size)], {"pageIndex": page_index}

        return [staging.rename(temp / name)], _result_meta(result)

    def _upload_outputs(self, outputs: List[Path]) -> List[Dict[str, Any]]:
        """Upload output files to Convex storage."""
        payload = []
        for output in outputs:
            upload_url = self._mutation(
                "files:generateUploadUrl", {"workerToken": self.worker_token}
            )
            content_type = "image/png" if output.suffix == ".png" else "application/pdf"
            with output.open("rb") as handle:
                response = requests.post(
                    upload_url,
                    data=handle,
                    headers={"Content-Type": content_type},
                    timeout=120,
                )
                response.raise_for_status()
                storage_id = response.json()["storageId"]
            payload.append(
                {
                    "storageId": storage_id,
                    "filename": output.name,
                    "sizeBytes": output.stat().st_size,
                }
            )
        return payload

    def _mutation(self, path: str, args: Dict[str, Any]) -> Any:
        """Execute a mutation with thread-safe access."""
        with self._client_lock:
            return self.client.mutation(path, args)

    def _query(self, path: str, args: Dict[str, Any]) -> Any:
        """Execute a query with thread-safe access."""
        with self._client_lock:
            return self.client.query(path, args)


def main() -> None:
    """Entrypoint for the worker process."""
    configure_logging()
    convex_url = os.environ.get("PAGEFIT_CONVEX_URL")
    if not convex_url:
        raise RuntimeError("PAGEFIT_CONVEX_URL is required")
    worker_id = os.environ.get("PAGEFIT_WORKER_ID", "worker-local")
    worker_token = os.environ.get("PAGEFIT_WORKER_TOKEN")
    if not worker_token:
        raise RuntimeError("PAGEFIT_WORKER_TOKEN is required")
    history_enabled = _env_bool("PAGEFIT_HISTORY_ENABLED", True)
    worker = PageFitWorker(convex_url, worker_id, worker_token, history_enabled)
    try:
        worker.run()
    finally:
        worker.client.close()


if __name__ == "__main__":
    main()
