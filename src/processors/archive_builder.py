import logging
import threading
import importlib.util
import zipfile
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from tempfile import SpooledTemporaryFile
from typing import IO, Dict, List, Optional, Set

from api.base import PayrollGateway
from config.settings import ARCHIVE_SPOOL_MAX_BYTES
from core.exceptions import (
    ArchiveBuildInProgressError, BatchNotReadyError, CompressionUnavailable, EmptyBatchError, NotFoundError,
    RenderError
)
from models.payroll import GeneratedPayslip
from processors.payslip_renderer import PayslipRenderer
from processors.progress import COMPRESSING, DONE, GENERATING, ProgressChannel, ProgressEvent

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def compression_available() -> bool:
    """DEFLATE needs the zlib module"""
    return importlib.util.find_spec("zlib") is not None


def archive_filename(batch_id: int) -> str:
    return f"batch_{batch_id}_payslips.zip"


@dataclass
class ArchiveResult:
    """Outcome of a batch download: an archive, or individual payslips as fallback"""
    batch_id: int
    filename: str
    archive: Optional[IO[bytes]] = None
    payslips: List[GeneratedPayslip] = field(default_factory=list)
    count: int = 0
    skipped: int = 0
    notice: Optional[str] = None

    @property
    def is_archive(self) -> bool:
        return self.archive is not None


class BuildLocks:
    """One archive build per batch at a time"""

    def __init__(self):
        self._guard = threading.Lock()
        self._active: Set[int] = set()

    @contextmanager
    def hold(self, batch_id: int):
        with self._guard:
            if batch_id in self._active:
                raise ArchiveBuildInProgressError()
            self._active.add(batch_id)
        try:
            yield
        finally:
            with self._guard:
                self._active.discard(batch_id)

    def is_active(self, batch_id: int) -> bool:
        with self._guard:
            return batch_id in self._active


class PayslipArchive:
    """Staging container for one batch.

    Payslips are stored uncompressed under ``batch_{id}/`` while they are
    generated; ``compress`` then writes the whole container out with
    maximum DEFLATE compression, entry by entry in chunks.
    """

    def __init__(self, batch_id: int, spool_max_bytes: int = ARCHIVE_SPOOL_MAX_BYTES):
        self.batch_id = batch_id
        self.folder = f"batch_{batch_id}"
        self.spool_max_bytes = spool_max_bytes
        self._staging = SpooledTemporaryFile(max_size=spool_max_bytes)
        self._zip = zipfile.ZipFile(self._staging, mode="w", compression=zipfile.ZIP_STORED)
        self._names: Dict[str, int] = {}

    def add(self, payslip: GeneratedPayslip) -> str:
        arcname = self._unique_name(payslip.filename)
        self._zip.writestr(arcname, payslip.content, compress_type=zipfile.ZIP_STORED)
        return arcname

    def __len__(self) -> int:
        return len(self._zip.infolist())

    def names(self) -> List[str]:
        return [info.filename for info in self._zip.infolist()]

    def compress(self, on_progress=None) -> IO[bytes]:
        """Write the final DEFLATE (level 9) archive and return it rewound"""
        if not compression_available():
            raise CompressionUnavailable()

        self._zip.close()
        self._staging.seek(0)
        output = SpooledTemporaryFile(max_size=self.spool_max_bytes)
        try:
            with zipfile.ZipFile(self._staging, mode="r") as staged, \
                    zipfile.ZipFile(output, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as final:
                entries = staged.infolist()
                total_bytes = sum(info.file_size for info in entries) or 1
                written = 0
                for info in entries:
                    # A name (not a ZipInfo) makes the entry inherit the archive compression level
                    with staged.open(info) as src, final.open(info.filename, mode="w") as dest:
                        while True:
                            chunk = src.read(CHUNK_SIZE)
                            if not chunk:
                                break
                            dest.write(chunk)
                            written += len(chunk)
                            if on_progress:
                                on_progress(min(100.0, written * 100.0 / total_bytes))
            if on_progress:
                on_progress(100.0)
        except Exception:
            output.close()
            raise
        output.seek(0)
        return output

    def close(self) -> None:
        try:
            self._zip.close()
        finally:
            self._staging.close()

    def _unique_name(self, filename: str) -> str:
        count = self._names.get(filename, 0) + 1
        self._names[filename] = count
        if count > 1:
            path = PurePosixPath(filename)
            filename = f"{path.stem}_{count}{path.suffix}"
            self._names[filename] = 1
        return f"{self.folder}/{filename}"


class ArchiveBuilder:
    """Render every payslip of a completed batch and bundle them into a ZIP"""

    def __init__(self, gateway: PayrollGateway, renderer: Optional[PayslipRenderer] = None,
                 locks: Optional[BuildLocks] = None):
        self.gateway = gateway
        self.renderer = renderer or PayslipRenderer()
        self.locks = locks or BuildLocks()

    def build(self, batch_id: int, progress: Optional[ProgressChannel] = None) -> ArchiveResult:
        progress = progress or ProgressChannel()

        with self.locks.hold(batch_id):
            batch, employees = self._fetch(batch_id)

            if not batch.is_completed:
                raise BatchNotReadyError()
            if not employees:
                raise EmptyBatchError()

            if not compression_available():
                return self._build_individual(batch, employees)

            logger.info("Building payslip archive for batch %s (%d employees)", batch_id, len(employees))
            total = len(employees)
            archive = PayslipArchive(batch_id)
            try:
                progress.publish(ProgressEvent(batch_id, GENERATING, 0, total))
                skipped = 0
                for index, employee in enumerate(employees, start=1):
                    try:
                        archive.add(self.renderer.render(employee, batch))
                    except RenderError as e:
                        skipped += 1
                        logger.warning("Skipping payslip: %s", e.message)
                    except Exception:
                        skipped += 1
                        logger.exception("Skipping payslip for employee %s", employee.employee_id)
                    progress.publish(ProgressEvent(batch_id, GENERATING, index, total))

                data = archive.compress(
                    lambda percent: progress.publish(ProgressEvent(batch_id, COMPRESSING, percent=percent))
                )
            finally:
                archive.close()

            count = total - skipped
            progress.publish(ProgressEvent(batch_id, DONE, count, total, 100.0))
            logger.info("Payslip archive for batch %s ready: %d entries, %d skipped", batch_id, count, skipped)
            return ArchiveResult(
                batch_id=batch_id,
                filename=archive_filename(batch_id),
                archive=data,
                count=count,
                skipped=skipped
            )

    def render_one(self, batch_id: int, employee_id: int) -> GeneratedPayslip:
        """Render a single payslip for individual download"""
        batch = self.gateway.get_batch(batch_id)
        if not batch.is_completed:
            raise BatchNotReadyError()
        for employee in self.gateway.list_batch_employees(batch_id):
            if employee.employee_id == employee_id:
                return self.renderer.render(employee, batch)
        raise NotFoundError(f"Employee {employee_id} is not part of batch {batch_id}")

    def _fetch(self, batch_id: int):
        """Batch and employee rows are independent reads"""
        if not getattr(self.gateway, "concurrent_reads", False):
            return self.gateway.get_batch(batch_id), self.gateway.list_batch_employees(batch_id)
        with ThreadPoolExecutor(max_workers=2) as pool:
            batch_future = pool.submit(self.gateway.get_batch, batch_id)
            employees_future = pool.submit(self.gateway.list_batch_employees, batch_id)
            return batch_future.result(), employees_future.result()

    def _build_individual(self, batch, employees) -> ArchiveResult:
        logger.warning("Compression unavailable; returning payslips for batch %s individually", batch.batch_id)
        payslips = []
        skipped = 0
        for employee in employees:
            try:
                payslips.append(self.renderer.render(employee, batch))
            except RenderError as e:
                skipped += 1
                logger.warning("Skipping payslip: %s", e.message)
            except Exception:
                skipped += 1
                logger.exception("Skipping payslip for employee %s", employee.employee_id)
        return ArchiveResult(
            batch_id=batch.batch_id,
            filename=archive_filename(batch.batch_id),
            payslips=payslips,
            count=len(payslips),
            skipped=skipped,
            notice=CompressionUnavailable().message
        )
