from .deduction_calculator import compute_deductions, compute_withholding_tax
from .payslip_renderer import PayslipRenderer, payslip_filename
from .archive_builder import ArchiveBuilder, ArchiveResult, BuildLocks, PayslipArchive
from .progress import ProgressChannel, ProgressEvent, ProgressTracker


__all__ = [
    'compute_deductions',
    'compute_withholding_tax',
    'PayslipRenderer',
    'payslip_filename',
    'ArchiveBuilder',
    'ArchiveResult',
    'BuildLocks',
    'PayslipArchive',
    'ProgressChannel',
    'ProgressEvent',
    'ProgressTracker'
]
