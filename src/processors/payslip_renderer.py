import io
import logging
import threading
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Dict, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from config.settings import COMPANY_NAME, PAYSLIP_FONT_PATH, PAYSLIP_JPEG_QUALITY, PAYSLIP_LOGO_PATH
from core.exceptions import RenderError
from models.payroll import BatchEmployeeRecord, GeneratedPayslip, PayrollBatch
from processors.deduction_calculator import compute_deductions
from utils.formatters import format_money, format_pay_period, format_processed_date, slugify_name

logger = logging.getLogger(__name__)

WIDTH, HEIGHT, MARGIN = 1000, 1400, 60
LINE_GAP = 34

WHITE = "#ffffff"
BORDER = "#e5e7eb"
INK = "#111827"
MUTED = "#6b7280"
SUBTLE = "#374151"
SIGNATURE = "#9ca3af"
NET_PAY = "#065f46"

REGULAR_FONTS = ("DejaVuSans.ttf", "Arial.ttf", "arial.ttf", "LiberationSans-Regular.ttf")
BOLD_FONTS = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf", "LiberationSans-Bold.ttf")


def payslip_filename(record: BatchEmployeeRecord, batch: PayrollBatch) -> str:
    """payslip_{last name slug}_{period end}.jpg"""
    last_name = slugify_name(record.last_name) or "employee"
    period = batch.payroll_period_end.isoformat() if batch.payroll_period_end else "period"
    return f"payslip_{last_name}_{period}.jpg"


def display_employee_id(record: BatchEmployeeRecord, batch: PayrollBatch) -> str:
    """EMP{year}-{employee id padded to 3 digits}"""
    reference = batch.payroll_period_end or batch.payroll_period_start or batch.created_at
    year = reference.year if reference else date.today().year
    return f"EMP{year}-{record.employee_id:03d}"


class PayslipRenderer:
    """Render one employee's batch payslip as a JPEG image"""

    def __init__(self, company_name: str = COMPANY_NAME, logo_path: Optional[str] = PAYSLIP_LOGO_PATH,
                 quality: int = PAYSLIP_JPEG_QUALITY, font_path: Optional[str] = PAYSLIP_FONT_PATH):
        self.company_name = company_name
        self.logo_path = logo_path
        self.quality = quality
        self.font_path = font_path
        self._fonts: Dict[Tuple[int, bool], ImageFont.ImageFont] = {}
        self._logo: Optional[Image.Image] = None
        self._logo_loaded = False
        # One drawing surface, reused for every payslip this renderer produces
        self._canvas: Optional[Image.Image] = None
        self._lock = threading.Lock()

    def render(self, record: BatchEmployeeRecord, batch: PayrollBatch) -> GeneratedPayslip:
        """Draw the payslip and encode it; raises RenderError on backend failure"""
        with self._lock:
            try:
                canvas = self._surface()
                self._draw(ImageDraw.Draw(canvas), canvas, record, batch)
                buffer = io.BytesIO()
                canvas.save(buffer, format="JPEG", quality=self.quality)
            except (OSError, ValueError, KeyError, TypeError) as e:
                raise RenderError(f"Failed to render payslip for employee {record.employee_id}: {e}") from e

        return GeneratedPayslip(
            filename=payslip_filename(record, batch),
            content=buffer.getvalue(),
            employee_id=record.employee_id
        )

    # ========== Drawing ==========

    def _draw(self, draw: ImageDraw.ImageDraw, canvas: Image.Image,
              record: BatchEmployeeRecord, batch: PayrollBatch) -> None:
        # Background and border
        draw.rectangle([0, 0, WIDTH, HEIGHT], fill=WHITE)
        draw.rectangle([MARGIN // 2, MARGIN // 2, WIDTH - MARGIN // 2, HEIGHT - MARGIN // 2], outline=BORDER, width=2)

        # Header section
        company_x = MARGIN
        logo = self._load_logo()
        if logo is not None:
            logo_h = 48
            logo_w = max(1, round(logo_h * logo.width / logo.height)) if logo.height else logo_h
            resized = logo.resize((logo_w, logo_h))
            canvas.paste(resized, (MARGIN, MARGIN - 24), resized if resized.mode == "RGBA" else None)
            company_x = MARGIN + logo_w + 16
        self._text(draw, (company_x, MARGIN - 24), self.company_name, 36, bold=True)
        self._text_right(draw, (WIDTH - MARGIN, MARGIN - 18), "PAYSLIP", 28, bold=True)

        period = format_pay_period(batch.payroll_period_start, batch.payroll_period_end)
        self._text(draw, (MARGIN, MARGIN + 34), f"Pay Period: {period}", 18, fill=SUBTLE)
        self._divider(draw, MARGIN + 72)

        # Employee information
        y = MARGIN + 92
        self._text(draw, (MARGIN, y), "Employee Information", 18, bold=True)
        y += 20
        info = [
            ("Employee Name", record.full_name),
            ("Employee ID", display_employee_id(record, batch)),
            ("Batch ID", f"B-{batch.batch_id:03d}"),
            ("Processed Date", format_processed_date(batch.created_at)),
        ]
        for label, value in info:
            y += LINE_GAP
            self._text(draw, (MARGIN, y - 18), f"{label}:", 18, fill=MUTED)
            self._text(draw, (MARGIN + 220, y - 18), value, 18)
        y += 20
        self._divider(draw, y)

        # Earnings and deductions columns
        y += 40
        left_x = MARGIN
        right_x = WIDTH // 2 + 20
        self._text(draw, (left_x, y - 20), "Earnings", 20, bold=True)
        self._text(draw, (right_x, y - 20), "Deductions", 20, bold=True)
        y += 30

        earnings = [
            ("Basic Salary", record.basic_salary),
            ("Overtime Pay", record.overtime_pay),
        ]
        left_y = y
        for label, amount in earnings:
            self._text(draw, (left_x, left_y - 18), label, 18)
            self._text_right(draw, (right_x - 40, left_y - 18), format_money(amount), 18)
            left_y += LINE_GAP

        breakdown = compute_deductions(record.gross_pay)
        other = max(Decimal('0'), record.deductions - breakdown.sss - breakdown.philhealth
                    - breakdown.pagibig - breakdown.provident_fund - breakdown.tax)
        deductions = [
            ("SSS", breakdown.sss),
            ("PhilHealth", breakdown.philhealth),
            ("Pag-IBIG", breakdown.pagibig),
            ("Provident Fund", breakdown.provident_fund),
            ("Withholding Tax", breakdown.tax),
            ("Other Deductions", other),
        ]
        right_y = y
        for label, amount in deductions:
            self._text(draw, (right_x, right_y - 18), label, 18)
            self._text_right(draw, (WIDTH - MARGIN, right_y - 18), format_money(amount), 18)
            right_y += LINE_GAP

        # Totals
        totals_y = max(left_y, right_y) + 20
        self._divider(draw, totals_y)
        totals_y += 40
        for label, amount in (("Gross Pay", record.gross_pay), ("Total Deductions", record.deductions)):
            self._text(draw, (MARGIN, totals_y - 20), label, 20, bold=True)
            self._text_right(draw, (WIDTH - MARGIN, totals_y - 20), format_money(amount), 20, bold=True)
            totals_y += LINE_GAP
        totals_y += 10
        self._divider(draw, totals_y)
        totals_y += 40
        self._text(draw, (MARGIN, totals_y - 26), "NET PAY", 26, bold=True, fill=NET_PAY)
        self._text_right(draw, (WIDTH - MARGIN, totals_y - 26), format_money(record.net_pay), 26, bold=True, fill=NET_PAY)

        # Signature lines
        foot_y = totals_y + 80
        self._text(draw, (MARGIN, foot_y - 16), "This payslip is a system-generated document.", 16, fill=MUTED)
        foot_y += 80
        draw.line([(MARGIN, foot_y), (MARGIN + 260, foot_y)], fill=SIGNATURE, width=1)
        draw.line([(WIDTH - MARGIN - 260, foot_y), (WIDTH - MARGIN, foot_y)], fill=SIGNATURE, width=1)
        self._text(draw, (MARGIN, foot_y + 8), "Prepared By", 16, fill=SUBTLE)
        self._text_right(draw, (WIDTH - MARGIN, foot_y + 8), "Received By", 16, fill=SUBTLE)

    def _text(self, draw, xy, text, size, bold=False, fill=INK):
        draw.text(xy, str(text), font=self._font(size, bold), fill=fill)

    def _text_right(self, draw, xy, text, size, bold=False, fill=INK):
        font = self._font(size, bold)
        x, y = xy
        draw.text((x - draw.textlength(str(text), font=font), y), str(text), font=font, fill=fill)

    def _divider(self, draw, y):
        draw.line([(MARGIN, y), (WIDTH - MARGIN, y)], fill=BORDER, width=2)

    # ========== Resources ==========

    def _surface(self) -> Image.Image:
        if self._canvas is None:
            self._canvas = Image.new("RGB", (WIDTH, HEIGHT), WHITE)
        return self._canvas

    def _font(self, size: int, bold: bool) -> ImageFont.ImageFont:
        key = (size, bold)
        if key not in self._fonts:
            candidates = ([self.font_path] if self.font_path else []) + list(BOLD_FONTS if bold else REGULAR_FONTS)
            font = None
            for candidate in candidates:
                try:
                    font = ImageFont.truetype(candidate, size)
                    break
                except OSError:
                    continue
            if font is None:
                font = ImageFont.load_default(size=size)
            self._fonts[key] = font
        return self._fonts[key]

    def _load_logo(self) -> Optional[Image.Image]:
        """Logo is optional; a missing or broken file is not fatal"""
        if not self._logo_loaded:
            self._logo_loaded = True
            if self.logo_path and Path(self.logo_path).is_file():
                try:
                    with Image.open(self.logo_path) as img:
                        self._logo = img.convert("RGBA")
                except OSError:
                    logger.info("Payslip logo could not be loaded from %s", self.logo_path)
                    self._logo = None
        return self._logo
