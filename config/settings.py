import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Paths
DATA_DIR = BASE_DIR / "data"
OUTPUT_DIR = BASE_DIR / "output"
ASSETS_DIR = BASE_DIR / "assets"

# Ensure directories exist
DATA_DIR.mkdir(exist_ok=True)
OUTPUT_DIR.mkdir(exist_ok=True)
(OUTPUT_DIR / "payslips").mkdir(exist_ok=True)

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'payroll.db'}")

# Payroll backend: "database" uses the local SQLAlchemy store,
# "api" talks to the external payroll service
PAYROLL_BACKEND = os.getenv("PAYROLL_BACKEND", "database").lower()
PAYROLL_API_URL = os.getenv("PAYROLL_API_URL", "http://localhost/intro/api")
PAYROLL_API_TIMEOUT = float(os.getenv("PAYROLL_API_TIMEOUT", "10"))

# Payslip rendering
COMPANY_NAME = os.getenv("COMPANY_NAME", "Unitop")
PAYSLIP_LOGO_PATH = os.getenv("PAYSLIP_LOGO_PATH", str(ASSETS_DIR / "logo.png"))
PAYSLIP_FONT_PATH = os.getenv("PAYSLIP_FONT_PATH", "")
PAYSLIP_JPEG_QUALITY = int(os.getenv("PAYSLIP_JPEG_QUALITY", "85"))

# Archive assembly (bytes kept in memory before spilling to disk)
ARCHIVE_SPOOL_MAX_BYTES = int(os.getenv("ARCHIVE_SPOOL_MAX_BYTES", str(32 * 1024 * 1024)))

# Overtime QR scan window (local time)
TIMEZONE = os.getenv("TIMEZONE", "Asia/Manila")
OVERTIME_SCAN_START = os.getenv("OVERTIME_SCAN_START", "20:30")
OVERTIME_SCAN_END = os.getenv("OVERTIME_SCAN_END", "22:00")

# Application settings
DEBUG = os.getenv("DEBUG", "False").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "5000"))

# Flask session secret
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
