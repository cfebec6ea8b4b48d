import argparse
import logging
import shutil
from datetime import date
from config.settings import LOG_LEVEL, OUTPUT_DIR
from database.db import init_db, SessionLocal
from database.repository import PayrollRepository
from api.mock_payroll import MockPayrollAPI
from processors.progress import ProgressChannel
from services.batch_manager import BatchLifecycleManager

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def seed(year: int, month: int, department: str = None) -> int:
    """Create one completed sample batch for a month and return its id"""
    api = MockPayrollAPI()
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    end = date.fromordinal(end.toordinal() - 1)

    db = SessionLocal()
    try:
        repo = PayrollRepository(db)
        for employee in api.get_employees():
            repo.save_employee(employee)

        manager = BatchLifecycleManager(repo)
        batch = manager.create(f"{start:%B %Y} Payroll", start, end, department=department)
        repo.add_batch_employees(batch.batch_id, api.get_batch_records(start, end, department))
        manager.set_status(batch.batch_id, 'completed')
        logger.info("Seeded batch %s with sample employees", batch.batch_id)
        return batch.batch_id
    finally:
        db.close()


def export(batch_id: int) -> None:
    """Write the payslip archive of a batch to the output folder"""
    channel = ProgressChannel()
    channel.subscribe(lambda event: print(f"  {event.message}", end="\r", flush=True))

    db = SessionLocal()
    try:
        manager = BatchLifecycleManager(PayrollRepository(db))
        result = manager.download(batch_id, channel)
    finally:
        db.close()
    print()

    if result.is_archive:
        target = OUTPUT_DIR / result.filename
        with open(target, 'wb') as fh:
            shutil.copyfileobj(result.archive, fh)
        result.archive.close()
        print(f"Saved {result.count} payslips to {target} ({result.skipped} skipped)")
        return

    print(result.notice)
    folder = OUTPUT_DIR / "payslips"
    for payslip in result.payslips:
        (folder / payslip.filename).write_bytes(payslip.content)
    print(f"Saved {len(result.payslips)} payslips to {folder}")


def main():
    """Main entry point for payroll batch administration"""
    parser = argparse.ArgumentParser(description="Payroll batch administration")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("init", help="create database tables")
    seed_parser = commands.add_parser("seed", help="create a completed sample batch")
    seed_parser.add_argument("--year", type=int, default=date.today().year)
    seed_parser.add_argument("--month", type=int, default=date.today().month)
    seed_parser.add_argument("--department")
    export_parser = commands.add_parser("export", help="write the payslip archive of a batch")
    export_parser.add_argument("batch_id", type=int)
    args = parser.parse_args()

    logger.info("Initializing database...")
    init_db()

    if args.command == "seed":
        batch_id = seed(args.year, args.month, args.department)
        print(f"Created batch {batch_id}")
    elif args.command == "export":
        export(args.batch_id)
    else:
        logger.info("System initialized successfully")


if __name__ == "__main__":
    main()
