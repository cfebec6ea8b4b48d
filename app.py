from flask import Flask, request, jsonify, send_file, url_for, g, session
from werkzeug.exceptions import HTTPException
from pathlib import Path
from decimal import Decimal
from io import BytesIO
import logging
import sys

sys.path.insert(0, str(Path(__file__).parent / 'src'))

from api.payroll_client import PayrollApiClient
from core.exceptions import DomainError
from database.db import init_db, SessionLocal
from database.models import OvertimeRequestDB, UndertimeRequestDB
from database.repository import PayrollRepository
from database.holiday_repository import HolidayRepository
from database.request_repository import TimeRequestRepository
from processors.archive_builder import ArchiveBuilder, BuildLocks
from processors.deduction_calculator import compute_deductions
from processors.payslip_renderer import PayslipRenderer
from processors.progress import ProgressChannel, ProgressTracker
from services.batch_manager import BatchLifecycleManager, EDITABLE_FIELDS
from services.holiday_service import HolidayService
from services.overtime_service import OvertimeService
from services.undertime_service import UndertimeService
from config.settings import DEBUG, LOG_LEVEL, PAYROLL_BACKEND, PORT, SECRET_KEY

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _payload():
    """JSON body, falling back to form fields"""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _actor(data):
    actor = data.get('actor_user_id') or session.get('user_id')
    try:
        return int(actor) if actor is not None else None
    except (TypeError, ValueError):
        return None


def create_app(session_factory=None, payroll_gateway=None, renderer=None, clock=None):
    """Build the Flask app.

    ``session_factory`` defaults to the configured database; ``payroll_gateway``
    overrides the batch backend selected by PAYROLL_BACKEND.
    """
    app = Flask(__name__)
    app.config['SECRET_KEY'] = SECRET_KEY
    app.config['DEBUG'] = DEBUG
    app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max request size

    if session_factory is None:
        init_db()
        session_factory = SessionLocal

    if payroll_gateway is None and PAYROLL_BACKEND == 'api':
        payroll_gateway = PayrollApiClient()

    renderer = renderer or PayslipRenderer()
    build_locks = BuildLocks()
    tracker = ProgressTracker()

    def db():
        if 'db' not in g:
            g.db = session_factory()
        return g.db

    @app.teardown_appcontext
    def close_db(exc):
        db_session = g.pop('db', None)
        if db_session is not None:
            if exc is not None:
                db_session.rollback()
            db_session.close()

    def batch_manager():
        gateway = payroll_gateway or PayrollRepository(db())
        return BatchLifecycleManager(gateway, ArchiveBuilder(gateway, renderer, build_locks))

    def holidays():
        return HolidayService(HolidayRepository(db()))

    def overtime():
        return OvertimeService(TimeRequestRepository(db(), OvertimeRequestDB), clock=clock)

    def undertime():
        return UndertimeService(TimeRequestRepository(db(), UndertimeRequestDB))

    # ============================================================================
    # Error Handlers
    # ============================================================================

    @app.errorhandler(DomainError)
    def handle_domain_error(e):
        return jsonify({'success': False, 'message': e.message}), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'success': False, 'message': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({'success': False, 'message': 'Server error'}), 500

    # ============================================================================
    # Payroll Batches
    # ============================================================================

    @app.route('/api/payroll/batches')
    def list_batches():
        """Filtered batch list, paginated over the full result"""
        manager = batch_manager()
        manager.list(
            search=request.args.get('search'),
            status=request.args.get('status'),
            date=request.args.get('date')
        )
        page = manager.paginate(
            page=request.args.get('page', 1),
            page_size=request.args.get('page_size', 10)
        )
        return jsonify(dict(success=True, **page.to_dict()))

    @app.route('/api/payroll/batches', methods=['POST'])
    def create_batch():
        data = _payload()
        batch = batch_manager().create(
            data.get('batch_name'),
            data.get('payroll_period_start'),
            data.get('payroll_period_end'),
            department=data.get('department'),
            notes=data.get('notes')
        )
        return jsonify({'success': True, 'message': 'Batch created', 'batch': batch.to_dict()}), 201

    @app.route('/api/payroll/batches/<int:batch_id>')
    def get_batch(batch_id):
        return jsonify({'success': True, 'batch': batch_manager().get(batch_id).to_dict()})

    @app.route('/api/payroll/batches/<int:batch_id>', methods=['PUT'])
    def update_batch(batch_id):
        data = _payload()
        fields = {key: data[key] for key in EDITABLE_FIELDS if key in data}
        batch = batch_manager().update(batch_id, **fields)
        return jsonify({'success': True, 'message': 'Batch updated', 'batch': batch.to_dict()})

    @app.route('/api/payroll/batches/<int:batch_id>/employees')
    def list_batch_employees(batch_id):
        """Employee rows with their deduction breakdown and batch totals"""
        records = batch_manager().list_employees(batch_id)
        employees = []
        for record in records:
            row = record.to_dict()
            breakdown = compute_deductions(record.gross_pay)
            row['gross_pay'] = f"{record.gross_pay:.2f}"
            row['breakdown'] = {
                'sss': f"{breakdown.sss:.2f}",
                'philhealth': f"{breakdown.philhealth:.2f}",
                'pagibig': f"{breakdown.pagibig:.2f}",
                'provident_fund': f"{breakdown.provident_fund:.2f}",
                'tax': f"{breakdown.tax:.2f}"
            }
            employees.append(row)

        totals = {
            'total_employees': len(records),
            'total_basic_salary': f"{sum((r.basic_salary for r in records), Decimal('0')):.2f}",
            'total_overtime_pay': f"{sum((r.overtime_pay for r in records), Decimal('0')):.2f}",
            'total_deductions': f"{sum((r.deductions for r in records), Decimal('0')):.2f}",
            'total_net_pay': f"{sum((r.net_pay for r in records), Decimal('0')):.2f}"
        }
        return jsonify({'success': True, 'employees': employees, 'totals': totals})

    @app.route('/api/payroll/batches/<int:batch_id>/status', methods=['POST'])
    def set_batch_status(batch_id):
        """Set an explicit status, or toggle completed/processing when none is given"""
        data = _payload()
        manager = batch_manager()
        if data.get('status'):
            batch = manager.set_status(batch_id, data['status'])
        else:
            batch = manager.toggle_status(batch_id)
        return jsonify({'success': True, 'message': f"Batch marked as {batch.status}", 'batch': batch.to_dict()})

    @app.route('/api/payroll/batches/<int:batch_id>/download')
    def download_batch(batch_id):
        """ZIP of every payslip; individual links when compression is unavailable"""
        channel = ProgressChannel()
        channel.subscribe(tracker)
        result = batch_manager().download(batch_id, channel)

        if result.is_archive:
            response = send_file(
                result.archive,
                mimetype='application/zip',
                as_attachment=True,
                download_name=result.filename
            )
            response.headers['X-Payslip-Count'] = str(result.count)
            response.headers['X-Payslips-Skipped'] = str(result.skipped)
            return response

        return jsonify({
            'success': True,
            'message': result.notice,
            'skipped': result.skipped,
            'payslips': [
                {
                    'filename': payslip.filename,
                    'url': url_for('download_payslip', batch_id=batch_id, employee_id=payslip.employee_id)
                }
                for payslip in result.payslips
            ]
        })

    @app.route('/api/payroll/batches/<int:batch_id>/progress')
    def batch_progress(batch_id):
        event = tracker.get(batch_id)
        return jsonify({
            'success': True,
            'in_progress': build_locks.is_active(batch_id),
            'progress': event.to_dict() if event else None
        })

    @app.route('/api/payroll/batches/<int:batch_id>/payslips/<int:employee_id>')
    def download_payslip(batch_id, employee_id):
        payslip = batch_manager().render_payslip(batch_id, employee_id)
        return send_file(
            BytesIO(payslip.content),
            mimetype=payslip.mimetype,
            as_attachment=True,
            download_name=payslip.filename
        )

    # ============================================================================
    # Holidays
    # ============================================================================

    @app.route('/api/holidays')
    def list_holidays():
        return jsonify(holidays().list(
            start_date=request.args.get('start_date'),
            end_date=request.args.get('end_date'),
            month=request.args.get('month'),
            year=request.args.get('year')
        ))

    @app.route('/api/holidays', methods=['POST'])
    def create_holiday():
        data = _payload()
        holiday = holidays().create(
            data.get('holiday_date'),
            data.get('holiday_name'),
            description=data.get('description'),
            is_recurring=data.get('is_recurring', False)
        )
        return jsonify({'success': True, 'data': holiday}), 201

    @app.route('/api/holidays/<int:holiday_id>')
    def get_holiday(holiday_id):
        return jsonify({'success': True, 'data': holidays().get(holiday_id)})

    @app.route('/api/holidays/<int:holiday_id>', methods=['PUT'])
    def update_holiday(holiday_id):
        data = {k: v for k, v in _payload().items() if k != 'id'}
        return jsonify({'success': True, 'data': holidays().update(holiday_id, **data)})

    @app.route('/api/holidays/<int:holiday_id>', methods=['DELETE'])
    def delete_holiday(holiday_id):
        holidays().delete(holiday_id)
        return jsonify({'success': True, 'message': 'Holiday deleted'})

    @app.route('/api/holidays/generate-recurring', methods=['POST'])
    def generate_recurring_holidays():
        result = holidays().generate_recurring(_payload().get('year'))
        return jsonify(dict(success=True, **result))

    # ============================================================================
    # Overtime
    # ============================================================================

    @app.route('/api/overtime')
    def list_overtime():
        return jsonify(overtime().list_all(
            start_date=request.args.get('start_date'),
            end_date=request.args.get('end_date'),
            employee_id=request.args.get('employee_id'),
            status=request.args.get('status')
        ))

    @app.route('/api/overtime/employee/<int:employee_id>')
    def list_employee_overtime(employee_id):
        return jsonify(overtime().list_by_employee(employee_id))

    @app.route('/api/overtime/pending')
    def list_pending_overtime():
        return jsonify(overtime().list_pending())

    @app.route('/api/overtime/approved')
    def list_approved_overtime():
        return jsonify(overtime().list_approved(
            start_date=request.args.get('start_date'),
            end_date=request.args.get('end_date')
        ))

    @app.route('/api/overtime', methods=['POST'])
    def request_overtime():
        data = _payload()
        item = overtime().request(
            data.get('employee_id'),
            data.get('work_date'),
            hours=data.get('hours'),
            reason=data.get('reason')
        )
        return jsonify({'success': True, 'data': item}), 201

    @app.route('/api/overtime/<int:ot_id>', methods=['PUT'])
    def update_overtime(ot_id):
        data = _payload()
        item = overtime().update(
            ot_id,
            data.get('work_date'),
            start_time=data.get('start_time'),
            end_time=data.get('end_time'),
            hours=data.get('hours'),
            reason=data.get('reason')
        )
        return jsonify({'success': True, 'data': item})

    @app.route('/api/overtime/<int:ot_id>/approve', methods=['POST'])
    def approve_overtime(ot_id):
        return jsonify({'success': True, 'data': overtime().approve(ot_id, _actor(_payload()))})

    @app.route('/api/overtime/<int:ot_id>/reject', methods=['POST'])
    def reject_overtime(ot_id):
        return jsonify({'success': True, 'data': overtime().reject(ot_id, _actor(_payload()))})

    @app.route('/api/overtime/scan', methods=['POST'])
    def log_overtime_scan():
        data = _payload()
        result = overtime().log_scan(data.get('employee_id'), work_date=data.get('work_date'))
        return jsonify(dict(success=True, **result))

    # ============================================================================
    # Undertime
    # ============================================================================

    @app.route('/api/undertime')
    def list_undertime():
        return jsonify(undertime().list_all(
            start_date=request.args.get('start_date'),
            end_date=request.args.get('end_date'),
            employee_id=request.args.get('employee_id'),
            status=request.args.get('status')
        ))

    @app.route('/api/undertime/employee/<int:employee_id>')
    def list_employee_undertime(employee_id):
        return jsonify(undertime().list_by_employee(employee_id))

    @app.route('/api/undertime/pending')
    def list_pending_undertime():
        return jsonify(undertime().list_pending())

    @app.route('/api/undertime', methods=['POST'])
    def request_undertime():
        data = _payload()
        item = undertime().request(
            data.get('employee_id'),
            data.get('work_date'),
            data.get('hours'),
            start_time=data.get('start_time'),
            end_time=data.get('end_time'),
            reason=data.get('reason')
        )
        return jsonify({'success': True, 'data': item}), 201

    @app.route('/api/undertime/<int:ut_id>', methods=['PUT'])
    def update_undertime(ut_id):
        data = _payload()
        item = undertime().update(
            ut_id,
            data.get('work_date'),
            data.get('hours'),
            start_time=data.get('start_time'),
            end_time=data.get('end_time'),
            reason=data.get('reason'),
            employee_id=data.get('employee_id')
        )
        return jsonify({'success': True, 'data': item})

    @app.route('/api/undertime/<int:ut_id>/approve', methods=['POST'])
    def approve_undertime(ut_id):
        return jsonify({'success': True, 'data': undertime().approve(ut_id, _actor(_payload()))})

    @app.route('/api/undertime/<int:ut_id>/reject', methods=['POST'])
    def reject_undertime(ut_id):
        return jsonify({'success': True, 'data': undertime().reject(ut_id, _actor(_payload()))})

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=PORT, debug=app.config['DEBUG'])
