import json
from datetime import date
from decimal import Decimal

import pytest
import requests

from api.payroll_client import PayrollApiClient
from core.exceptions import DomainError, NetworkError, NotFoundError


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Stands in for requests.Session and records every call"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self):
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, params=None, timeout=None):
        self.calls.append(('GET', url, params, timeout))
        return self._next()

    def post(self, url, data=None, timeout=None):
        self.calls.append(('POST', url, data, timeout))
        return self._next()


def client_with(*responses):
    session = FakeSession(*responses)
    return PayrollApiClient(base_url="http://payroll.local/api/", timeout=3, session=session), session


def test_list_batches_passes_filters():
    client, session = client_with(FakeResponse([
        {'batch_id': '4', 'batch_name': 'May 2024', 'payroll_period_start': '2024-05-01',
         'payroll_period_end': '2024-05-31', 'status': 'Completed', 'total_amount': '1500.5'}
    ]))

    batches = client.list_batches(search="may", status="completed")

    method, url, params, timeout = session.calls[0]
    assert (method, url, timeout) == ('GET', "http://payroll.local/api/payroll.php", 3)
    assert params == {'operation': 'listPayrollBatches', 'search': 'may', 'status': 'completed'}
    assert batches[0].batch_id == 4
    assert batches[0].status == "completed"
    assert batches[0].payroll_period_start == date(2024, 5, 1)
    assert batches[0].total_amount == Decimal('1500.5')


def test_get_batch_accepts_float_like_counts():
    client, _ = client_with(FakeResponse({'success': True, 'batch': {
        'batch_id': '8.0', 'batch_name': 'June 2024', 'total_employees': '12.0', 'status': 'pending'
    }}))

    batch = client.get_batch(8)

    assert (batch.batch_id, batch.total_employees) == (8, 12)


def test_list_batches_ignores_non_list_payload():
    client, _ = client_with(FakeResponse({'success': False}))

    assert client.list_batches() == []


def test_get_batch_not_found():
    client, _ = client_with(FakeResponse({'success': False, 'message': 'Batch not found'}))

    with pytest.raises(NotFoundError):
        client.get_batch(9)


def test_list_batch_employees():
    client, session = client_with(FakeResponse([
        {'employee_id': 3, 'first_name': 'Ana', 'last_name': 'Cruz', 'net_pay': '18200.00', 'deductions': '1800'}
    ]))

    records = client.list_batch_employees(7)

    assert session.calls[0][2] == {'operation': 'listPayrollBatchEmployees', 'batch_id': 7}
    assert records[0].gross_pay == Decimal('20000.00')


def test_create_batch_posts_json_form():
    client, session = client_with(FakeResponse({'success': True, 'batch_id': 12}))

    batch_id = client.create_batch({'batch_name': 'June', 'payroll_period_start': '2024-06-01'})

    method, _, form, _ = session.calls[0]
    assert method == 'POST'
    assert form['operation'] == 'createPayrollBatch'
    assert json.loads(form['json']) == {'batch_name': 'June', 'payroll_period_start': '2024-06-01'}
    assert batch_id == 12


def test_update_batch_includes_batch_id():
    client, session = client_with(FakeResponse({'success': True}))

    client.update_batch(5, {'notes': 'adjusted'})

    assert json.loads(session.calls[0][2]['json']) == {'notes': 'adjusted', 'batch_id': 5}


def test_mutation_failure_uses_service_message():
    client, _ = client_with(FakeResponse({'success': False, 'message': 'Period overlaps'}, status_code=400))

    with pytest.raises(DomainError) as exc:
        client.set_batch_status(5, "completed")
    assert exc.value.message == "Period overlaps"


def test_mutation_not_found():
    client, _ = client_with(FakeResponse({'success': False}, status_code=404))

    with pytest.raises(NotFoundError) as exc:
        client.update_batch(5, {'notes': 'x'})
    assert exc.value.message == "Failed to update batch"


def test_invalid_json_is_a_network_error():
    client, _ = client_with(FakeResponse(ValueError("no json"), status_code=200))

    with pytest.raises(NetworkError):
        client.create_batch({'batch_name': 'June'})


def test_connection_errors_become_network_errors():
    client, _ = client_with(requests.ConnectionError("refused"))

    with pytest.raises(NetworkError) as exc:
        client.list_batches()
    assert exc.value.status_code == 502


def test_http_error_on_read():
    client, _ = client_with(FakeResponse({'message': 'boom'}, status_code=500))

    with pytest.raises(NetworkError):
        client.get_batch(1)


def test_client_allows_concurrent_reads():
    assert PayrollApiClient.concurrent_reads is True
