"""Shared fixtures for the LogDash tests."""

import pytest

from logdash.data.parser import TabularPayload
from logdash.utils import debug_log


@pytest.fixture(autouse=True)
def _reset_debug_log():
    yield
    debug_log.shutdown()
    debug_log.clear_benchmark_stats()


@pytest.fixture
def sample_payload():
    """A small log with boost, temperature, RPM, torque and a text column."""
    headers = ['Time', 'Boost [psi]', 'IAT [°C]', 'RPM [rpm]', 'Torque [Nm]', 'Gear', 'Status']
    rows = [
        {'Time': 0.0, 'Boost [psi]': 1.0, 'IAT [°C]': 20.0, 'RPM [rpm]': 2000, 'Torque [Nm]': 150.0,
         'Gear': 2, 'Status': 'ok'},
        {'Time': 0.5, 'Boost [psi]': 10.0, 'IAT [°C]': 25.0, 'RPM [rpm]': 3000, 'Torque [Nm]': 200.0,
         'Gear': 2, 'Status': 'ok'},
        {'Time': 1.0, 'Boost [psi]': 18.5, 'IAT [°C]': 30.0, 'RPM [rpm]': 4000, 'Torque [Nm]': None,
         'Gear': 3, 'Status': 'warn'},
        {'Time': 1.5, 'Boost [psi]': 12.0, 'IAT [°C]': 28.0, 'RPM [rpm]': 5000, 'Torque [Nm]': 260.0,
         'Gear': 3, 'Status': 'ok'},
    ]
    return TabularPayload(source_name='sample.csv', headers=headers, rows=rows)


SAMPLE_CSV = """Time,Boost [psi],IAT [°C],RPM [rpm],Torque [Nm],Gear,Status
0.0,1.0,20,2000,150,2,ok
0.5,10.0,25,3000,200,2,ok
1.0,18.5,30,4000,,3,warn
1.5,12.0,28,5000,260,3,ok
"""


@pytest.fixture
def sample_csv_text():
    return SAMPLE_CSV
