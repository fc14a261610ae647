"""Tests for unit preference processing."""

import pytest

from logdash.data.parser import TabularPayload
from logdash.data.processor import UnitPreferences, process_log
from logdash.utils.units import DEFAULT_PREFERENCES


class TestUnitPreferences:

    def test_defaults(self):
        assert UnitPreferences().as_dict() == DEFAULT_PREFERENCES

    def test_set_returns_new_instance(self):
        prefs = UnitPreferences()
        changed = prefs.set('pressure', 'bar')
        assert changed.get('pressure') == 'bar'
        assert prefs.get('pressure') == 'psig'

    def test_aliases_are_canonicalised(self):
        assert UnitPreferences({'temperature': 'C'}).get('temperature') == '°C'

    def test_invalid_preferences_rejected(self):
        with pytest.raises(ValueError):
            UnitPreferences({'pressure': 'atm'})
        with pytest.raises(ValueError):
            UnitPreferences({'voltage': 'V'})

    def test_from_headers_adopts_native_units(self):
        prefs = UnitPreferences.from_headers(['Time', 'Boost [hPa]', 'Speed [km/h]', 'Gear'])
        assert prefs.get('pressure') == 'hPa'
        assert prefs.get('speed') == 'km/h'
        assert prefs.get('temperature') == DEFAULT_PREFERENCES['temperature']

    def test_from_headers_later_header_wins(self):
        prefs = UnitPreferences.from_headers(['MAP [psi]', 'Boost [hPa]'])
        assert prefs.get('pressure') == 'hPa'

    def test_from_headers_ignores_conversion_only_units(self):
        prefs = UnitPreferences.from_headers(['Boost [psi]', 'MAP [kPa]'])
        assert prefs.get('pressure') == 'psig'


class TestProcessLog:

    def test_native_preferences_convert_nothing(self, sample_payload):
        prefs = UnitPreferences.from_headers(sample_payload.headers)
        processed = process_log(sample_payload, prefs)
        assert processed.headers == sample_payload.headers
        assert processed.rows == sample_payload.rows
        assert not any(r.is_converted for r in processed.records.values())

    def test_conversion_renames_header_and_converts_values(self, sample_payload):
        prefs = UnitPreferences.from_headers(sample_payload.headers).set('pressure', 'bar')
        processed = process_log(sample_payload, prefs)

        assert 'Boost [bar]' in processed.headers
        assert 'Boost [psi]' not in processed.headers
        assert processed.headers.index('Boost [bar]') == 1

        record = processed.records['Boost [bar]']
        assert record.original_header == 'Boost [psi]'
        assert record.original_unit == 'psi'
        assert record.target_unit == 'bar'
        assert record.is_converted
        assert not record.has_error

        assert processed.rows[1]['Boost [bar]'] == pytest.approx(10.0 / 14.5038)

    def test_temperature_affine_conversion(self, sample_payload):
        prefs = UnitPreferences.from_headers(sample_payload.headers).set('temperature', '°F')
        processed = process_log(sample_payload, prefs)
        assert processed.rows[0]['IAT [°F]'] == pytest.approx(68.0)

    def test_unknown_headers_pass_through(self, sample_payload):
        processed = process_log(sample_payload, UnitPreferences().set('pressure', 'kPa'))
        assert [row['Status'] for row in processed.rows] == ['ok', 'ok', 'warn', 'ok']
        assert processed.records['Gear'].original_unit == ''
        assert processed.records['Gear'].target_unit == ''
        assert not processed.records['Gear'].is_converted

    def test_non_numeric_cells_untouched(self, sample_payload):
        prefs = UnitPreferences.from_headers(sample_payload.headers).set('torque', 'kgfm')
        processed = process_log(sample_payload, prefs)
        assert processed.rows[2]['Torque [kgfm]'] is None
        assert processed.rows[1]['Torque [kgfm]'] == pytest.approx(200.0 / 9.80665)

    def test_source_is_not_modified(self, sample_payload):
        before = [dict(r) for r in sample_payload.rows]
        process_log(sample_payload, UnitPreferences().set('pressure', 'bar'))
        assert sample_payload.rows == before

    def test_non_finite_result_falls_back_to_raw_value(self):
        payload = TabularPayload('huge.csv', ['Time', 'Boost [psi]'],
                                 [{'Time': 0, 'Boost [psi]': 1.0}, {'Time': 1, 'Boost [psi]': 1e308}])
        processed = process_log(payload, UnitPreferences({'pressure': 'hPa'}))

        record = processed.records['Boost [hPa]']
        assert record.is_converted
        assert record.has_error
        assert record.target_unit == 'hPa'
        assert processed.rows[1]['Boost [hPa]'] == 1e308
        assert processed.rows[0]['Boost [hPa]'] == pytest.approx(1 / 0.0145038)
        assert processed.conversion_errors() == ['Boost [hPa]']

    def test_cell_flags_follow_each_conversion(self):
        payload = TabularPayload('huge.csv', ['Boost [psi]'],
                                 [{'Boost [psi]': 1.0}, {'Boost [psi]': 1e308}])
        processed = process_log(payload, UnitPreferences({'pressure': 'hPa'}))

        assert processed.cell(0, 'Boost [hPa]').converted
        fallback = processed.cell(1, 'Boost [hPa]')
        assert not fallback.converted
        assert fallback.display_value == fallback.raw_value == 1e308

    def test_cell_exposes_raw_value(self, sample_payload):
        prefs = UnitPreferences.from_headers(sample_payload.headers).set('pressure', 'bar')
        processed = process_log(sample_payload, prefs)

        cell = processed.cell(1, 'Boost [bar]')
        assert cell.raw_value == 10.0
        assert cell.display_value == pytest.approx(10.0 / 14.5038)
        assert cell.converted

        untouched = processed.cell(1, 'Gear')
        assert untouched.display_value == untouched.raw_value == 2
        assert not untouched.converted

    def test_renamed_header_collision_is_resolved(self):
        payload = TabularPayload('dupe.csv', ['Boost [psi]', 'Boost [hPa]'],
                                 [{'Boost [psi]': 14.5038, 'Boost [hPa]': 1.0}])
        processed = process_log(payload, UnitPreferences({'pressure': 'hPa'}))
        assert processed.headers == ['Boost (0) [hPa]', 'Boost [hPa]']
        assert processed.records['Boost (0) [hPa]'].original_header == 'Boost [psi]'
        assert processed.records['Boost [hPa]'].original_header == 'Boost [hPa]'
        assert not processed.records['Boost [hPa]'].is_converted
        assert processed.rows[0]['Boost (0) [hPa]'] == pytest.approx(1000.0)
        assert processed.rows[0]['Boost [hPa]'] == 1.0

    def test_alias_preference_is_not_a_conversion(self):
        payload = TabularPayload('alias.csv', ['Boost [psi]'], [{'Boost [psi]': 5.0}])
        processed = process_log(payload, UnitPreferences({'pressure': 'psig'}))
        assert processed.headers == ['Boost [psi]']
        assert not processed.records['Boost [psi]'].is_converted
