"""Tests for safe key generation."""

from logdash.utils.keys import KeySanitizer, build_key_map, strip_unit


class TestKeySanitizer:

    def test_key_ignores_unit(self):
        assert KeySanitizer().sanitize('Boost [psi]') == KeySanitizer().sanitize('Boost [bar]') == 'Boost'

    def test_distinct_base_names(self):
        sanitizer = KeySanitizer()
        assert sanitizer.sanitize('Boost', 0) != sanitizer.sanitize('Boost2', 1)

    def test_same_base_name_gets_positional_suffix(self):
        key_map = build_key_map(['Time', 'Boost [psi]', 'Boost [bar]'])
        assert key_map['Boost [psi]'] == 'Boost'
        assert key_map['Boost [bar]'] == 'Boost_2'

    def test_time_is_reserved(self):
        sanitizer = KeySanitizer()
        assert sanitizer.sanitize('Time', 0) == 'Time'
        # A channel sanitising to "Time" must not take the reserved key
        assert sanitizer.sanitize('Time [s]', 3) == 'Time_3'

    def test_non_alphanumerics_replaced(self):
        assert KeySanitizer().sanitize('Oil Temp (sump) [°F]') == 'Oil_Temp__sump_'
        assert KeySanitizer().sanitize('Lambda-1 λ') == 'Lambda_1__'

    def test_keys_are_unique_even_when_suffix_collides(self):
        headers = ['A_2', 'A', 'A']
        key_map = build_key_map(headers)
        assert len(set(key_map.values())) == len(headers)

    def test_strip_unit(self):
        assert strip_unit('Boost [psi]') == 'Boost'
        assert strip_unit('Boost') == 'Boost'
        assert strip_unit('A [x] B') == 'A [x] B'
