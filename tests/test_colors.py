"""Tests for channel color allocation."""

from logdash.utils.colors import assign_colors, generate_colors


class TestColors:

    def test_golden_angle_hues(self):
        colors = generate_colors(3)
        assert colors[0] == 'hsl(0, 70%, 50%)'
        assert colors[1] == 'hsl(137.508, 70%, 50%)'
        assert colors[2] == 'hsl(275.016, 70%, 50%)'

    def test_prefix_is_stable(self):
        assert generate_colors(10)[:4] == generate_colors(4)

    def test_hue_wraps(self):
        assert generate_colors(4)[3] == 'hsl(52.524, 70%, 50%)'

    def test_assign_by_position(self):
        colors = assign_colors(['Boost', 'RPM'])
        assert colors == {'Boost': generate_colors(2)[0], 'RPM': generate_colors(2)[1]}

    def test_empty(self):
        assert generate_colors(0) == []
