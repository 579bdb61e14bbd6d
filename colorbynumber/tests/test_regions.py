import numpy as np

from colorbynumber.core import NumberedTemplate, build_template
from colorbynumber.fill import flood
from colorbynumber.regions import RegionIndex, find_regions


def _template(numbers):
    numbers = np.asarray(numbers)
    palette = [(i, i, i) for i in range(1, int(numbers.max()) + 1)]
    return NumberedTemplate(numbers=numbers, palette=palette)


def test_find_regions_splits_same_number_components():
    numbers = np.array([[1, 2, 1],
                        [1, 2, 1],
                        [1, 2, 1]])
    labels, regions = find_regions(_template(numbers))
    assert labels.shape == (3, 3)
    assert [r.number for r in regions] == [1, 2, 1]
    assert [r.area for r in regions] == [3, 3, 3]
    assert regions[0].pixels == {(0, 0), (0, 1), (0, 2)}
    assert regions[1].centroid == (1.0, 1.0)
    assert regions[1].boundary.all()


def test_region_members_row_major():
    numbers = np.ones((3, 4), dtype=int)
    _, regions = find_regions(_template(numbers))
    region = regions[0]
    assert list(zip(region.xs.tolist(), region.ys.tolist()))[:5] == [(0, 0), (1, 0), (2, 0), (3, 0), (0, 1)]
    assert not region.boundary.any()


def test_region_label_points():
    numbers = np.ones((5, 5), dtype=int)
    numbers[2, 2] = 2
    index = RegionIndex(_template(numbers))
    assert len(index) == 2
    assert index.region_at(2, 2).number == 2
    assert index.label_points() == [(0, 0, 1)]
    assert [r.area for r in index.regions_for(1)] == [24]


def test_index_fill_matches_flood():
    template = build_template(np.random.default_rng(5).integers(0, 256, (20, 20, 3)), 4, rng=5)
    index = RegionIndex(template)
    colored = np.zeros((20, 20), dtype=bool)
    colored[::3, ::4] = True
    for seed in [(0, 0), (7, 3), (19, 19), (10, 12)]:
        number = template.number_at(*seed)
        assert index.fill(seed, number, colored) == flood(seed, number, template, colored)
        fresh = np.zeros_like(colored)
        assert index.fill(seed, number, fresh) == flood(seed, number, template, fresh)


def test_index_fill_noops():
    numbers = np.ones((3, 3), dtype=int)
    numbers[:, 2] = 2
    index = RegionIndex(_template(numbers))
    colored = np.zeros((3, 3), dtype=bool)
    assert index.fill((9, 9), 1, colored) == set()
    assert index.fill((2, 0), 1, colored) == set()
    colored[0, 0] = True
    assert index.fill((0, 0), 1, colored) == set()
