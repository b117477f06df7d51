from datetime import datetime

from reporting import cumulative, month_labels, monthly_counts

NOW = datetime(2024, 3, 15)


def test_month_labels_span_the_year_boundary():
    assert month_labels(NOW) == ["Oct", "Nov", "Dec", "Jan", "Feb", "Mar"]


def test_monthly_counts_ignore_timestamps_outside_the_window():
    timestamps = [
        datetime(2024, 3, 1),
        datetime(2024, 3, 14),
        datetime(2024, 1, 31),
        datetime(2023, 10, 2),
        datetime(2023, 9, 30),  # too old
        datetime(2024, 4, 1),  # in the future
    ]

    assert monthly_counts(timestamps, NOW) == [1, 0, 0, 1, 0, 2]


def test_cumulative_ends_at_the_total():
    assert cumulative([0, 1, 0, 2, 0, 1], 10) == [6, 7, 7, 9, 9, 10]
    assert cumulative([0] * 6, 0) == [0] * 6
