"""Tests for the instruction-time requirement."""

import pytest

from paltracker.hours import default_period, deployment_weeks, required_minutes, summarize

from conftest import make_student


def test_two_week_deployment_with_195_minutes_is_not_met():
	student = make_student(
		deployment_start="2024-03-04",
		deployment_end="2024-03-18",
		entries=[("2024-03-05", 90), ("2024-03-06", 105)],
	)

	summary = summarize(student)

	assert summary.total_minutes == 195
	assert summary.weeks == 2
	assert summary.required_minutes == 684
	assert summary.required_hours == pytest.approx(11.4)
	assert summary.requirement_met is False
	assert summary.progress_percent == 29
	assert summary.missing_hours == pytest.approx(8.2, abs=0.1)


def test_requirement_met_caps_progress():
	student = make_student(
		deployment_start="2024-03-04",
		deployment_end="2024-03-08",
		entries=[("2024-03-05", 400)],
	)

	summary = summarize(student)

	assert summary.weeks == 1
	assert summary.required_minutes == 342
	assert summary.requirement_met is True
	assert summary.progress_percent == 100
	assert summary.missing_hours == 0.0


@pytest.mark.parametrize(
	"start,end,weeks",
	[
		("2024-03-04", "2024-03-04", 1),
		("2024-03-04", "2024-03-11", 1),
		("2024-03-04", "2024-03-12", 2),
		("2024-03-18", "2024-03-04", 2),
		("", "2024-03-04", 1),
		("not a date", "2024-03-04", 1),
	],
)
def test_deployment_weeks(start, end, weeks):
	assert deployment_weeks(start, end) == weeks


def test_required_minutes_rounds_to_whole_minutes():
	assert required_minutes(1) == 342
	assert required_minutes(3) == 1026


def test_default_period_label():
	assert default_period("2024-03-04", "2024-03-29") == "04.03.24 - 29.03.24"
	assert default_period("", "2024-03-29") == ""
