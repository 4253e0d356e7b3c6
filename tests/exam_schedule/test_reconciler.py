"""
공식 일정 + 내부 마감 통합 테스트

실행 방법:
    pytest tests/exam_schedule/test_reconciler.py -v
"""

from collections import Counter
from datetime import date, time

from app.schemas.schemas_exam_schedule import DataSource, ExamType, InternalDeadline, OfficialSession
from app.services.exam_schedule.reconciler import merge_duplicate_officials, reconcile


def official(session_number, exam_type=ExamType.LIFE, locations=("서울",), exam_date=date(2025, 11, 10), notes="공식 시험일정"):
    return OfficialSession(
        year=2025,
        exam_type=exam_type,
        session_number=session_number,
        exam_date=exam_date,
        locations=list(locations),
        notes=notes,
    )


def internal(session_numbers, exam_type=ExamType.LIFE, deadline=date(2025, 11, 4), session_range="", year=2025):
    return InternalDeadline(
        year=year,
        exam_type=exam_type,
        session_range=session_range,
        session_numbers=list(session_numbers),
        deadline_date=deadline,
        deadline_time=time(11, 0),
        notes="본사 자체 신청 마감일",
    )


def keys(schedules):
    return [(s.exam_type, s.session_number) for s in schedules]


class TestReconcile:
    """통합 규칙"""

    def test_matched_official_becomes_combined(self):
        schedules = reconcile([official(1)], [internal([1], session_range="1차")])

        assert len(schedules) == 1
        schedule = schedules[0]
        assert schedule.data_source == DataSource.COMBINED
        assert schedule.has_internal_deadline is True
        assert schedule.internal_deadline_date == date(2025, 11, 4)
        assert schedule.internal_deadline_time == time(11, 0)
        assert schedule.session_range == "1차"
        assert schedule.combined_notes == "공식 시험일정 | 본사 자체 신청 마감일"

    def test_unmatched_official_is_official_only(self):
        schedules = reconcile([official(1)], [])

        assert schedules[0].data_source == DataSource.OFFICIAL_ONLY
        assert schedules[0].has_internal_deadline is False
        assert schedules[0].internal_deadline_date is None
        assert schedules[0].combined_notes == "공식 시험일정"

    def test_exam_type_must_match(self):
        schedules = reconcile([official(1, exam_type=ExamType.NON_LIFE)], [internal([1])])

        by_key = {(s.exam_type, s.session_number): s for s in schedules}
        assert by_key[(ExamType.NON_LIFE, 1)].data_source == DataSource.OFFICIAL_ONLY
        assert by_key[(ExamType.LIFE, 1)].data_source == DataSource.INTERNAL_ONLY

    def test_year_must_match(self):
        schedules = reconcile([official(1)], [internal([1], year=2026, deadline=date(2026, 1, 4))])

        assert [(s.year, s.session_number, s.data_source) for s in schedules] == [
            (2025, 1, DataSource.OFFICIAL_ONLY),
            (2026, 1, DataSource.INTERNAL_ONLY),
        ]
        assert schedules[0].internal_deadline_date is None

    def test_leftover_sessions_become_internal_only(self):
        schedules = reconcile([official(1)], [internal([1, 2, 3, 4], session_range="1~4차")])

        assert keys(schedules) == [(ExamType.LIFE, n) for n in (1, 2, 3, 4)]
        assert [s.data_source for s in schedules] == [
            DataSource.COMBINED,
            DataSource.INTERNAL_ONLY,
            DataSource.INTERNAL_ONLY,
            DataSource.INTERNAL_ONLY,
        ]
        leftover = schedules[1]
        assert leftover.locations == []
        assert leftover.exam_date is None
        assert leftover.exam_time_start is None
        assert leftover.has_internal_deadline is True

    def test_overlapping_internals_first_match_wins(self):
        first = internal([1, 2], deadline=date(2025, 11, 4))
        second = internal([1, 3], deadline=date(2025, 11, 6))

        schedules = reconcile([official(1)], [first, second])

        assert schedules[0].internal_deadline_date == date(2025, 11, 4)
        assert Counter(keys(schedules)) == Counter([(ExamType.LIFE, n) for n in (1, 2, 3)])

    def test_official_without_session_number_is_skipped(self):
        schedules = reconcile([official(None), official(2)], [])
        assert keys(schedules) == [(ExamType.LIFE, 2)]

    def test_duplicate_officials_are_merged(self):
        schedules = reconcile(
            [official(1, locations=["서울"]), official(1, locations=["부산"], notes="추가 공지")],
            [],
        )

        assert len(schedules) == 1
        assert schedules[0].locations == ["서울", "부산"]
        assert schedules[0].notes == "공식 시험일정 | 추가 공지"

    def test_merge_fills_missing_fields(self):
        merged = merge_duplicate_officials([official(1, exam_date=None), official(1, exam_date=date(2025, 11, 10))])
        assert merged[0].exam_date == date(2025, 11, 10)


class TestReconcileProperties:
    """멱등성 / 차수 누락·중복 없음"""

    def inputs(self):
        officials = [
            official(1, locations=["서울", "인천", "제주"]),
            official(2, locations=["부산"]),
            official(1, exam_type=ExamType.NON_LIFE),
        ]
        internals = [
            internal([1, 2, 3, 4], session_range="1~4차"),
            internal([5], session_range="5차"),
            internal([1, 2], exam_type=ExamType.NON_LIFE),
            internal([1], exam_type=ExamType.THIRD),
        ]
        return officials, internals

    def test_idempotent(self):
        officials, internals = self.inputs()
        assert reconcile(officials, internals) == reconcile(officials, internals)

    def test_every_session_emitted_exactly_once(self):
        officials, internals = self.inputs()
        schedules = reconcile(officials, internals)

        expected = {(o.exam_type, o.session_number) for o in officials}
        expected |= {(i.exam_type, n) for i in internals for n in i.session_numbers}

        counts = Counter(keys(schedules))
        assert set(counts) == expected
        assert all(count == 1 for count in counts.values())

    def test_combined_iff_both_sides(self):
        officials, internals = self.inputs()
        for schedule in reconcile(officials, internals):
            assert schedule.has_internal_deadline == (schedule.internal_deadline_date is not None)
            if schedule.data_source == DataSource.COMBINED:
                assert schedule.exam_date is not None and schedule.internal_deadline_date is not None
