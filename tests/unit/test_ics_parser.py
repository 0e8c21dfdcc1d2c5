"""Unit tests for familycal.calendar.ics_parser."""

import datetime

import pytest

from familycal.calendar.ics_parser import (
    ICSParser,
    in_window,
    ingest_feeds,
    parse_date_time,
    parse_duration,
    retention_window,
    split_content_line,
    unescape_text,
    unfold_lines,
)

pytestmark = pytest.mark.unit


def _feed(*body_lines: str) -> str:
    """Wrap VEVENT body lines in a minimal calendar."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0"]
    lines.extend(body_lines)
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


def _vevent(*props: str) -> list[str]:
    return ["BEGIN:VEVENT", *props, "END:VEVENT"]


class TestUnfoldLines:
    """Tests for physical-to-logical line handling."""

    def test_continuation_line_is_appended(self):
        data = "SUMMARY:Piano recital rehear\r\n sal\r\nLOCATION:Room 4\r\n"
        assert unfold_lines(data) == ["SUMMARY:Piano recital rehearsal", "LOCATION:Room 4"]

    def test_tab_continuation_removes_one_character(self):
        assert unfold_lines("SUMMARY:a\n\t  b") == ["SUMMARY:a  b"]

    def test_mixed_line_endings(self):
        assert unfold_lines("A:1\rB:2\nC:3\r\n") == ["A:1", "B:2", "C:3"]

    def test_bytes_with_bom_and_bad_utf8(self):
        lines = unfold_lines("\ufeffSUMMARY:Caf\u00e9\r\n".encode() + b"X:\xff")
        assert lines[0] == "SUMMARY:Caf\u00e9"
        assert lines[1].startswith("X:")


class TestSplitContentLine:
    def test_name_params_and_value(self):
        line = split_content_line("dtstart;value=DATE:20250601")
        assert line.name == "DTSTART"
        assert line.params == {"VALUE": "DATE"}
        assert line.value == "20250601"

    def test_colon_inside_quoted_parameter(self):
        line = split_content_line('ATTENDEE;CN="Doe: Jane":mailto:jane@example.com')
        assert line.params == {"CN": "Doe: Jane"}
        assert line.value == "mailto:jane@example.com"

    def test_no_separator_returns_none(self):
        assert split_content_line("garbage line") is None

    def test_multi_valued_parameter_is_joined(self):
        line = split_content_line('ATTENDEE;MEMBER="mailto:a@example.com","mailto:b@example.com":x')
        assert line.params == {"MEMBER": "mailto:a@example.com,mailto:b@example.com"}

    def test_value_keeps_escapes_for_text_decoding(self):
        line = split_content_line(r"SUMMARY:Lunch\, then gym")
        assert line.value == r"Lunch\, then gym"


class TestValueParsing:
    """Tests for text, date-time and duration values."""

    def test_unescape_text(self):
        assert unescape_text(r"Lunch\, then gym\; bring towel\\shoes\nok") == (
            "Lunch, then gym; bring towel\\shoes ok"
        )

    def test_floating_time_is_local(self, tz):
        dt, is_date = parse_date_time("20250601T090000", {}, tz)
        assert dt == datetime.datetime(2025, 6, 1, 9, 0, tzinfo=tz)
        assert is_date is False

    def test_utc_time_converted(self, tz):
        dt, _ = parse_date_time("20250601T070000Z", {}, tz)
        assert dt == datetime.datetime(2025, 6, 1, 9, 0, tzinfo=tz)

    def test_date_value(self, tz):
        dt, is_date = parse_date_time("20250601", {"VALUE": "DATE"}, tz)
        assert dt == datetime.datetime(2025, 6, 1, tzinfo=tz)
        assert is_date is True

    def test_date_parameter_rejects_date_time_value(self, tz):
        with pytest.raises(ValueError):
            parse_date_time("20250601T090000", {"VALUE": "DATE"}, tz)

    @pytest.mark.parametrize("value", ["2025-06-01", "20251301T090000", "20250601T2500", "090000", "PT1H"])
    def test_invalid_date_times(self, tz, value):
        with pytest.raises(ValueError):
            parse_date_time(value, {}, tz)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("PT1H30M", datetime.timedelta(hours=1, minutes=30)),
            ("P1D", datetime.timedelta(days=1)),
            ("P1W", datetime.timedelta(weeks=1)),
            ("-PT15M", datetime.timedelta(minutes=-15)),
        ],
    )
    def test_durations(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["P", "PT", "1H", "PT1X"])
    def test_invalid_durations(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestRetentionWindow:
    def test_window_bounds(self, now):
        lo, hi = retention_window(now)
        assert now - lo == datetime.timedelta(days=30)
        assert hi - now == datetime.timedelta(days=60)

    def test_straddling_event_is_kept(self, now):
        window = retention_window(now)
        lo, _ = window
        assert in_window(lo - datetime.timedelta(hours=1), lo + datetime.timedelta(hours=1), window)

    def test_event_entirely_before_is_excluded(self, now):
        window = retention_window(now)
        lo, _ = window
        assert not in_window(lo - datetime.timedelta(hours=2), lo, window)

    def test_zero_duration_at_upper_bound_is_excluded(self, now):
        window = retention_window(now)
        _, hi = window
        assert not in_window(hi, hi, window)
        assert in_window(now, now, window)


class TestICSParser:
    """Tests for VEVENT record handling."""

    def test_round_trip_single_event(self, tz):
        data = _feed(
            *_vevent("DTSTART:20250601T090000", "DTEND:20250601T100000", "SUMMARY:Team Sync")
        )

        events = ICSParser(tz).parse(data, "work")

        assert len(events) == 1
        event = events[0]
        assert event.title == "Team Sync"
        assert event.duration == datetime.timedelta(hours=1)
        assert event.all_day is False
        assert event.calendar_id == "work"

    def test_folded_summary_with_escapes(self, tz):
        data = _feed(
            "BEGIN:VEVENT",
            "DTSTART:20250601T090000",
            "SUMMARY:Picnic\\, weather perm",
            " itting",
            "END:VEVENT",
        )

        events = ICSParser(tz).parse(data, "family")

        assert events[0].title == "Picnic, weather permitting"

    def test_all_day_event_defaults_to_one_day(self, tz):
        data = _feed(*_vevent("SUMMARY:Holiday", "DTSTART;VALUE=DATE:20250601"))

        event = ICSParser(tz).parse(data, "family")[0]

        assert event.all_day is True
        assert event.start == datetime.datetime(2025, 6, 1, tzinfo=tz)
        assert event.end == datetime.datetime(2025, 6, 2, tzinfo=tz)

    def test_all_day_flag_comes_from_dtstart_only(self, tz):
        data = _feed(
            *_vevent("SUMMARY:Odd", "DTSTART:20250601T090000", "DTEND;VALUE=DATE:20250602")
        )
        assert ICSParser(tz).parse(data, "family")[0].all_day is False

    def test_duration_sets_end(self, tz):
        data = _feed(*_vevent("SUMMARY:Dentist", "DTSTART:20250601T090000", "DURATION:PT45M"))

        event = ICSParser(tz).parse(data, "family")[0]

        assert event.end == datetime.datetime(2025, 6, 1, 9, 45, tzinfo=tz)

    def test_dtend_takes_precedence_over_duration(self, tz):
        data = _feed(
            *_vevent(
                "SUMMARY:Dentist",
                "DTSTART:20250601T090000",
                "DURATION:PT45M",
                "DTEND:20250601T110000",
            )
        )
        assert ICSParser(tz).parse(data, "family")[0].end.hour == 11

    def test_missing_end_gives_zero_duration(self, tz):
        data = _feed(*_vevent("SUMMARY:Reminder", "DTSTART:20250601T090000"))
        assert ICSParser(tz).parse(data, "family")[0].is_zero_duration

    def test_utc_start_converted_to_local(self, tz):
        data = _feed(*_vevent("SUMMARY:Call", "DTSTART:20250601T070000Z", "DTEND:20250601T080000Z"))

        event = ICSParser(tz).parse(data, "work")[0]

        assert event.start == datetime.datetime(2025, 6, 1, 9, 0, tzinfo=tz)

    def test_location_and_uid(self, tz):
        data = _feed(
            *_vevent(
                "SUMMARY:Match",
                "DTSTART:20250601T090000",
                "LOCATION:Field 2\\, North",
                "UID:abc-123@example.com",
            )
        )

        event = ICSParser(tz).parse(data, "kids")[0]

        assert event.location == "Field 2, North"
        assert event.uid == "abc-123@example.com"

    def test_cancelled_event_skipped(self, tz):
        data = _feed(*_vevent("SUMMARY:Off", "DTSTART:20250601T090000", "STATUS:CANCELLED"))
        assert ICSParser(tz).parse(data, "family") == []

    def test_records_without_title_or_start_skipped(self, tz):
        data = _feed(
            *_vevent("DTSTART:20250601T090000"),
            *_vevent("SUMMARY:No start"),
        )
        assert ICSParser(tz).parse(data, "family") == []

    def test_end_before_start_dropped(self, tz):
        data = _feed(
            *_vevent("SUMMARY:Backwards", "DTSTART:20250601T100000", "DTEND:20250601T090000")
        )
        assert ICSParser(tz).parse(data, "family") == []

    def test_alarm_properties_do_not_leak_into_event(self, tz):
        data = _feed(
            "BEGIN:VEVENT",
            "SUMMARY:Recital",
            "DTSTART:20250601T180000",
            "BEGIN:VALARM",
            "SUMMARY:Alarm text",
            "TRIGGER:-PT15M",
            "END:VALARM",
            "DTEND:20250601T190000",
            "END:VEVENT",
        )

        events = ICSParser(tz).parse(data, "family")

        assert len(events) == 1
        assert events[0].title == "Recital"
        assert events[0].end.hour == 19

    def test_malformed_property_skips_only_that_property(self, tz):
        data = _feed(
            *_vevent("SUMMARY:Lunch", "DTSTART:20250601T120000", "DTEND:not-a-date")
        )

        event = ICSParser(tz).parse(data, "family")[0]

        assert event.is_zero_duration

    def test_unterminated_record_discarded(self, tz):
        data = "BEGIN:VEVENT\r\nSUMMARY:Dangling\r\nDTSTART:20250601T090000\r\n"
        assert ICSParser(tz).parse(data, "family") == []

    def test_begin_inside_open_record_restarts(self, tz):
        data = _feed(
            "BEGIN:VEVENT",
            "SUMMARY:Lost",
            "DTSTART:20250601T080000",
            *_vevent("SUMMARY:Kept", "DTSTART:20250601T090000"),
        )

        events = ICSParser(tz).parse(data, "family")

        assert [e.title for e in events] == ["Kept"]

    def test_retention_window_applied(self, tz, now):
        data = _feed(
            *_vevent("SUMMARY:Ancient", "DTSTART:20240101T090000", "DTEND:20240101T100000"),
            *_vevent("SUMMARY:Soon", "DTSTART:20250605T090000", "DTEND:20250605T100000"),
            *_vevent("SUMMARY:Far", "DTSTART:20260101T090000", "DTEND:20260101T100000"),
        )

        events = ICSParser(tz, retention_window(now)).parse(data, "family")

        assert [e.title for e in events] == ["Soon"]


class TestIngestFeeds:
    def test_multiple_feeds_merged_and_sorted(self, tz):
        work = _feed(*_vevent("SUMMARY:Review", "DTSTART:20250601T140000"))
        kids = _feed(
            *_vevent("SUMMARY:Swim", "DTSTART:20250601T080000"),
            *_vevent("SUMMARY:Piano", "DTSTART:20250601T160000"),
        )

        events = ingest_feeds([("work", work), ("kids", kids)], tz)

        assert [(e.title, e.calendar_id) for e in events] == [
            ("Swim", "kids"),
            ("Review", "work"),
            ("Piano", "kids"),
        ]

    def test_capacity_evicts_earliest(self, tz):
        feed = _feed(
            *_vevent("SUMMARY:A", "DTSTART:20250601T080000"),
            *_vevent("SUMMARY:B", "DTSTART:20250601T090000"),
            *_vevent("SUMMARY:C", "DTSTART:20250601T100000"),
        )

        events = ingest_feeds([("family", feed)], tz, max_events=2)

        assert [e.title for e in events] == ["B", "C"]
