from datetime import datetime, timezone

from app.popular_games import POPULAR_APPIDS, POPULAR_RANK, dedupe_appids
from app.utils import (
    fold_text,
    parse_release_date,
    strip_html,
    truncate_text,
)


def test_strip_html_removes_tags_and_entities():
    assert strip_html("<p>Fast &amp; <b>furious</b></p>\n  fun") == "Fast & furious fun"
    assert strip_html(None) == ""


def test_strip_html_handles_nested_fragments():
    assert "<" not in strip_html("<<b>script>alert(1)<</b>/script>")


def test_truncate_text_appends_ellipsis_within_limit():
    assert truncate_text("abcdefghij", 8) == "abcde..."
    assert truncate_text("short", 8) == "short"
    assert truncate_text("", 8) == ""


def test_fold_text_ignores_accents_and_case():
    assert fold_text("Éclair") == fold_text("eclair")
    assert fold_text("STRASSE") == fold_text("straße")


def test_parse_release_date_formats():
    expected = datetime(2012, 8, 21, tzinfo=timezone.utc)
    assert parse_release_date("21 Aug, 2012") == expected
    assert parse_release_date("Aug 21, 2012") == expected
    assert parse_release_date("21 ago., 2012") == expected
    assert parse_release_date("2012-08-21") == expected
    assert parse_release_date("Nov 2024") == datetime(2024, 11, 1, tzinfo=timezone.utc)
    assert parse_release_date("2019") == datetime(2019, 1, 1, tzinfo=timezone.utc)


def test_parse_release_date_numeric_and_long_forms():
    expected = datetime(2012, 8, 21, tzinfo=timezone.utc)
    assert parse_release_date("21.08.2012") == expected
    assert parse_release_date("21/08/2012") == expected
    assert parse_release_date("August 21st, 2012") == expected
    assert parse_release_date("21 de agosto de 2012") == expected
    assert parse_release_date("5 fev., 2015") == datetime(2015, 2, 5, tzinfo=timezone.utc)
    assert parse_release_date("2012-08-05") == datetime(2012, 8, 5, tzinfo=timezone.utc)


def test_parse_release_date_rejects_placeholders():
    assert parse_release_date("Coming soon") is None
    assert parse_release_date("31 Feb, 2020") is None
    assert parse_release_date(None) is None
    assert parse_release_date("To be announced") is None


def test_dedupe_appids_keeps_first_occurrence():
    assert dedupe_appids([3, 1, 3, 2, 1]) == (3, 1, 2)


def test_popular_ranks_follow_curated_order():
    assert len(set(POPULAR_APPIDS)) == len(POPULAR_APPIDS)
    assert POPULAR_RANK[POPULAR_APPIDS[0]] == 0
    assert all(POPULAR_RANK[appid] == index for index, appid in enumerate(POPULAR_APPIDS))
