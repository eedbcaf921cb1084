from app.dataset import UNFETCHED, Absent, Dataset, Present
from app.models import GameDetail, GameSummary


def _summaries(*pairs):
    return [GameSummary(appid=appid, name=name) for appid, name in pairs]


def test_populate_keeps_first_occurrence_and_order():
    dataset = Dataset()

    added = dataset.populate(_summaries((1, "One"), (2, "Two"), (1, "Duplicate")))

    assert added == 2
    assert [record.appid for record in dataset] == [1, 2]
    assert dataset.get(1).name == "One"
    assert dataset.get(1).detail is UNFETCHED


def test_absent_never_replaces_present_detail():
    dataset = Dataset(_summaries((1, "One")))
    present = Present(GameDetail(name="One"))

    assert dataset.merge_detail(1, present) is True
    assert dataset.merge_detail(1, Absent("rate limited")) is False
    assert dataset.get(1).detail == present


def test_absent_can_be_upgraded_and_unfetched_is_ignored():
    dataset = Dataset(_summaries((1, "One")))

    assert dataset.merge_detail(1, Absent()) is True
    assert dataset.merge_detail(1, UNFETCHED) is False
    assert dataset.merge_detail(1, Present(GameDetail(name="One"))) is True
    assert dataset.get(1).is_resolved


def test_merges_commute_across_sessions():
    present = Present(GameDetail(name="One"))
    forward = Dataset(_summaries((1, "One")))
    backward = Dataset(_summaries((1, "One")))

    forward.merge_details({1: present})
    forward.merge_details({1: Absent()})
    backward.merge_details({1: Absent()})
    backward.merge_details({1: present})

    assert forward.get(1).detail == backward.get(1).detail == present


def test_unknown_ids_are_not_inserted_by_merge():
    dataset = Dataset(_summaries((1, "One")))

    assert dataset.merge_details({99: Absent()}) == 0
    assert 99 not in dataset
    assert len(dataset) == 1


def test_snapshot_is_isolated_from_later_merges():
    dataset = Dataset(_summaries((1, "One"), (2, "Two")))
    snapshot = dataset.snapshot()

    dataset.merge_detail(1, Absent())

    assert snapshot[0].detail is UNFETCHED
    assert dataset.unfetched([1, 2, 3]) == [2]
    assert dataset.absent_ids() == [1]
    assert dataset.absent_ids([2]) == []
