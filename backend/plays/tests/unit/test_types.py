import pytest

from plays.dedup.candidates import bucket_key, bucket_plays
from plays.dedup.types import BucketKey, DuplicateGroup, SyncReport
from plays.tests.helpers.factories import GAME_ID, GROUP_ID, PLAYED_ON, make_play


class TestDuplicateGroup:
    def test_requires_two_plays(self):
        with pytest.raises(ValueError, match="at least 2 plays"):
            DuplicateGroup(plays=(make_play(1),))

    def test_play_ids(self):
        assert DuplicateGroup(plays=(make_play(1), make_play(4))).play_ids == (1, 4)


class TestSyncReport:
    def test_merge_adds_counters(self):
        report = SyncReport(buckets=1, groups=1, excluded=2)
        report.merge(SyncReport(buckets=1, cleared=3))

        assert report == SyncReport(buckets=2, groups=1, excluded=2, cleared=3)


class TestBuckets:
    def test_bucket_key(self):
        assert bucket_key(make_play(1)) == BucketKey(game_id=GAME_ID, played_on=PLAYED_ON, group_id=GROUP_ID)

    def test_ungrouped_play_has_no_bucket(self):
        assert bucket_key(make_play(1, group_id=None)) is None

    def test_bucket_plays_partitions_and_drops_ungrouped(self):
        plays = [
            make_play(1),
            make_play(2, game_id=1),
            make_play(3),
            make_play(4, group_id=None),
        ]

        buckets = bucket_plays(plays)

        assert {key: [play.id for play in members] for key, members in buckets.items()} == {
            BucketKey(GAME_ID, PLAYED_ON, GROUP_ID): [1, 3],
            BucketKey(1, PLAYED_ON, GROUP_ID): [2],
        }
