from datetime import datetime, timedelta

import pytest

from src.crawlers.base import ListingRecord
from src.models import Listing
from src.stores.listings import (
    ListingQueryError,
    escape_like,
    list_listings,
    upsert_listings,
)

POSTED = datetime(2025, 3, 1, 10, 0, 0)


def _record(url, title="Deal", votes=0, views=0, comments=0, created=POSTED, **kwargs):
    return ListingRecord(
        url=url,
        title=title,
        created=created,
        last_activity=created,
        votes=votes,
        views=views,
        comment_count=comments,
        **kwargs,
    )


class TestUpsertListings:
    def test_first_fetch_inserts_everything(self, db_session):
        new = upsert_listings(
            db_session, [_record("https://x.test/a"), _record("https://x.test/b")]
        )
        assert {listing.url for listing in new} == {"https://x.test/a", "https://x.test/b"}
        assert db_session.query(Listing).count() == 2

    def test_refetch_does_not_duplicate_and_refreshes_counters(self, db_session):
        upsert_listings(db_session, [_record("https://x.test/a", votes=1, views=10)])

        later = POSTED + timedelta(hours=3)
        new = upsert_listings(
            db_session,
            [
                _record(
                    "https://x.test/a",
                    title="Edited title",
                    votes=25,
                    views=400,
                    comments=7,
                    created=later,
                    category="Groceries",
                )
            ],
        )

        assert new == []
        assert db_session.query(Listing).count() == 1
        listing = db_session.query(Listing).one()
        assert listing.votes == 25
        assert listing.views == 400
        assert listing.comment_count == 7
        assert listing.category == "Groceries"
        assert listing.last_activity == later
        # insert-only fields
        assert listing.created == POSTED
        assert listing.title == "Deal"

    def test_returns_only_new_listings(self, db_session):
        upsert_listings(db_session, [_record("https://x.test/a")])
        new = upsert_listings(
            db_session, [_record("https://x.test/a"), _record("https://x.test/b")]
        )
        assert [listing.url for listing in new] == ["https://x.test/b"]

    def test_provenance_kept_when_missing_from_later_sighting(self, db_session):
        upsert_listings(db_session, [_record("https://x.test/a", dealer_name="Costco")])
        upsert_listings(db_session, [_record("https://x.test/a", savings_text="20% off")])

        listing = db_session.query(Listing).one()
        assert listing.dealer_name == "Costco"
        assert listing.savings_text == "20% off"

    def test_empty_input(self, db_session):
        assert upsert_listings(db_session, []) == []


class TestListListings:
    @pytest.fixture
    def stored(self, db_session):
        upsert_listings(
            db_session,
            [
                _record("https://x.test/1", title="Cheap 100% cotton tee", votes=5,
                        created=POSTED, category="Apparel"),
                _record("https://x.test/2", title="Nintendo sale", votes=50,
                        created=POSTED + timedelta(minutes=1), category="Gaming"),
                _record("https://x.test/3", title="Nintendo amiibo", votes=1,
                        created=POSTED + timedelta(minutes=2), category="Gaming",
                        dealer_name="Walmart"),
            ],
        )

    def test_default_sort_newest_first(self, db_session, stored):
        titles = [listing.title for listing in list_listings(db_session)]
        assert titles == ["Nintendo amiibo", "Nintendo sale", "Cheap 100% cotton tee"]

    def test_sort_by_votes(self, db_session, stored):
        listings = list_listings(db_session, sort="votes")
        assert [listing.votes for listing in listings] == [50, 5, 1]

    def test_unknown_sort_falls_back_to_created(self, db_session, stored):
        assert list_listings(db_session, sort="bogus")[0].title == "Nintendo amiibo"

    def test_category_filter(self, db_session, stored):
        assert len(list_listings(db_session, category="Gaming")) == 2
        assert len(list_listings(db_session, category="all")) == 3

    def test_search_is_literal_and_case_insensitive(self, db_session, stored):
        assert [l.url for l in list_listings(db_session, search="NINTENDO SALE")] == [
            "https://x.test/2"
        ]
        # '%' is not a wildcard
        assert [l.url for l in list_listings(db_session, search="100%")] == ["https://x.test/1"]
        assert list_listings(db_session, search="1%0") == []

    def test_search_matches_dealer(self, db_session, stored):
        assert [l.url for l in list_listings(db_session, search="walmart")] == ["https://x.test/3"]

    def test_search_too_long(self, db_session, stored):
        with pytest.raises(ListingQueryError):
            list_listings(db_session, search="x" * 101)

    def test_pagination(self, db_session, stored):
        assert [l.url for l in list_listings(db_session, page=2, limit=2)] == ["https://x.test/1"]
        assert len(list_listings(db_session, page=0, limit=0)) == 1


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"
