"""
Tests for hotel_admin/services/hotel_service.py
Covers: create, update, delete, get_by_id, list, get_complete,
        create_complete, update_complete, get_detail, list_details
"""
import pytest
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hotel_admin.database import Base, enable_sqlite_foreign_keys
from hotel_admin.models.entities import (
    HotelAmenity, Room, RoomPackage, ReviewAggregate, HotelFAQ, PropertyType, Area, Amenity
)
from hotel_admin.services.hotel_service import (
    HotelService, HotelFilters, HOTEL_NOT_FOUND, PARTIAL_UPDATE_ERROR
)
from hotel_admin.services.result import NOT_CONFIGURED


# ── helpers ──────────────────────────────────────────────────────────

def _make_room(room_type, prices):
    return {
        "room_type": room_type,
        "bedding": "Twin",
        "view": "City View",
        "images": [f"https://cdn.example.com/{room_type.lower()}.jpg"],
        "packages": [
            {"meal_board": board, "cancellation_policy": "Refundable", "base_price": price}
            for board, price in prices
        ],
    }


def _create(svc, hotel_fields, **overrides):
    result = svc.create({**hotel_fields, **overrides})
    assert result.error is None, result.error
    return result.data


# ── tests ────────────────────────────────────────────────────────────

class TestHotelCrud:

    def test_create_defaults(self, hotel_service, hotel_fields):
        hotel = _create(hotel_service, hotel_fields, rank="", chain_id="")
        assert hotel.id > 0
        assert hotel.rank == 0
        assert hotel.chain_id is None
        assert hotel.status == "active"

    def test_create_with_unknown_type_fails(self, hotel_service, hotel_fields):
        result = hotel_service.create({**hotel_fields, "type_id": 999})
        assert result.data is None
        assert result.error

    def test_update_overwrites_fields(self, hotel_service, hotel_fields, master_data):
        hotel = _create(hotel_service, hotel_fields)
        result = hotel_service.update(hotel.id, {
            **hotel_fields, "name_en": "Palm View Resort", "chain_id": None,
            "area_id": master_data["marina"].id,
        })
        assert result.data.name_en == "Palm View Resort"
        assert result.data.chain_id is None
        assert result.data.area_id == master_data["marina"].id

    def test_update_missing(self, hotel_service, hotel_fields):
        result = hotel_service.update(999, hotel_fields)
        assert result.error == HOTEL_NOT_FOUND

    def test_get_by_id_enriches_names(self, hotel_service, hotel_fields):
        hotel = _create(hotel_service, hotel_fields)
        result = hotel_service.get_by_id(hotel.id)
        assert result.data.type.name_en == "Hotel"
        assert result.data.chain.name_en == "Marriott International"
        assert result.data.area.name_ar == "وسط مدينة دبي"

    def test_get_by_id_without_chain(self, hotel_service, hotel_fields):
        hotel = _create(hotel_service, hotel_fields, chain_id=None)
        assert hotel_service.get_by_id(hotel.id).data.chain is None

    def test_failed_lookup_degrades_to_none(self, hotel_service, hotel_fields, monkeypatch):
        hotel = _create(hotel_service, hotel_fields)

        real_lookup = HotelService._lookup

        def flaky_lookup(db, model, record_id):
            if model.__tablename__ == "chains":
                raise RuntimeError("connection reset")
            return real_lookup(db, model, record_id)

        monkeypatch.setattr(HotelService, "_lookup", staticmethod(flaky_lookup))

        result = hotel_service.get_by_id(hotel.id)
        assert result.error is None
        assert result.data.chain is None
        assert result.data.type.name_en == "Hotel"

    def test_delete_cascades(self, hotel_service, hotel_fields, master_data, db_session):
        created = hotel_service.create_complete(hotel_fields, {
            "amenities": [master_data["gym"].id],
            "rooms": [_make_room("Deluxe", [("BB", "100")])],
            "review_aggregates": [{"source": "Google", "average_rating": "4.5"}],
            "faqs": [{"question_en": "Q?", "answer_en": "A"}],
        })
        hotel_id = created.data.id

        assert hotel_service.delete(hotel_id).error is None
        assert hotel_service.get_by_id(hotel_id).error == HOTEL_NOT_FOUND
        for model in (Room, RoomPackage, HotelAmenity, ReviewAggregate, HotelFAQ):
            assert db_session.query(model).count() == 0

    def test_delete_missing_is_not_an_error(self, hotel_service, master_data):
        assert hotel_service.delete(12345).error is None

    def test_not_configured(self):
        svc = HotelService(None, max_workers=1)
        assert svc.get_by_id(1).error == NOT_CONFIGURED
        assert svc.list().error == NOT_CONFIGURED
        assert svc.update_complete(1, {}).error == NOT_CONFIGURED


class TestHotelList:

    @pytest.fixture
    def hotels(self, hotel_service, hotel_fields, master_data):
        return [
            _create(hotel_service, hotel_fields, name_en="Zeta Tower", rank=3),
            _create(hotel_service, hotel_fields, name_en="Alpha Suites", rank=1, status="inactive"),
            _create(hotel_service, hotel_fields, name_en="Marina Gate", rank=2,
                    area_id=master_data["marina"].id, type_id=master_data["resort_type"].id),
        ]

    def test_sorted_by_rank(self, hotel_service, hotels):
        result = hotel_service.list()
        assert [h.name_en for h in result.data] == ["Alpha Suites", "Marina Gate", "Zeta Tower"]

    def test_enriched_with_master_data(self, hotel_service, hotels):
        marina = next(h for h in hotel_service.list().data if h.name_en == "Marina Gate")
        assert marina.type.name_en == "Resort"
        assert marina.area.name_en == "Dubai Marina"
        assert marina.chain.name_en == "Marriott International"

    def test_search_is_case_insensitive(self, hotel_service, hotels):
        result = hotel_service.list(HotelFilters(search="marina"))
        assert [h.name_en for h in result.data] == ["Marina Gate"]

    def test_filter_by_area_and_status(self, hotel_service, hotels, master_data):
        by_area = hotel_service.list(HotelFilters(area_id=master_data["downtown"].id)).data
        assert {h.name_en for h in by_area} == {"Zeta Tower", "Alpha Suites"}

        inactive = hotel_service.list(HotelFilters(status="inactive")).data
        assert [h.name_en for h in inactive] == ["Alpha Suites"]

    def test_empty(self, hotel_service, master_data):
        assert hotel_service.list().data == []


class TestCompleteHotel:

    @pytest.fixture
    def related(self, master_data):
        return {
            "amenities": [master_data["gym"].id, master_data["spa"].id],
            "rooms": [
                _make_room("Deluxe", [("BB", "250"), ("HB", "300"), ("FB", "99.99")]),
                _make_room("Suite", [("BB", "1000")]),
            ],
            "image_urls": ["https://cdn.example.com/1.jpg", "https://cdn.example.com/2.jpg"],
            "review_aggregates": [
                {"source": "Booking.com", "average_rating": "8.7", "total_reviews": 540},
                {"source": "Google", "average_rating": "", "total_reviews": 3},
            ],
            "faqs": [{"question_en": "Check-in time?", "answer_en": "3 PM"}],
        }

    def test_round_trip(self, hotel_service, hotel_fields, related):
        created = hotel_service.create_complete(hotel_fields, related)
        assert created.error is None
        assert created.warnings == []

        result = hotel_service.get_complete(created.data.id)
        assert result.error is None
        hotel = result.data

        assert sorted(hotel.amenities) == sorted(related["amenities"])
        assert [r.room_type for r in hotel.rooms] == ["Deluxe", "Suite"]
        deluxe = hotel.rooms[0]
        assert deluxe.title == "Deluxe - Twin (City View)"
        assert [p.meal_board for p in deluxe.packages] == ["BB", "HB", "FB"]
        assert [p.almosafer_points for p in deluxe.packages] == [
            Decimal("25.00"), Decimal("30.00"), Decimal("10.00")
        ]
        assert deluxe.packages[0].shukran_points == Decimal("50.00")
        assert hotel.image_url == "https://cdn.example.com/1.jpg"
        assert hotel.images[0].isPrimary is True
        # 没有评分的点评在新增时跳过
        assert [r.source for r in hotel.review_aggregates] == ["Booking.com"]
        assert hotel.faqs[0].question_en == "Check-in time?"
        assert hotel.type.name_en == "Hotel"

    def test_get_complete_missing(self, hotel_service, master_data):
        assert hotel_service.get_complete(999).error == HOTEL_NOT_FOUND

    def test_rooms_failure_degrades_to_empty(self, hotel_service, hotel_fields, related, monkeypatch):
        hotel_id = hotel_service.create_complete(hotel_fields, related).data.id

        def broken(db, hotel_id):
            raise RuntimeError("timeout")

        monkeypatch.setattr(HotelService, "_read_rooms", staticmethod(broken))
        result = hotel_service.get_complete(hotel_id)
        assert result.error is None
        assert result.data.rooms == []
        assert len(result.data.amenities) == 2

    def test_create_complete_warns_on_failed_collection(self, hotel_service, hotel_fields, master_data):
        result = hotel_service.create_complete(hotel_fields, {
            "amenities": [master_data["gym"].id, 9999],
            "rooms": [_make_room("Deluxe", [("BB", "100")])],
        })
        assert result.data is not None
        assert result.warnings == ["Hotel created but amenities failed to save"]
        # 酒店和房间保留
        aggregate = hotel_service.get_complete(result.data.id).data
        assert aggregate.amenities == []
        assert len(aggregate.rooms) == 1

    def test_create_complete_rejects_invalid_image_url(self, hotel_service, hotel_fields):
        result = hotel_service.create_complete(hotel_fields, {"image_urls": ["ftp://x/1.jpg"]})
        assert result.data is None
        assert "Invalid image URL" in result.error
        assert hotel_service.list().data == []

    def test_packages_failure_degrades_to_empty(self, hotel_service, hotel_fields, related, monkeypatch):
        """套餐查询失败：房间照常返回，套餐为空列表"""
        hotel_id = hotel_service.create_complete(hotel_fields, related).data.id

        def broken(db, room_ids):
            raise RuntimeError("timeout")

        monkeypatch.setattr(HotelService, "_read_packages", staticmethod(broken))
        result = hotel_service.get_complete(hotel_id)
        assert result.error is None
        assert [r.room_type for r in result.data.rooms] == ["Deluxe", "Suite"]
        assert all(room.packages == [] for room in result.data.rooms)

    @pytest.mark.parametrize("missing", ["address_en", "address_ar", "thumbnail_url", "star_rating"])
    def test_create_complete_requires_create_form_fields(self, hotel_service, hotel_fields, missing):
        fields = {k: v for k, v in hotel_fields.items() if k != missing}
        result = hotel_service.create_complete(fields, {})

        assert result.data is None
        assert missing in result.error
        assert hotel_service.list().data == []

    def test_create_complete_rejects_star_rating_out_of_range(self, hotel_service, hotel_fields):
        result = hotel_service.create_complete({**hotel_fields, "star_rating": 6}, {})
        assert result.data is None
        assert hotel_service.list().data == []

    def test_create_complete_rejects_room_without_package(self, hotel_service, hotel_fields):
        room = _make_room("Deluxe", [])
        result = hotel_service.create_complete(hotel_fields, {"rooms": [room]})

        assert result.data is None
        assert "packages" in result.error
        assert hotel_service.list().data == []

    def test_create_complete_rejects_room_without_view(self, hotel_service, hotel_fields):
        room = {**_make_room("Deluxe", [("BB", "100")]), "view": ""}
        result = hotel_service.create_complete(hotel_fields, {"rooms": [room]})

        assert result.data is None
        assert "view" in result.error


class TestUpdateComplete:

    @pytest.fixture
    def hotel_id(self, hotel_service, hotel_fields, master_data):
        created = hotel_service.create_complete(hotel_fields, {
            "amenities": [master_data["gym"].id],
            "rooms": [_make_room("Deluxe", [("BB", "100")])],
            "image_urls": ["https://cdn.example.com/1.jpg"],
            "review_aggregates": [
                {"source": "Booking.com", "average_rating": "8", "total_reviews": 10},
                {"source": "Google", "average_rating": "4", "total_reviews": 5},
            ],
        })
        assert created.error is None
        return created.data.id

    def test_full_update(self, hotel_service, hotel_fields, master_data, hotel_id, fixed_now):
        result = hotel_service.update_complete(hotel_id, {**hotel_fields, "name_en": "Renamed"}, {
            "amenities": [master_data["pool"].id, master_data["spa"].id],
            "rooms": [_make_room("Suite", [("HB", "400"), ("FB", "500")])],
            "image_urls": ["https://cdn.example.com/new.jpg"],
            "review_aggregates": [
                {"source": "Google", "average_rating": "4.8", "total_reviews": 7},
                {"source": "TripAdvisor", "average_rating": "4.5", "total_reviews": 2},
            ],
            "faqs": [{"question_en": "Wifi?", "answer_en": "Free"}],
        })
        assert result.error is None
        assert result.data.name_en == "Renamed"

        hotel = hotel_service.get_complete(hotel_id).data
        assert sorted(hotel.amenities) == sorted([master_data["pool"].id, master_data["spa"].id])
        assert [r.room_type for r in hotel.rooms] == ["Suite"]
        assert [p.almosafer_points for p in hotel.rooms[0].packages] == [Decimal("40.00"), Decimal("50.00")]
        assert hotel.image_url == "https://cdn.example.com/new.jpg"
        assert {r.source for r in hotel.review_aggregates} == {"Google", "TripAdvisor"}
        assert all(r.last_updated == fixed_now for r in hotel.review_aggregates)
        assert [f.question_en for f in hotel.faqs] == ["Wifi?"]

    def test_review_identity_preserved(self, hotel_service, hotel_fields, hotel_id):
        before = {r.source: r.id for r in hotel_service.get_complete(hotel_id).data.review_aggregates}
        hotel_service.update_complete(hotel_id, hotel_fields, {
            "review_aggregates": [{"source": "Google", "average_rating": "3", "total_reviews": 9}],
        })
        after = hotel_service.get_complete(hotel_id).data.review_aggregates
        assert [(r.source, r.id) for r in after] == [("Google", before["Google"])]
        assert after[0].total_reviews == 9

    def test_omitted_collections_untouched(self, hotel_service, hotel_fields, hotel_id):
        result = hotel_service.update_complete(hotel_id, {**hotel_fields, "rank": 7}, {"image_urls": []})
        assert result.error is None

        hotel = hotel_service.get_complete(hotel_id).data
        assert hotel.rank == 7
        assert len(hotel.amenities) == 1
        assert len(hotel.rooms) == 1
        assert len(hotel.review_aggregates) == 2
        # 空图片列表不覆盖已有图片
        assert hotel.image_url == "https://cdn.example.com/1.jpg"

    def test_partial_failure(self, hotel_service, hotel_fields, master_data, hotel_id):
        """设施同步失败：酒店新名称已保存，设施保持原样，房间照常更新"""
        result = hotel_service.update_complete(hotel_id, {**hotel_fields, "name_en": "New Name"}, {
            "amenities": [master_data["spa"].id, 9999],
            "rooms": [_make_room("Family", [("BB", "150")])],
        })
        assert result.error == PARTIAL_UPDATE_ERROR
        assert result.data.name_en == "New Name"
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("amenities:")

        hotel = hotel_service.get_complete(hotel_id).data
        assert hotel.name_en == "New Name"
        assert hotel.amenities == [master_data["gym"].id]
        assert [r.room_type for r in hotel.rooms] == ["Family"]

    def test_scalar_update_failure_is_fatal(self, hotel_service, hotel_fields, master_data, hotel_id):
        result = hotel_service.update_complete(hotel_id, {**hotel_fields, "type_id": 999}, {
            "amenities": [master_data["spa"].id],
        })
        assert result.data is None
        assert result.error
        assert hotel_service.get_complete(hotel_id).data.amenities == [master_data["gym"].id]

    def test_non_numeric_rating_is_zero(self, hotel_service, hotel_fields, hotel_id):
        """无法解析的评分按 0 保存，不影响酒店字段更新"""
        result = hotel_service.update_complete(hotel_id, {**hotel_fields, "rank": 4}, {
            "review_aggregates": [{"source": "Google", "average_rating": "abc", "total_reviews": 3}],
        })
        assert result.error is None
        assert result.data.rank == 4

        reviews = hotel_service.get_complete(hotel_id).data.review_aggregates
        assert [(r.source, r.average_rating) for r in reviews] == [("Google", Decimal("0"))]

    def test_missing_hotel(self, hotel_service, hotel_fields, master_data):
        result = hotel_service.update_complete(999, hotel_fields, {"amenities": []})
        assert result.error == HOTEL_NOT_FOUND


class TestHotelDetail:

    def test_detail_includes_related_rows(self, hotel_service, hotel_fields, master_data):
        hotel_id = hotel_service.create_complete(hotel_fields, {
            "amenities": [master_data["pool"].id],
            "rooms": [_make_room("Deluxe", [("BB", "250")])],
            "faqs": [{"question_en": "Q?", "answer_en": "A"}],
        }).data.id

        detail = hotel_service.get_detail(hotel_id).data
        assert [a.name_en for a in detail.amenities] == ["Swimming Pool"]
        assert detail.rooms[0].packages[0].almosafer_points == Decimal("25.00")
        assert detail.faqs[0].answer_en == "A"

        listed = hotel_service.list_details().data
        assert listed[0].id == hotel_id
        assert listed[0].faqs is None

    def test_detail_missing(self, hotel_service, master_data):
        assert hotel_service.get_detail(42).error == HOTEL_NOT_FOUND


class TestConcurrentFanOut:
    """多线程扇出：文件库 + 4 个工作线程，每个任务独立会话"""

    @pytest.fixture
    def file_session(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'hotels.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        enable_sqlite_foreign_keys(engine)
        Base.metadata.create_all(bind=engine)
        session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
        yield session
        session.close()
        engine.dispose()

    @pytest.fixture
    def seeded(self, file_session):
        hotel_type = PropertyType(name_en="Hotel", name_ar="فندق")
        area = Area(name_en="Dubai Marina", name_ar="دبي مارينا")
        amenities = [Amenity(name_en=n, name_ar=n) for n in ("Gym", "Pool", "Spa")]
        file_session.add_all([hotel_type, area, *amenities])
        file_session.commit()
        fields = {
            "name_en": "Marina Gate", "name_ar": "مارينا جيت",
            "type_id": hotel_type.id, "area_id": area.id,
            "address_en": "Marina Walk", "address_ar": "ممشى المارينا",
            "star_rating": 4, "thumbnail_url": "https://cdn.example.com/gate.jpg",
        }
        return fields, [a.id for a in amenities]

    def test_update_complete_all_collections(self, file_session, seeded):
        fields, amenity_ids = seeded
        svc = HotelService(file_session, max_workers=4)
        hotel_id = svc.create_complete(fields, {"amenities": amenity_ids[:1]}).data.id

        for round_no in range(5):
            result = svc.update_complete(hotel_id, {**fields, "rank": round_no}, {
                "amenities": amenity_ids[round_no % 3:],
                "rooms": [
                    _make_room(name, [("BB", "100"), ("HB", "200")])
                    for name in ("Deluxe", "Suite", "Family")
                ],
                "image_urls": [f"https://cdn.example.com/{round_no}.jpg"],
                "review_aggregates": [
                    {"source": "Google", "average_rating": "4.5", "total_reviews": round_no},
                ],
                "faqs": [{"question_en": "Parking?", "answer_en": f"Level {round_no}"}],
            })
            assert result.error is None, result.warnings

        hotel = svc.get_complete(hotel_id).data
        assert hotel.rank == 4
        assert sorted(hotel.amenities) == sorted(amenity_ids[1:])
        assert [len(r.packages) for r in hotel.rooms] == [2, 2, 2]
        assert hotel.image_url == "https://cdn.example.com/4.jpg"
        assert hotel.review_aggregates[0].total_reviews == 4
        assert hotel.faqs[0].answer_en == "Level 4"
        assert file_session.query(Room).count() == 3
        assert file_session.query(RoomPackage).count() == 6

    def test_partial_failure_with_workers(self, file_session, seeded):
        fields, amenity_ids = seeded
        svc = HotelService(file_session, max_workers=4)
        hotel_id = svc.create_complete(fields, {"amenities": amenity_ids[:1]}).data.id

        result = svc.update_complete(hotel_id, {**fields, "name_en": "Renamed"}, {
            "amenities": [9999],
            "rooms": [_make_room("Deluxe", [("BB", "100")])],
            "faqs": [{"question_en": "Q?", "answer_en": "A"}],
        })
        assert result.error == PARTIAL_UPDATE_ERROR
        assert [w.split(":")[0] for w in result.warnings] == ["amenities"]

        hotel = svc.get_complete(hotel_id).data
        assert hotel.name_en == "Renamed"
        assert hotel.amenities == amenity_ids[:1]
        assert len(hotel.rooms) == 1
        assert len(hotel.faqs) == 1
