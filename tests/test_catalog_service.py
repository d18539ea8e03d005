from decimal import Decimal

from quickbarber.models import Barber, ShopServiceOverride, WabaNumber
from quickbarber.services.catalog_service import get_barber, get_service, list_barbers, list_services, resolve_shop
from tests.conftest import PHONE_NUMBER_ID, SHOP_ID


class TestResolveShop:
    def test_known_number(self, db, shop):
        assert shop.shop_id == SHOP_ID
        assert shop.shop_name == "Fade Factory"
        assert shop.time_zone == "Asia/Kolkata"

    def test_unknown_number(self, db, shop):
        assert resolve_shop(db, "000") is None

    def test_inactive_number(self, db, shop):
        db.query(WabaNumber).filter(WabaNumber.phone_number_id == PHONE_NUMBER_ID).one().is_active = False
        db.flush()

        assert resolve_shop(db, PHONE_NUMBER_ID) is None


class TestServices:
    def test_ordered_by_sort_order(self, db, shop):
        keys = [s.service_key for s in list_services(db, SHOP_ID)]
        assert keys == ["haircut", "beard_trim", "haircut_beard", "hair_color"]

    def test_override_replaces_fields(self, db, shop):
        db.add(
            ShopServiceOverride(
                shop_id=SHOP_ID,
                service_key="haircut",
                custom_label="Signature Cut",
                custom_price=Decimal("450"),
                custom_duration_min=40,
            )
        )
        db.flush()

        service = get_service(db, SHOP_ID, "HAIRCUT")

        assert service.label == "Signature Cut"
        assert service.price == Decimal("450")
        assert service.duration_min == 40

    def test_unavailable_override_hides_service(self, db, shop):
        db.add(ShopServiceOverride(shop_id=SHOP_ID, service_key="beard_trim", is_available=False))
        db.flush()

        assert get_service(db, SHOP_ID, "beard_trim") is None
        assert "beard_trim" not in [s.service_key for s in list_services(db, SHOP_ID)]

    def test_override_for_other_shop_ignored(self, db, shop):
        db.add(ShopServiceOverride(shop_id="other", service_key="haircut", is_available=False))
        db.flush()

        assert get_service(db, SHOP_ID, "haircut") is not None


class TestBarbers:
    def test_inactive_and_foreign_barbers_hidden(self, db, shop):
        db.add_all(
            [
                Barber(barber_id="off", shop_id=SHOP_ID, name="Off Duty", active=False),
                Barber(barber_id="elsewhere", shop_id="other", name="Elsewhere"),
            ]
        )
        db.flush()

        assert [b.barber_id for b in list_barbers(db, SHOP_ID)] == ["ravi", "arjun"]
        assert get_barber(db, SHOP_ID, "elsewhere") is None
        assert get_barber(db, SHOP_ID, "RAVI").name == "Ravi"
