from quickbarber.models import Barber, ServiceCatalog, WabaNumber
from quickbarber.seed import DEMO_SHOP_ID, main, seed_demo_shop
from quickbarber.services.catalog_service import list_services, resolve_shop


class TestSeedDemoShop:
    def test_seeded_shop_resolves(self, db):
        seed_demo_shop(db, "555000111", "+15550001111")

        shop = resolve_shop(db, "555000111")

        assert shop.shop_id == DEMO_SHOP_ID
        assert [s.service_key for s in list_services(db, DEMO_SHOP_ID)][:2] == ["haircut", "beard_trim"]

    def test_rerun_is_idempotent(self, db):
        seed_demo_shop(db, "555000111", "+15550001111")
        seed_demo_shop(db, "555000111", "+15550001111")

        assert db.query(WabaNumber).count() == 1
        assert db.query(ServiceCatalog).count() == 4
        assert db.query(Barber).count() == 3

    def test_main_requires_arguments(self, capsys):
        assert main([]) == 2
        assert "python -m quickbarber.seed" in capsys.readouterr().out
