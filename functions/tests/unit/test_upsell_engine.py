"""Unit tests for the upsell engine."""

from models.estimate import DetectedUpsell, MoveTimeEstimate, SpecialtyItem
from models.inventory import Detection
from models.quote import CustomUpsell, Upsell
from services import upsell_engine as engine


def _by_id(upsells):
    return {u.id: u for u in upsells}


def _move_time(**overrides):
    data = dict(hours_standard=4, hours_conservative=5, recommended_crew=3, crew_rate=230)
    data.update(overrides)
    return MoveTimeEstimate(**data)


class TestBaseCatalog:
    """Tests for step 1."""

    def test_insurance_tiers_always_offered(self, policy):
        upsells = _by_id(engine.base_catalog([], 0, policy))

        assert upsells["insurance-basic"].selected is True
        assert upsells["insurance-basic"].price == 0
        assert upsells["insurance-premium"].price == 100
        assert upsells["insurance-deluxe"].price == 200
        assert not upsells["insurance-premium"].selected

    def test_insurance_recommended_by_total(self, policy):
        upsells = _by_id(engine.base_catalog([], 3000, policy))

        assert upsells["insurance-premium"].recommended
        assert upsells["insurance-deluxe"].recommended

    def test_packing_priced_per_item(self, policy):
        detections = [Detection(label="Chair", qty=4), Detection(label="Lamp", qty=1)]

        upsells = _by_id(engine.base_catalog(detections, 0, policy))

        assert upsells["packing"].price == 125
        assert upsells["unpacking"].price == 75
        assert upsells["packing"].recommended is False


class TestCategoryUpsells:
    """Tests for step 2."""

    def test_two_tvs_produce_selected_tv_boxes(self, policy):
        detections = [Detection(label="65 inch TV", qty=2)]

        upsells = _by_id(engine.category_upsells(detections, policy))

        assert upsells["tv-boxes"].price == 70
        assert upsells["tv-boxes"].selected is True
        assert "tv-disassembly" not in upsells

    def test_wall_mounted_tv_disassembly_recommended_not_selected(self, policy):
        detections = [Detection(label="TV", notes="wall mounted")]

        upsells = _by_id(engine.category_upsells(detections, policy))

        assert upsells["tv-disassembly"].price == 75
        assert upsells["tv-disassembly"].recommended is True
        assert upsells["tv-disassembly"].selected is False

    def test_piano_handling_selected(self, policy):
        upsells = _by_id(engine.category_upsells([Detection(label="Upright Piano")], policy))

        assert upsells["piano-handling"].price == 300
        assert upsells["piano-handling"].selected is True

    def test_other_categories(self, policy):
        detections = [
            Detection(label="Framed Art", qty=3),
            Detection(label="Pool Table"),
            Detection(label="Safe"),
            Detection(label="Treadmill", qty=2),
        ]

        upsells = _by_id(engine.category_upsells(detections, policy))

        assert upsells["fragile-packing"].price == 60
        assert upsells["pool-table-handling"].price == 400
        assert upsells["safe-handling"].price == 250
        assert upsells["gym-equipment-handling"].price == 300

    def test_no_categories_no_upsells(self, policy):
        assert engine.category_upsells([Detection(label="Dresser")], policy) == []


class TestMerges:
    """Tests for steps 3 and 4."""

    def test_custom_duplicate_ids_skipped(self):
        base = [Upsell(id="packing", name="Packing", price=25)]
        custom = [
            CustomUpsell(id="packing", name="Other packing", price=1),
            CustomUpsell(id="storage", name="Storage", price=99),
        ]

        merged = engine.merge_custom(base, custom)

        assert [u.id for u in merged] == ["packing", "storage"]
        assert merged[0].price == 25

    def test_estimate_updates_existing_and_appends_new(self):
        upsells = [Upsell(id="tv-boxes", name="TV Boxes", price=70, selected=False)]
        move_time = _move_time(detected_upsells=[
            DetectedUpsell(id="tv-boxes", name="TV Boxes", price=80, reason="Large TVs", required=True),
            DetectedUpsell(id="appliance-disconnect", name="Disconnect", price=75),
        ])

        merged = _by_id(engine.merge_estimate(upsells, move_time))

        assert merged["tv-boxes"].price == 80
        assert merged["tv-boxes"].selected is True
        assert merged["tv-boxes"].description == "Large TVs"
        assert merged["appliance-disconnect"].recommended is True
        assert merged["appliance-disconnect"].selected is False

    def test_existing_selection_kept_when_not_required(self):
        upsells = [Upsell(id="tv-boxes", name="TV Boxes", price=70, selected=True)]
        move_time = _move_time(detected_upsells=[
            DetectedUpsell(id="tv-boxes", name="TV Boxes", price=70, required=False),
        ])

        merged = engine.merge_estimate(upsells, move_time)

        assert merged[0].selected is True

    def test_specialty_items_appended_selected(self):
        move_time = _move_time(specialty_items=[
            SpecialtyItem(item="Upright Piano", category="piano", surcharge=225, extra_time=75),
        ])

        merged = _by_id(engine.merge_estimate([], move_time))

        assert merged["specialty-piano"].price == 225
        assert merged["specialty-piano"].selected is True


class TestSelection:
    """Tests for toggle and insurance exclusivity."""

    def test_selecting_insurance_deselects_other_tiers(self, policy):
        upsells = engine.base_catalog([], 0, policy)

        toggled = _by_id(engine.toggle(upsells, "insurance-premium"))

        assert toggled["insurance-premium"].selected is True
        assert toggled["insurance-basic"].selected is False
        assert toggled["insurance-deluxe"].selected is False

    def test_toggle_returns_new_list(self, policy):
        upsells = engine.base_catalog([], 0, policy)

        engine.toggle(upsells, "packing")

        assert _by_id(upsells)["packing"].selected is False

    def test_toggle_non_insurance_leaves_insurance_alone(self, policy):
        upsells = engine.toggle(engine.base_catalog([], 0, policy), "packing")

        selected = [u.id for u in upsells if u.selected]
        assert selected == ["insurance-basic", "packing"]

    def test_toggle_unknown_id_is_noop(self, policy):
        upsells = engine.base_catalog([], 0, policy)
        assert engine.toggle(upsells, "nope") == upsells

    def test_at_most_one_insurance_after_merge(self, policy):
        move_time = _move_time(detected_upsells=[
            DetectedUpsell(id="insurance-deluxe", name="Deluxe", price=200, required=True),
        ])

        upsells = engine.build_upsells([], policy, move_time=move_time)

        selected_insurance = [u.id for u in upsells if u.is_insurance and u.selected]
        assert len(selected_insurance) == 1

    def test_selected_total(self):
        upsells = [
            Upsell(id="a", name="A", price=70, selected=True),
            Upsell(id="b", name="B", price=75, selected=False),
            Upsell(id="c", name="C", price=300, selected=True),
        ]
        assert engine.selected_total(upsells) == 370


class TestBuildUpsells:
    """Tests for the full four-step build."""

    def test_tv_and_piano_quote(self, policy):
        detections = [Detection(label="65 inch TV", qty=2), Detection(label="Upright Piano")]

        upsells = _by_id(engine.build_upsells(
            detections, policy, custom=[CustomUpsell(id="storage", name="Storage", price=50)]
        ))

        assert upsells["tv-boxes"].price == 70
        assert upsells["tv-boxes"].selected
        assert upsells["piano-handling"].selected
        assert "storage" in upsells
        assert engine.selected_total(upsells.values()) == 370
