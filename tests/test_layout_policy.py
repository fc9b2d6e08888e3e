import random

import pytest

from design import SAFE_TEXT_ZONES, SLIDE_PROFILES, TEXT_JITTER_RANGE
from errors import CarouselInputError, LayoutConfigError
from layout_policy import biased_choice, decide_layout, safe_zone_candidates, subject_candidates
from models import TEXT_ZONES, ManualOverride, PhotoAnalysis


class TestSafety:
    @pytest.mark.parametrize("slide_index", [1, 2, 3])
    def test_zone_always_safe_for_subject(self, slide_index):
        for seed in range(300):
            d = decide_layout(slide_index, rng=random.Random(seed))
            assert d.text_zone in SAFE_TEXT_ZONES[d.subject_position]

    @pytest.mark.parametrize("slide_index", [1, 2, 3])
    def test_zone_safe_even_with_unsafe_hint(self, slide_index):
        hint = PhotoAnalysis(
            subject_position="left",
            recommended_text_zone="bottom-left",
            empty_zones=("bottom-left", "bottom-right"),
        )
        for seed in range(300):
            d = decide_layout(slide_index, analysis=hint, rng=random.Random(seed))
            assert d.text_zone in SAFE_TEXT_ZONES[d.subject_position]

    def test_left_subject_never_gets_bottom_zone(self):
        override = ManualOverride(person_position="left")
        zones = {decide_layout(2, override=override, rng=random.Random(s)).text_zone for s in range(300)}
        assert zones <= {"top-right", "center", "top-left"}
        assert not zones & {"bottom-left", "bottom-right"}

    def test_safe_table_is_kept_asymmetric(self):
        assert SAFE_TEXT_ZONES["left"] == ("top-right", "center", "top-left")
        assert SAFE_TEXT_ZONES["right"] == ("top-left", "center", "top-right")
        assert SAFE_TEXT_ZONES["center"] == ("top-left", "top-right", "center")


class TestOverrides:
    def test_text_position_bypasses_safety(self):
        override = ManualOverride(person_position="left", text_position="bottom-left")
        for seed in range(50):
            d = decide_layout(1, override=override, rng=random.Random(seed))
            assert d.subject_position == "left"
            assert d.text_zone == "bottom-left"

    @pytest.mark.parametrize("zone", TEXT_ZONES)
    @pytest.mark.parametrize("person", ["left", "center", "right"])
    def test_each_field_wins(self, person, zone):
        override = ManualOverride(
            person_position=person,
            text_position=zone,
            text_y_offset=-37.5,
            text_area_ratio=0.5,
        )
        d = decide_layout(3, override=override, rng=random.Random(1))
        assert d.subject_position == person
        assert d.text_zone == zone
        assert d.text_vertical_offset == -37.5
        assert d.text_zone_height_ratio == 0.5

    def test_unset_fields_stay_computed(self, fixed_random):
        override = ManualOverride(text_area_ratio=0.2)
        d = decide_layout(1, override=override, rng=fixed_random(value=0.0, jitter=3))
        assert d.subject_position == "right"
        assert d.text_zone == "top-left"
        assert d.text_vertical_offset == SLIDE_PROFILES[1].text_base_offset + 3
        assert d.text_zone_height_ratio == 0.2


class TestBiasedChoice:
    def test_preferred_branch(self, fixed_random):
        d = decide_layout(1, rng=fixed_random(value=0.1, jitter=0))
        assert d.subject_position == "right"
        assert d.text_zone == "top-left"
        assert d.text_vertical_offset == -10
        assert d.text_zone_height_ratio == 0.38

    def test_alternate_branch(self, fixed_random):
        d = decide_layout(1, rng=fixed_random(value=0.9, index=2, jitter=0))
        # third candidate of ("right", "center", "left"), then third safe zone for "left"
        assert d.subject_position == "left"
        assert d.text_zone == "top-left"

    def test_alternate_branch_may_still_pick_first(self, fixed_random):
        assert biased_choice(["a", "b", "c"], fixed_random(value=0.99, index=0)) == "a"

    def test_preferred_frequency(self):
        rng = random.Random(42)
        picks = [biased_choice(["a", "b", "c"], rng) for _ in range(6000)]
        # 0.65 + 0.35 / 3
        assert 0.73 < picks.count("a") / len(picks) < 0.80

    def test_empty_candidates(self):
        with pytest.raises(LayoutConfigError):
            biased_choice([], random.Random(0))

    def test_empty_safe_table_entry(self, monkeypatch):
        monkeypatch.setitem(SAFE_TEXT_ZONES, "left", ())
        with pytest.raises(LayoutConfigError):
            decide_layout(1, override=ManualOverride(person_position="left"), rng=random.Random(0))


class TestCandidates:
    def test_per_slide_orders(self):
        assert subject_candidates(1) == ["right", "center", "left"]
        assert subject_candidates(2) == ["left", "right", "center"]
        assert subject_candidates(3) == ["center", "left", "right"]

    def test_hint_moves_to_front_without_duplicates(self):
        hint = PhotoAnalysis(subject_position="left")
        assert subject_candidates(1, hint) == ["left", "right", "center"]

    def test_recommended_zone_leads_when_safe(self):
        hint = PhotoAnalysis(recommended_text_zone="center", empty_zones=("top-left", "bottom-right"))
        assert safe_zone_candidates("left", hint) == ["center", "top-left", "top-right"]

    def test_unsafe_recommendation_ignored(self):
        hint = PhotoAnalysis(recommended_text_zone="bottom-left")
        assert safe_zone_candidates("left", hint) == ["top-right", "center", "top-left"]

    def test_hinted_zone_preferred(self, fixed_random):
        hint = PhotoAnalysis(subject_position="center", recommended_text_zone="center")
        d = decide_layout(1, analysis=hint, rng=fixed_random(value=0.0))
        assert (d.subject_position, d.text_zone) == ("center", "center")


class TestOffsets:
    @pytest.mark.parametrize("slide_index", [1, 2, 3])
    def test_offset_within_jitter_range(self, slide_index):
        base = SLIDE_PROFILES[slide_index].text_base_offset
        lo, hi = TEXT_JITTER_RANGE
        for seed in range(100):
            d = decide_layout(slide_index, rng=random.Random(seed))
            assert base + lo <= d.text_vertical_offset <= base + hi

    def test_same_seed_same_layout(self):
        assert decide_layout(2, rng=random.Random(7)) == decide_layout(2, rng=random.Random(7))

    @pytest.mark.parametrize("bad", [0, 4, -1, "1"])
    def test_invalid_slide_index(self, bad):
        with pytest.raises(CarouselInputError):
            decide_layout(bad)
