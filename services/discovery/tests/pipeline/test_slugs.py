"""Tests for slug generation and per-city disambiguation."""
from services.discovery.pipeline.slugs import SlugAllocator, establishment_key, slugify


class TestSlugify:
    def test_strips_accents(self):
        assert slugify("Café du Soleil") == "cafe-du-soleil"

    def test_drops_punctuation(self):
        assert slugify("Bob's Bar & Grill!") == "bobs-bar-grill"

    def test_collapses_whitespace_and_hyphens(self):
        assert slugify("  Le   Petit -- Chien  ") == "le-petit-chien"

    def test_trims_hyphens(self):
        assert slugify("-Dog Beach-") == "dog-beach"

    def test_german_and_nordic(self):
        assert slugify("Hundewiese Ölberg") == "hundewiese-olberg"

    def test_empty(self):
        assert slugify("") == ""


class TestSlugAllocator:
    def test_unique_name_keeps_base(self):
        alloc = SlugAllocator()
        assert alloc.allocate("Bark Park") == "bark-park"

    def test_first_keeps_base_later_get_neighborhood(self):
        alloc = SlugAllocator()
        first = alloc.allocate("Café du Soleil", "Old Town")
        second = alloc.allocate("Café du Soleil", "Riverside")
        assert (first, second) == ("cafe-du-soleil", "cafe-du-soleil-riverside")

    def test_counter_without_neighborhood(self):
        alloc = SlugAllocator()
        assert [alloc.allocate("X") for _ in range(3)] == ["x", "x-1", "x-2"]
        assert alloc.collisions == 2

    def test_counter_seeded_by_prior_collisions(self):
        alloc = SlugAllocator()
        alloc.allocate("A")
        assert alloc.allocate("A") == "a-1"
        alloc.allocate("B")
        assert alloc.allocate("B") == "b-2"

    def test_same_neighborhood_twice_gets_counter(self):
        alloc = SlugAllocator()
        assert alloc.allocate("Pup Cafe", "Soho") == "pup-cafe"
        assert alloc.allocate("Pup Cafe", "Soho") == "pup-cafe-soho"
        third = alloc.allocate("Pup Cafe", "Soho")
        assert third.startswith("pup-cafe-soho-")

    def test_deterministic(self):
        names = ["A", "A", "B", "A"]
        runs = []
        for _ in range(2):
            alloc = SlugAllocator()
            runs.append([alloc.allocate(n) for n in names])
        assert runs[0] == runs[1]
        assert len(set(runs[0])) == len(names)

    def test_separate_allocators_allow_cross_city_duplicates(self):
        paris, london = SlugAllocator(), SlugAllocator()
        assert paris.allocate("Dog Cafe") == london.allocate("Dog Cafe") == "dog-cafe"

    def test_contains_and_len(self):
        alloc = SlugAllocator()
        alloc.allocate("Fido")
        assert "fido" in alloc
        assert len(alloc) == 1


class TestSlugAllocatorWithStoredRows:
    def test_stored_establishment_keeps_its_slug(self):
        stored = {"cafe-du-soleil-old-town": establishment_key("Café du Soleil", "1 Main St")}
        alloc = SlugAllocator(stored)
        assert alloc.allocate("Café du Soleil", "Old Town", "1 Main St") == "cafe-du-soleil-old-town"

    def test_stored_slug_not_given_to_another_place(self):
        alloc = SlugAllocator({"cafe-du-soleil": establishment_key("Café du Soleil", "1 Main St")})
        assert alloc.allocate("Café du Soleil", "Riverside", "9 River Rd") == "cafe-du-soleil-riverside"
        assert alloc.allocate("Café du Soleil", None, "4 Elm St") == "cafe-du-soleil-1"

    def test_duplicate_stored_rows_are_each_reused(self):
        key = establishment_key("A", "1 Main St")
        alloc = SlugAllocator({"a": key, "a-1": key})
        assert [alloc.allocate("A", None, "1 Main St") for _ in range(2)] == ["a", "a-1"]

    def test_key_ignores_accents_and_punctuation(self):
        assert establishment_key("Café du Soleil", "1, Main St.") == establishment_key("Cafe du soleil", "1 Main St")
