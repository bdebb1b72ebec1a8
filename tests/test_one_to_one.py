# tests/test_one_to_one.py
from __future__ import annotations

import pytest

from relsync.errors import MalformedSubmission

from domain import Passport, Pet, Photo


def test_repeatable_field_creates_related_row(writer, fetch):
    pet = writer.create({"name": "Rex", "passport": [{"number": "P-1", "country": "NZ"}]})

    passports = fetch(Passport)
    assert len(passports) == 1
    assert passports[0].pet_id == pet.id
    assert passports[0].number == "P-1"
    assert passports[0].country == "NZ"


def test_resubmitting_updates_the_same_row(writer, fetch):
    pet = writer.create({"name": "Rex", "passport": [{"number": "P-1"}]})
    first = fetch(Passport)[0]

    writer.update(pet.id, {"passport": [{"number": "P-2"}]})

    passports = fetch(Passport)
    assert len(passports) == 1
    assert passports[0].id == first.id
    assert passports[0].number == "P-2"


def test_plain_mapping_value_is_used_as_attributes(writer, fetch):
    pet = writer.create({"name": "Rex", "passport": {"number": "P-9"}})

    passports = fetch(Passport)
    assert [(p.pet_id, p.number) for p in passports] == [(pet.id, "P-9")]


def test_null_relation_deletes_existing_row(writer, fetch):
    pet = writer.create({"name": "Rex", "passport": [{"number": "P-1"}]})
    assert len(fetch(Passport)) == 1

    writer.update(pet.id, {"passport": None})

    assert fetch(Passport) == []


def test_null_relation_without_row_is_noop(writer, fetch, add):
    other = add(Pet(name="Other"))
    add(Passport(pet_id=other.id, number="KEEP"))
    pet = writer.create({"name": "Rex"})

    writer.update(pet.id, {"passport": None})

    passports = fetch(Passport)
    assert [p.number for p in passports] == ["KEEP"]


def test_dotted_attribute_field_can_clear_a_column(writer, fetch):
    pet = writer.create({"name": "Rex", "passport": [{"number": "P-1", "country": "NZ"}]})

    # passport_country writes passport.country; None clears only that column
    writer.update(pet.id, {"passport_country": None})

    passports = fetch(Passport)
    assert len(passports) == 1
    assert passports[0].number == "P-1"
    assert passports[0].country is None


def test_polymorphic_one_to_one_sets_type_column(writer, fetch, add):
    # a photo of some other kind of owner with the same id stays untouched
    add(Photo(imageable_id=1, imageable_type="toy", url="toy.png"))

    pet = writer.create({"name": "Rex", "photo_url": "rex.png"})
    writer.update(pet.id, {"photo_url": "rex-2.png"})

    photos = fetch(Photo, Photo.imageable_type == "pet")
    assert [(p.imageable_id, p.url) for p in photos] == [(pet.id, "rex-2.png")]
    assert [p.url for p in fetch(Photo, Photo.imageable_type == "toy")] == ["toy.png"]


@pytest.mark.parametrize("bad", ["oops", [], 42])
def test_non_mapping_value_is_ignored_when_lenient(writer, fetch, bad):
    pet = writer.create({"name": "Rex", "passport": bad})

    assert [p.name for p in fetch(Pet)] == ["Rex"]
    assert fetch(Passport) == []

    # attribute fields sent alongside still land on the related row
    writer.update(pet.id, {"passport": bad, "passport_country": "NZ"})
    assert [(p.pet_id, p.country) for p in fetch(Passport)] == [(pet.id, "NZ")]


@pytest.mark.parametrize("bad", ["oops", []])
def test_non_mapping_value_raises_when_strict(make_writer, count, bad):
    writer = make_writer(strict=True, use_transactions=True)

    with pytest.raises(MalformedSubmission):
        writer.create({"name": "Rex", "passport": bad})

    assert count(Pet) == 0
    assert count(Passport) == 0
